import asyncio

import pytest

from relay.errors import RecordNotFound, StoreFailure
from relay.gateway import RecordStoreGateway
from relay.identity import Identity
from relay.schemas import RelayOutcome, RequestDescription
from relay.store import SqlRecordStore

ALICE = Identity(id="alice")
BOB = Identity(id="bob")


@pytest.fixture
def sql_store(tmp_path):
    return SqlRecordStore(f"sqlite:///{tmp_path}/gateway.db")


class CollectionDeleteFails(SqlRecordStore):
    async def delete(self, table, filters):
        if table == "collections":
            raise StoreFailure("permission denied for table collections")
        await super().delete(table, filters)


def test_owner_filter_cannot_be_overridden(sql_store):
    gateway = RecordStoreGateway(sql_store)

    async def scenario():
        await gateway.create_collection(BOB, "bob's")
        # a caller-supplied user_id is replaced by the caller's own
        return await gateway._select(ALICE, "collections", {"user_id": "bob"})

    assert asyncio.run(scenario()) == []


def test_insert_always_stamps_caller_as_owner(sql_store):
    gateway = RecordStoreGateway(sql_store)
    row = asyncio.run(gateway._insert(ALICE, "collections", {"name": "x", "user_id": "bob"}))
    assert row["user_id"] == "alice"


def test_add_item_checks_collection_ownership(sql_store):
    gateway = RecordStoreGateway(sql_store)

    async def scenario():
        collection = await gateway.create_collection(BOB, "bob's")
        await gateway.add_collection_item(ALICE, collection["id"], {"url": "https://x.example.com"})

    with pytest.raises(RecordNotFound):
        asyncio.run(scenario())


def test_partial_collection_delete_is_reported(tmp_path):
    store = CollectionDeleteFails(f"sqlite:///{tmp_path}/partial.db")
    gateway = RecordStoreGateway(store)

    async def scenario():
        collection = await gateway.create_collection(ALICE, "c")
        await gateway.add_collection_item(ALICE, collection["id"], {"url": "https://x.example.com"})
        with pytest.raises(StoreFailure) as excinfo:
            await gateway.delete_collection(ALICE, collection["id"])
        items = await gateway.list_collection_items(ALICE, collection["id"])
        collections = await gateway.list_collections(ALICE)
        return excinfo.value, items, collections

    error, items, collections = asyncio.run(scenario())
    assert "items were deleted" in error.public_message
    assert items == []
    assert len(collections) == 1


def test_history_limit_is_configurable(sql_store):
    gateway = RecordStoreGateway(sql_store, history_limit=2)
    outcome = RelayOutcome(status=200, headers={}, body=None, time=0)

    async def scenario():
        for i in range(4):
            await gateway.log_history(ALICE, RequestDescription(url=f"https://e.com/{i}"), outcome)
        return await gateway.list_history(ALICE)

    assert len(asyncio.run(scenario())) == 2


def test_sql_store_rejects_unknown_table_and_column(sql_store):
    with pytest.raises(StoreFailure):
        asyncio.run(sql_store.insert("users", {"name": "x"}))
    with pytest.raises(StoreFailure):
        asyncio.run(sql_store.select("collections", {"owner": "x"}))


def test_sql_store_refuses_unfiltered_delete(sql_store):
    with pytest.raises(StoreFailure):
        asyncio.run(sql_store.delete("history", {}))
