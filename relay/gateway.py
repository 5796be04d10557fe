# relay/gateway.py
"""
Owner-scoped access to the record store.

Every operation takes the caller's Identity and forces `user_id` into the
values or filters *after* any caller-supplied keys, so one identity can never
read, list or delete another identity's records, whatever id it is given.
"""

import logging
from typing import Any, Dict, List

from relay.errors import RecordNotFound, StoreFailure
from relay.identity import Identity
from relay.schemas import RelayOutcome, RequestDescription
from relay.store import RecordStore

logger = logging.getLogger(__name__)

HISTORY = "history"
COLLECTIONS = "collections"
COLLECTION_ITEMS = "collection_items"
ENVIRONMENTS = "environments"

OWNER_KEY = "user_id"


class RecordStoreGateway:
    def __init__(self, store: RecordStore, history_limit: int = 25):
        self.store = store
        self.history_limit = history_limit

    # -- owner-scoped primitives ------------------------------------------
    async def _insert(self, identity: Identity, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        return await self.store.insert(table, {**values, OWNER_KEY: identity.id})

    async def _select(self, identity: Identity, table: str, filters: Dict[str, Any] = None,
                      **kwargs) -> List[Dict[str, Any]]:
        return await self.store.select(table, {**(filters or {}), OWNER_KEY: identity.id}, **kwargs)

    async def _delete(self, identity: Identity, table: str, filters: Dict[str, Any]) -> None:
        await self.store.delete(table, {**filters, OWNER_KEY: identity.id})

    # -- history ------------------------------------------------------------
    async def log_history(self, identity: Identity, description: RequestDescription,
                          outcome: RelayOutcome) -> Dict[str, Any]:
        return await self._insert(identity, HISTORY, {
            "url": description.url,
            "method": description.method,
            "headers": description.headers,
            "body": description.body,
            "params": description.params,
            "status": outcome.status,
            "response": outcome.to_response(),
        })

    async def list_history(self, identity: Identity) -> List[Dict[str, Any]]:
        return await self._select(identity, HISTORY, order_by="created_at", descending=True,
                                  limit=self.history_limit)

    async def delete_history(self, identity: Identity, record_id: str) -> None:
        await self._delete(identity, HISTORY, {"id": record_id})

    # -- collections --------------------------------------------------------
    async def create_collection(self, identity: Identity, name: str) -> Dict[str, Any]:
        return await self._insert(identity, COLLECTIONS, {"name": name})

    async def list_collections(self, identity: Identity) -> List[Dict[str, Any]]:
        return await self._select(identity, COLLECTIONS, order_by="created_at")

    async def delete_collection(self, identity: Identity, collection_id: str) -> None:
        """
        Two separate store calls, not atomic: items first, then the collection.

        If deleting the items fails the collection is left untouched. If the
        items are gone but deleting the collection fails, the StoreFailure says
        so; repeating the call completes the removal.
        """
        await self._delete(identity, COLLECTION_ITEMS, {"collection_id": collection_id})
        try:
            await self._delete(identity, COLLECTIONS, {"id": collection_id})
        except StoreFailure as e:
            logger.error("Collection items deleted but collection delete failed",
                         extra={"collection_id": collection_id, "user_id": identity.id})
            raise StoreFailure(f"Collection items were deleted but the collection was not: {e.public_message}") from e

    async def add_collection_item(self, identity: Identity, collection_id: str,
                                  request: Dict[str, Any]) -> Dict[str, Any]:
        owned = await self._select(identity, COLLECTIONS, {"id": collection_id}, limit=1)
        if not owned:
            raise RecordNotFound("Collection not found")
        return await self._insert(identity, COLLECTION_ITEMS, {
            "collection_id": collection_id,
            "request": request,
        })

    async def list_collection_items(self, identity: Identity, collection_id: str) -> List[Dict[str, Any]]:
        return await self._select(identity, COLLECTION_ITEMS, {"collection_id": collection_id},
                                  order_by="created_at")

    async def delete_collection_item(self, identity: Identity, item_id: str) -> None:
        await self._delete(identity, COLLECTION_ITEMS, {"id": item_id})

    # -- environments -------------------------------------------------------
    async def create_environment(self, identity: Identity, name: str,
                                 variables: Dict[str, Any]) -> Dict[str, Any]:
        return await self._insert(identity, ENVIRONMENTS, {"name": name, "variables": variables})

    async def list_environments(self, identity: Identity) -> List[Dict[str, Any]]:
        return await self._select(identity, ENVIRONMENTS, order_by="created_at")
