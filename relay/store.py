# relay/store.py
"""
Record store backends.

Both backends expose the same three async primitives over named tables:
insert(table, values), select(table, filters, order_by, descending, limit) and
delete(table, filters). Filters are equality matches. Any backend error is
raised as StoreFailure carrying a caller-safe detail message.

- SqlRecordStore: local SQLAlchemy database (dev/tests). Blocking session work
  runs in the threadpool so the event loop is never blocked.
- SupabaseRecordStore: PostgREST (`/rest/v1/<table>`) over httpx, one client
  per call, authenticated with the service role key.
"""

import datetime
import json
import logging
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from relay import db as dbmod
from relay.errors import StoreFailure
from relay.models import TABLES

logger = logging.getLogger(__name__)

KNOWN_TABLES = frozenset(TABLES)


def _check_table(table: str):
    if table not in KNOWN_TABLES:
        raise StoreFailure(f"Unknown table: {table}")


class RecordStore:
    async def insert(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def select(self, table: str, filters: Dict[str, Any], order_by: Optional[str] = None,
                     descending: bool = False, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def delete(self, table: str, filters: Dict[str, Any]) -> None:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# SQLAlchemy backend
# ---------------------------------------------------------------------------
class SqlRecordStore(RecordStore):
    def __init__(self, database_url: str):
        self.engine = dbmod.make_engine(database_url)
        self.SessionLocal = dbmod.make_session_factory(self.engine)
        dbmod.init_db(self.engine)

    @staticmethod
    def _columns(model) -> set:
        return {c.name for c in model.__table__.columns}

    def _model(self, table: str, keys) -> Any:
        _check_table(table)
        model = TABLES[table]
        unknown = set(keys) - self._columns(model)
        if unknown:
            raise StoreFailure(f"Unknown column(s) for {table}: {', '.join(sorted(unknown))}")
        return model

    @staticmethod
    def _encode(model, values: Dict[str, Any]) -> Dict[str, Any]:
        return {
            k: (json.dumps(v) if k in model.json_columns and v is not None else v)
            for k, v in values.items()
        }

    @staticmethod
    def _to_dict(model, row) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for col in model.__table__.columns:
            value = getattr(row, col.name)
            if col.name in model.json_columns and value is not None:
                value = json.loads(value)
            elif isinstance(value, datetime.datetime):
                value = value.isoformat()
            out[col.name] = value
        return out

    def _insert_sync(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        model = self._model(table, values.keys())
        db = self.SessionLocal()
        try:
            row = model(**self._encode(model, values))
            db.add(row)
            db.commit()
            db.refresh(row)
            return self._to_dict(model, row)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("DB insert failed", extra={"table": table, "error": str(e)})
            raise StoreFailure(str(e)) from e
        finally:
            db.close()

    def _select_sync(self, table, filters, order_by, descending, limit) -> List[Dict[str, Any]]:
        keys = list(filters) + ([order_by] if order_by else [])
        model = self._model(table, keys)
        db = self.SessionLocal()
        try:
            query = db.query(model).filter_by(**filters)
            if order_by:
                column = getattr(model, order_by)
                query = query.order_by(column.desc() if descending else column.asc())
            if limit is not None:
                query = query.limit(limit)
            return [self._to_dict(model, row) for row in query.all()]
        except SQLAlchemyError as e:
            logger.error("DB select failed", extra={"table": table, "error": str(e)})
            raise StoreFailure(str(e)) from e
        finally:
            db.close()

    def _delete_sync(self, table: str, filters: Dict[str, Any]) -> None:
        if not filters:
            raise StoreFailure("Refusing to delete without a filter")
        model = self._model(table, filters.keys())
        db = self.SessionLocal()
        try:
            db.query(model).filter_by(**filters).delete(synchronize_session=False)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("DB delete failed", extra={"table": table, "error": str(e)})
            raise StoreFailure(str(e)) from e
        finally:
            db.close()

    async def insert(self, table, values):
        return await run_in_threadpool(self._insert_sync, table, values)

    async def select(self, table, filters, order_by=None, descending=False, limit=None):
        return await run_in_threadpool(self._select_sync, table, filters, order_by, descending, limit)

    async def delete(self, table, filters):
        await run_in_threadpool(self._delete_sync, table, filters)


# ---------------------------------------------------------------------------
# Supabase / PostgREST backend
# ---------------------------------------------------------------------------
def _eq_filters(filters: Dict[str, Any]) -> Dict[str, str]:
    return {k: f"eq.{v}" for k, v in filters.items()}


def _error_message(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return resp.text or f"Store returned HTTP {resp.status_code}"
    if isinstance(payload, dict):
        return str(payload.get("message") or payload.get("error") or payload)
    return str(payload)


class SupabaseRecordStore(RecordStore):
    def __init__(self, supabase_url: str, service_key: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.rest_url = supabase_url.rstrip("/") + "/rest/v1"
        self.headers = {"apikey": service_key, "Authorization": f"Bearer {service_key}"}
        self.timeout = timeout
        self._transport = transport

    async def _request(self, method: str, table: str, params=None, payload=None,
                       prefer: Optional[str] = None) -> httpx.Response:
        _check_table(table)
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.request(
                    method, f"{self.rest_url}/{table}", params=params, json=payload, headers=headers
                )
        except httpx.HTTPError as e:
            logger.error("Store request failed", extra={"table": table, "method": method, "error": repr(e)})
            raise StoreFailure(f"Store unreachable ({type(e).__name__})") from e
        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.error("Store returned an error", extra={"table": table, "status": resp.status_code, "error": message})
            raise StoreFailure(message)
        return resp

    async def insert(self, table, values):
        resp = await self._request("POST", table, payload=[values], prefer="return=representation")
        rows = resp.json()
        if not rows:
            raise StoreFailure(f"Insert into {table} returned no row")
        return rows[0]

    async def select(self, table, filters, order_by=None, descending=False, limit=None):
        params = {"select": "*", **_eq_filters(filters)}
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = str(limit)
        resp = await self._request("GET", table, params=params)
        return resp.json() or []

    async def delete(self, table, filters):
        if not filters:
            raise StoreFailure("Refusing to delete without a filter")
        await self._request("DELETE", table, params=_eq_filters(filters), prefer="return=minimal")
