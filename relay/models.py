# relay/models.py
import datetime
import uuid

from sqlalchemy import Column, Integer, String, DateTime, Text

from relay.db import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class HistoryRecord(Base):
    __tablename__ = "history"
    json_columns = ("headers", "body", "params", "response")

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(128), index=True, nullable=False)
    url = Column(Text, nullable=False)
    method = Column(String(16), nullable=False)
    headers = Column(Text, nullable=True)
    body = Column(Text, nullable=True)
    params = Column(Text, nullable=True)
    status = Column(Integer, nullable=True)
    response = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_utcnow, index=True)


class Collection(Base):
    __tablename__ = "collections"
    json_columns = ()

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(128), index=True, nullable=False)
    name = Column(String(256), nullable=False)
    created_at = Column(DateTime, default=_utcnow, index=True)


class CollectionItem(Base):
    __tablename__ = "collection_items"
    json_columns = ("request",)

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(128), index=True, nullable=False)
    collection_id = Column(String(36), index=True, nullable=False)
    request = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_utcnow, index=True)


class Environment(Base):
    __tablename__ = "environments"
    json_columns = ("variables",)

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(128), index=True, nullable=False)
    name = Column(String(256), nullable=False)
    variables = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_utcnow, index=True)


TABLES = {
    model.__tablename__: model
    for model in (HistoryRecord, Collection, CollectionItem, Environment)
}
