"""
MongoDB access helpers.

The module exposes a shared ``client`` / ``db`` pair built from the
environment, plus thin helpers used by the route groups. Every helper takes
the database handle explicitly so routes can receive it through the
``get_db`` dependency (and tests can swap in an in-memory store).

Documents leave this module through ``serialize_document`` which renames the
ObjectId ``_id`` to a string ``id``.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient, TEXT
from pymongo.database import Database

import config

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db: Optional[Database] = None

if config.DATABASE_URL and config.DATABASE_NAME:
    client = MongoClient(config.DATABASE_URL)
    db = client[config.DATABASE_NAME]

COLLECTIONS = ("artist", "album", "song", "category", "listennow")


def get_db() -> Database:
    if db is None:
        raise Exception("Database not available")
    return db


def ensure_indexes(database: Database) -> None:
    """Wildcard text index on every collection, used by ``search``."""
    for name in COLLECTIONS:
        database[name].create_index([("$**", TEXT)], name="text_all")


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def to_object_ids(values: Iterable[Any]) -> List[ObjectId]:
    ids = []
    for value in values:
        oid = to_object_id(value)
        if oid is None:
            logger.warning("Ignoring malformed reference id %r", value)
            continue
        ids.append(oid)
    return ids


def serialize_document(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    data = dict(doc)
    if isinstance(data.get("_id"), ObjectId):
        data["id"] = str(data.pop("_id"))
    return data


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_document(database: Database, collection_name: str, data: Any) -> Dict[str, Any]:
    """Insert a document (dict or pydantic model) with timestamps; return it with its ``_id``."""
    if hasattr(data, "model_dump"):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    data_dict["created_at"] = _now()
    data_dict["updated_at"] = _now()

    result = database[collection_name].insert_one(data_dict)
    data_dict["_id"] = result.inserted_id
    return data_dict


def get_document(
    database: Database,
    collection_name: str,
    doc_id: Any,
    projection: Optional[Dict[str, int]] = None,
) -> Optional[Dict[str, Any]]:
    oid = to_object_id(doc_id)
    if oid is None:
        return None
    return database[collection_name].find_one({"_id": oid}, projection)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    projection: Optional[Dict[str, int]] = None,
    sort: Optional[Sequence[Tuple[str, int]]] = None,
    skip: int = 0,
) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(list(sort))
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def count_documents(database: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None) -> int:
    return database[collection_name].count_documents(filter_dict or {})


def aggregate_documents(database: Database, collection_name: str, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return list(database[collection_name].aggregate(pipeline))


def update_document(database: Database, collection_name: str, doc_id: Any, fields: Dict[str, Any]) -> bool:
    """Overwrite the given fields; identifiers are never written."""
    oid = to_object_id(doc_id)
    if oid is None:
        return False
    values = {k: v for k, v in fields.items() if k not in ("_id", "id")}
    values["updated_at"] = _now()
    result = database[collection_name].update_one({"_id": oid}, {"$set": values})
    return result.matched_count > 0


def delete_document(database: Database, collection_name: str, doc_id: Any) -> bool:
    oid = to_object_id(doc_id)
    if oid is None:
        return False
    result = database[collection_name].delete_one({"_id": oid})
    return result.deleted_count > 0
