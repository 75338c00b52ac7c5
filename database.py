"""
MongoDB access

One collection per entity type. Documents go in and out as plain dicts;
helpers here translate ObjectIds to the string "id" the API exposes.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from bson import ObjectId
from loguru import logger
from pydantic import BaseModel
from pymongo import MongoClient, ReturnDocument
from pymongo.database import Database

from config import settings

client = MongoClient(settings.DATABASE_URL, serverSelectionTimeoutMS=5000, tz_aware=True)
db: Database = client[settings.DATABASE_NAME]

SortSpec = Sequence[Tuple[str, int]]


def get_db() -> Database:
    return db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Normalize _id to a string id"""
    if doc is None:
        return None
    out = dict(doc)
    if "_id" in out:
        out["id"] = str(out.pop("_id"))
    return out


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    data_dict = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = utcnow()
    data_dict.setdefault("createdAt", now)
    data_dict["updatedAt"] = now
    result = database[collection_name].insert_one(data_dict)
    data_dict["_id"] = result.inserted_id
    logger.debug(f"Inserted {collection_name}/{result.inserted_id}")
    return data_dict


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[SortSpec] = None,
    skip: int = 0,
    limit: int = 0,
    projection: Optional[Dict[str, Any]] = None,
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


def find_document(database: Database, collection_name: str, filter_dict: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return database[collection_name].find_one(filter_dict)


def find_by_id(database: Database, collection_name: str, identifier: Any) -> Optional[Dict[str, Any]]:
    oid = to_object_id(identifier)
    if oid is None:
        return None
    return database[collection_name].find_one({"_id": oid})


def update_document(
    database: Database,
    collection_name: str,
    filter_dict: Dict[str, Any],
    changes: Dict[str, Any],
    inc: Optional[Dict[str, int]] = None,
) -> Optional[Dict[str, Any]]:
    update: Dict[str, Any] = {"$set": {**changes, "updatedAt": utcnow()}}
    if inc:
        update["$inc"] = inc
    return database[collection_name].find_one_and_update(
        filter_dict, update, return_document=ReturnDocument.AFTER
    )


def delete_document(database: Database, collection_name: str, filter_dict: Dict[str, Any]) -> int:
    res = database[collection_name].delete_one(filter_dict)
    return res.deleted_count


def ensure_indexes(database: Database) -> None:
    """Indexes backing the list sort orders and unique lookups."""
    database["blogs"].create_index("slug", unique=True, sparse=True)
    database["blogs"].create_index([("published", 1), ("createdAt", -1)])
    database["categories"].create_index([("section", 1), ("order", 1)])
    database["currentwork"].create_index([("isFeatured", -1), ("order", 1)])
    database["projects"].create_index([("featured", -1), ("createdAt", -1)])
    database["skills"].create_index("name", unique=True)
    database["users"].create_index("email", unique=True)


def increment(database: Database, collection_name: str, filter_dict: Dict[str, Any], field: str, amount: int = 1) -> Optional[Dict[str, Any]]:
    return database[collection_name].find_one_and_update(
        filter_dict, {"$inc": {field: amount}}, return_document=ReturnDocument.AFTER
    )
