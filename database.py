"""
Database Helpers

MongoDB connection management and small document helpers shared by the
account and blog services.

The client is created once on application startup (see ``connect``) and
closed on shutdown. Request handlers get the database through the
``get_db`` dependency so tests can swap it for an in-memory one.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

import config

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db: Optional[Database] = None


def connect(url: str = config.DATABASE_URL, name: str = config.DATABASE_NAME) -> Database:
    global client, db
    client = MongoClient(url)
    db = client[name]
    ensure_indexes(db)
    logger.info("Connected to MongoDB database %s", name)
    return db


def close() -> None:
    global client, db
    if client is not None:
        client.close()
        logger.info("MongoDB connection closed")
    client = None
    db = None


def ensure_indexes(database: Database) -> None:
    database["user"].create_index([("email", ASCENDING)], unique=True)
    database["blog"].create_index([("category", ASCENDING)])
    database["blog"].create_index([("author", ASCENDING)])


def get_db() -> Database:
    if db is None:
        raise RuntimeError("Database is not connected")
    return db


def utcnow() -> datetime:
    # Mongo hands back naive UTC datetimes, store them the same way
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse a path/query id; ``None`` when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def create_document(database: Database, collection_name: str, data: dict) -> dict:
    now = utcnow()
    doc = dict(data)
    doc.setdefault("created_at", now)
    doc.setdefault("updated_at", now)
    result = database[collection_name].insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def get_documents(database: Database, collection_name: str, filter_dict: Optional[dict] = None,
                  limit: Optional[int] = None) -> list:
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize(value: Any) -> Any:
    """Convert a stored document into JSON-safe primitives."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize(v) for v in value]
    return value
