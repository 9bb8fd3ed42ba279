"""
Database access

MongoDB connection bootstrap plus the handful of queries the user endpoints
need. Every function takes the target collection explicitly so the API layer
can inject a different one (tests use an in-memory collection).
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from dotenv import load_dotenv
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL") or os.getenv("MONGO_URI")
DATABASE_NAME = os.getenv("DATABASE_NAME", "user_db")
USER_COLLECTION = "users"

client: Optional[MongoClient] = None
db = None

if DATABASE_URL:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]
else:
    logger.warning("DATABASE_URL is not set, database access is disabled")


def ensure_user_indexes(collection: Collection) -> None:
    # Unique email index makes concurrent creates with the same email fail
    # at write time instead of relying on the pre-insert lookup.
    collection.create_index([("email", ASCENDING)], unique=True)
    collection.create_index([("created_at", DESCENDING)])
    logger.info("Indexes ensured on collection %s", collection.name)


def create_document(collection: Collection, data: Dict[str, Any]) -> Dict[str, Any]:
    """Stamp created_at/updated_at, insert, and return the stored document."""
    now = datetime.now(timezone.utc)
    document = dict(data)
    document["created_at"] = now
    document["updated_at"] = now
    result = collection.insert_one(document)
    document["_id"] = result.inserted_id
    return document


def get_documents(
    collection: Collection,
    filter_dict: Optional[Dict[str, Any]] = None,
    skip: int = 0,
    limit: int = 0,
) -> List[Dict[str, Any]]:
    """Newest first by created_at."""
    cursor = collection.find(filter_dict or {}).sort("created_at", DESCENDING)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def count_documents(collection: Collection) -> int:
    return collection.count_documents({})


def get_document(collection: Collection, object_id: ObjectId) -> Optional[Dict[str, Any]]:
    return collection.find_one({"_id": object_id})


def email_exists(
    collection: Collection, email: str, exclude_id: Optional[ObjectId] = None
) -> bool:
    query: Dict[str, Any] = {"email": email}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return collection.find_one(query, projection={"_id": 1}) is not None


def update_document(
    collection: Collection,
    object_id: ObjectId,
    changes: Dict[str, Any],
    remove: Optional[List[str]] = None,
) -> Optional[Dict[str, Any]]:
    """Apply $set/$unset in a single write and return the document as stored afterwards."""
    update: Dict[str, Any] = {"$set": changes}
    if remove:
        update["$unset"] = {field: "" for field in remove}
    return collection.find_one_and_update(
        {"_id": object_id},
        update,
        return_document=ReturnDocument.AFTER,
    )


def delete_document(collection: Collection, object_id: ObjectId) -> int:
    result = collection.delete_one({"_id": object_id})
    return result.deleted_count
