"""
MongoDB database connection and helpers.
"""

from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Dict, Iterator, Optional

from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from mockbook.config import Config
from mockbook.utils.datetime_utils import format_iso_ist, get_now_ist
from mockbook.utils.exceptions import ConflictError
from mockbook.utils.logger import get_logger

logger = get_logger(__name__)

_client: Optional[MongoClient] = None


def get_database(config: Config) -> Database:
    """Get MongoDB database instance. Uses db name 'mockbook' unless MONGODB_DB_NAME is set."""
    global _client
    if _client is None:
        _client = MongoClient(
            config.mongo.uri,
            serverSelectionTimeoutMS=5000,
        )
    db_name = getattr(config.mongo, "db_name", None) or "mockbook"
    return _client.get_database(db_name)


def doc_with_id(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Convert MongoDB document for API: add 'id' from '_id' and remove '_id'.
    Returns None if doc is None.
    """
    if doc is None:
        return None
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d["_id"])
        del d["_id"]
    return d


def ensure_indexes(db: Database) -> None:
    """Create the indexes the booking invariants and hot queries rely on."""
    db["slots"].create_index([("interviewer_id", ASCENDING), ("start_time", ASCENDING)])
    db["slots"].create_index([("is_booked", ASCENDING), ("start_time", ASCENDING)])
    db["interviews"].create_index([("candidate_id", ASCENDING), ("status", ASCENDING)])
    db["interviews"].create_index("interviewer_id")
    db["interviews"].create_index("slot_id")
    db["payments"].create_index("interview_id")
    db["payments"].create_index("slot_id")
    db["payments"].create_index([("paid_by", ASCENDING), ("status", ASCENDING)])
    db["reminders"].create_index([("status", ASCENDING), ("fire_at", ASCENDING)])
    db["feedback"].create_index("interview_id", unique=True)
    db["ratings"].create_index([("interview_id", ASCENDING), ("candidate_id", ASCENDING)], unique=True)
    db["ratings"].create_index([("interviewer_id", ASCENDING), ("created_at", ASCENDING)])
    db["users"].create_index("email", unique=True)
    logger.info("[Mongo] Indexes ensured")


@contextmanager
def lease(collection: Collection, key: str, ttl_seconds: int, component: str = "Lease") -> Iterator[None]:
    """
    Hold a short-lived exclusive lease on `key` for the duration of the block.

    The lease is a document whose `_id` is the key; a second holder gets
    DuplicateKeyError. Leases left behind by a crashed holder are taken over
    once they expire.
    """
    now = get_now_ist()
    expires_at = format_iso_ist(now + timedelta(seconds=ttl_seconds))
    try:
        collection.insert_one({"_id": key, "expires_at": expires_at})
    except DuplicateKeyError:
        taken = collection.find_one_and_update(
            {"_id": key, "expires_at": {"$lt": format_iso_ist(now)}},
            {"$set": {"expires_at": expires_at}},
        )
        if taken is None:
            raise ConflictError("Another booking request is already in progress, please retry", component)
        logger.warning(f"[{component}] Took over expired lease {key}")
    try:
        yield
    finally:
        collection.delete_one({"_id": key, "expires_at": expires_at})
