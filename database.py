"""
MongoDB access for the Store Ratings API.

Collections (lowercased schema class names):
- user: system users (SYSTEM_ADMIN, NORMAL_USER, STORE_OWNER)
- store: registered stores
- rating: one rating per (user, store) pair
"""

import logging
from functools import lru_cache
from typing import Annotated, Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import get_settings
from errors import ValidationError

logger = logging.getLogger(__name__)


@lru_cache
def get_client() -> MongoClient:
    settings = get_settings()
    return MongoClient(settings.DATABASE_URL)


def get_db() -> Database:
    """FastAPI dependency returning the application database."""
    return get_client()[get_settings().DATABASE_NAME]


DbSession = Annotated[Database, Depends(get_db)]


def ensure_indexes(db: Database) -> None:
    """Create the unique indexes that back every uniqueness rule."""
    db["user"].create_index([("email", ASCENDING)], unique=True, name="uniq_user_email")
    db["store"].create_index([("name", ASCENDING)], unique=True, name="uniq_store_name")
    db["store"].create_index([("email", ASCENDING)], unique=True, name="uniq_store_email")
    db["store"].create_index([("owner_id", ASCENDING)], name="store_owner")
    db["rating"].create_index(
        [("user_id", ASCENDING), ("store_id", ASCENDING)], unique=True, name="uniq_rating_user_store"
    )
    db["rating"].create_index([("store_id", ASCENDING)], name="rating_store")
    logger.info("Indexes ensured on database %s", db.name)


def to_obj_id(id_str: str, what: str = "id") -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {what}")


def sanitize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    d.pop("password_hash", None)
    return d


def normalize_email(email: str) -> str:
    return email.strip().lower()
