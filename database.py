"""MongoDB access helpers.

The database handle is created once by ``connect`` and handed to the
services; nothing here reads the environment.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson.objectid import ObjectId
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import Settings

ORDER = "order"
USER = "user"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def connect(settings: Settings) -> Database:
    client = MongoClient(settings.mongo_uri, serverSelectionTimeoutMS=5000)
    return client[settings.mongo_db_name]


def ensure_indexes(db: Database) -> None:
    db[ORDER].create_index([("order_id", ASCENDING)], unique=True)
    db[ORDER].create_index([("user_id", ASCENDING)])
    db[USER].create_index([("google_id", ASCENDING)], unique=True)
    db[USER].create_index([("email", ASCENDING)], unique=True)


def ping(db: Database) -> bool:
    try:
        db.command("ping")
        return True
    except Exception:
        return False


def to_dict(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return doc
    d = {k: (str(v) if isinstance(v, ObjectId) else v) for k, v in doc.items()}
    if "_id" in d:
        d["id"] = d.pop("_id")
    return d


def create_document(db: Database, collection_name: str, data: Dict[str, Any]) -> str:
    now = utcnow()
    doc = dict(data)
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[Sequence[Tuple[str, int]]] = None,
    limit: Optional[int] = None,
) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(list(sort))
    if limit:
        cursor = cursor.limit(limit)
    return [to_dict(d) for d in cursor]
