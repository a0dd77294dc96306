"""
MongoDB access.

A single Database handle is created at startup and passed to whatever needs
it. User documents carry a ``version`` counter; every write to an account
goes through ``mutate_user`` which only commits if the version it read is
still current, so two concurrent requests on the same account cannot
overwrite each other's changes.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.errors import DuplicateKeyError

from config import Settings
from errors import ConcurrentModificationError, ConflictError, NotFoundError, ValidationError
from schemas import User

logger = logging.getLogger(__name__)

USER_COLLECTION = "user"
MUTABLE_FIELDS = ("preferences", "wallet", "portfolio", "alerts", "processed_payments")


def to_object_id(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise ValidationError("Invalid id")


class Database:
    def __init__(self, client: MongoClient, name: str, mutation_retries: int = 5):
        self.client = client
        self.db = client[name]
        self.mutation_retries = mutation_retries

    @classmethod
    def connect(cls, settings: Settings) -> "Database":
        client = MongoClient(settings.database_url, tz_aware=True)
        logger.info("Connected to MongoDB database %s", settings.database_name)
        return cls(client, settings.database_name, settings.mutation_retries)

    def close(self) -> None:
        self.client.close()

    @property
    def users(self):
        return self.db[USER_COLLECTION]

    def ensure_indexes(self) -> None:
        self.users.create_index("email", unique=True)
        self.users.create_index("api_token", unique=True)

    # --------- Generic helpers ---------

    def create_document(self, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
        if isinstance(data, BaseModel):
            doc = data.model_dump(by_alias=True)
        else:
            doc = dict(data)
        now = datetime.now(timezone.utc)
        doc["created_at"] = now
        doc["updated_at"] = now
        result = self.db[collection_name].insert_one(doc)
        return str(result.inserted_id)

    def get_documents(self, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                      limit: Optional[int] = None) -> List[Dict[str, Any]]:
        cursor = self.db[collection_name].find(filter_dict or {})
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    # --------- Users ---------

    def create_user(self, user: User) -> str:
        try:
            return self.create_document(USER_COLLECTION, user)
        except DuplicateKeyError:
            raise ConflictError("An account with this email already exists")

    def find_user(self, user_id: str) -> User:
        doc = self.users.find_one({"_id": to_object_id(user_id)})
        if not doc:
            raise NotFoundError("User not found")
        return User.model_validate(doc)

    def find_user_by_token(self, token: str) -> Optional[Dict[str, Any]]:
        return self.users.find_one({"api_token": token})

    def mutate_user(self, user_id: str, change: Callable[[User], User]) -> User:
        """
        Apply ``change`` to the stored user and persist the result atomically.

        ``change`` must be a pure function of the user it receives; it may be
        called more than once when another writer gets in first. Exceptions it
        raises propagate before anything is written.
        """
        oid = to_object_id(user_id)
        for attempt in range(1, self.mutation_retries + 1):
            doc = self.users.find_one({"_id": oid})
            if not doc:
                raise NotFoundError("User not found")
            current = User.model_validate(doc)
            updated = change(current)

            before = current.model_dump(by_alias=True, include=set(MUTABLE_FIELDS))
            after = updated.model_dump(by_alias=True, include=set(MUTABLE_FIELDS))
            changes = {k: v for k, v in after.items() if before.get(k) != v}
            if not changes:
                return current

            changes["updated_at"] = datetime.now(timezone.utc)
            result = self.users.update_one(
                {"_id": oid, "version": current.version},
                {"$set": changes, "$inc": {"version": 1}},
            )
            if result.matched_count == 1:
                return updated.model_copy(update={"version": current.version + 1})
            logger.info("Version conflict on user %s (attempt %d/%d)", user_id, attempt, self.mutation_retries)

        raise ConcurrentModificationError("Account was modified concurrently, please retry")
