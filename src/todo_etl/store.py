from __future__ import annotations

from typing import Any, Mapping, Protocol

from pymongo import DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from .config import EtlConfig
from .errors import StoreUnavailable
from .logging import get_logger
from .utils import redact_uri


TASK_FIELDS = (
    "title",
    "description",
    "completed",
    "priority",
    "dueDate",
    "createdAt",
    "updatedAt",
)


class TaskStore(Protocol):
    """Read-only view of the task collection, used as a context manager."""

    def __enter__(self) -> "TaskStore": ...

    def __exit__(self, exc_type, exc, tb) -> None: ...

    def find_all(self) -> list[Mapping[str, Any]]:
        """All documents, newest ``createdAt`` first."""
        ...


class MongoTaskStore:
    def __init__(self, config: EtlConfig):
        self.config = config
        self.client: MongoClient | None = None
        self.logger = get_logger("todo_etl.store")

    def connect(self) -> None:
        self.logger.info("Connecting to MongoDB...")
        try:
            self.client = MongoClient(
                self.config.mongodb_uri,
                serverSelectionTimeoutMS=self.config.timeout_ms,
            )
            # MongoClient connects lazily; ping forces server selection now.
            self.client.admin.command("ping")
        except PyMongoError as e:
            self.close()
            raise StoreUnavailable(f"MongoDB connection failed: {e}") from e
        self.logger.info(
            "MongoDB connected successfully: %s", redact_uri(self.config.mongodb_uri)
        )

    def close(self) -> None:
        if self.client is None:
            return
        try:
            self.client.close()
            self.logger.info("MongoDB connection closed")
        except PyMongoError as e:
            self.logger.warning("MongoDB disconnect error: %s", e)
        finally:
            self.client = None

    def __enter__(self) -> "MongoTaskStore":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _collection(self):
        if self.client is None:
            raise StoreUnavailable("MongoDB is not connected")
        db = self.client.get_default_database(default=self.config.database)
        return db[self.config.collection]

    def find_all(self) -> list[Mapping[str, Any]]:
        projection = {field: 1 for field in TASK_FIELDS}
        try:
            cursor = self._collection().find({}, projection).sort("createdAt", DESCENDING)
            return list(cursor)
        except PyMongoError as e:
            raise StoreUnavailable(f"Data extraction failed: {e}") from e
