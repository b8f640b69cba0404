from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from .errors import MalformedRecord
from .utils import coerce_datetime


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def parse(cls, value: Any) -> "Priority | None":
        try:
            return cls(value)
        except (TypeError, ValueError):
            return None


# Order matters: the fingerprint serializes records field by field in this order.
FIELD_ORDER = (
    "id",
    "title",
    "description",
    "completed",
    "priority",
    "dueDate",
    "createdAt",
    "updatedAt",
)


@dataclass(frozen=True)
class TaskRecord:
    """A task document as read from the store, shape-checked but not normalized."""

    id: str
    title: str
    description: str | None = None
    completed: bool = False
    priority: str | None = None
    due_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "TaskRecord":
        raw_id = doc.get("_id", doc.get("id"))
        if raw_id is None:
            raise MalformedRecord(None, "missing id")
        record_id = str(raw_id)

        title = doc.get("title")
        if not isinstance(title, str) or not title.strip():
            raise MalformedRecord(record_id, "missing title")

        description = doc.get("description")
        if description is not None and not isinstance(description, str):
            description = str(description)

        dates = {}
        for attr, key in (
            ("due_date", "dueDate"),
            ("created_at", "createdAt"),
            ("updated_at", "updatedAt"),
        ):
            try:
                dates[attr] = coerce_datetime(doc.get(key))
            except (TypeError, ValueError) as exc:
                raise MalformedRecord(record_id, f"invalid {key}: {exc}") from exc

        return cls(
            id=record_id,
            title=title,
            description=description,
            completed=bool(doc.get("completed", False)),
            priority=doc.get("priority"),
            **dates,
        )


@dataclass(frozen=True)
class NormalizedTask:
    id: str
    title: str
    description: str | None
    completed: bool
    priority: str
    due_date: str | None
    created_at: str | None
    updated_at: str | None

    def to_dict(self) -> dict[str, Any]:
        values = (
            self.id,
            self.title,
            self.description,
            self.completed,
            self.priority,
            self.due_date,
            self.created_at,
            self.updated_at,
        )
        return dict(zip(FIELD_ORDER, values))


@dataclass(frozen=True)
class Statistics:
    total: int = 0
    completed: int = 0
    pending: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    overdue: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "pending": self.pending,
            "byPriority": {"high": self.high, "medium": self.medium, "low": self.low},
            "overdue": self.overdue,
        }


@dataclass(frozen=True)
class Dataset:
    extracted_at: str
    version: str
    tasks: tuple[NormalizedTask, ...]
    statistics: Statistics
    source: str = "mongodb-todo-collection"
    pipeline: str = "github-actions-etl"
    data_hash: str | None = None
    changed: bool | None = None

    @property
    def count(self) -> int:
        return len(self.tasks)

    def with_hash(self, data_hash: str) -> "Dataset":
        return replace(self, data_hash=data_hash, changed=True)

    def to_dict(self) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "extractedAt": self.extracted_at,
            "version": self.version,
            "count": self.count,
            "statistics": self.statistics.to_dict(),
            "source": self.source,
            "pipeline": self.pipeline,
        }
        if self.data_hash is not None:
            metadata["dataHash"] = self.data_hash
        if self.changed is not None:
            metadata["changed"] = self.changed
        return {"metadata": metadata, "tasks": [t.to_dict() for t in self.tasks]}


@dataclass(frozen=True)
class LoadResult:
    saved: bool
    reason: str | None = None
    version: str | None = None
    hash: str | None = None
    count: int | None = None
    stats: Statistics | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"saved": self.saved}
        for key in ("reason", "version", "hash", "count"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        if self.stats is not None:
            out["stats"] = self.stats.to_dict()
        return out
