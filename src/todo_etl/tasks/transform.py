"""Transformation stage.

Turns store records into the external Dataset schema: trimmed text, boolean
``completed``, a priority that always lands in one of the three buckets, and
ISO-8601 dates. Statistics are computed over the normalized tasks. No I/O.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping

from ..logging import get_logger
from ..models import Dataset, NormalizedTask, Priority, Statistics, TaskRecord
from ..utils import coerce_datetime, iso_utc, utc_now


def generate_version(now: datetime) -> str:
    """Minute-granular, lexically sortable token such as ``v2024.01.31.0915``."""
    now = coerce_datetime(now)
    return f"v{now:%Y.%m.%d.%H%M}"


def _normalize(record: TaskRecord, logger) -> NormalizedTask:
    priority = Priority.parse(record.priority)
    if priority is None:
        if record.priority is not None:
            logger.warning(
                "Task %s has unrecognized priority %r, using Medium",
                record.id,
                record.priority,
            )
        priority = Priority.MEDIUM

    description = record.description.strip() if record.description else None
    return NormalizedTask(
        id=record.id,
        title=record.title.strip(),
        description=description or None,
        completed=bool(record.completed),
        priority=priority.value,
        due_date=iso_utc(record.due_date),
        created_at=iso_utc(record.created_at),
        updated_at=iso_utc(record.updated_at),
    )


def compute_statistics(tasks: Iterable[NormalizedTask], now: datetime) -> Statistics:
    now = coerce_datetime(now)
    counts = {"total": 0, "completed": 0, "High": 0, "Medium": 0, "Low": 0, "overdue": 0}
    for t in tasks:
        counts["total"] += 1
        counts[t.priority] += 1
        if t.completed:
            counts["completed"] += 1
        elif t.due_date and coerce_datetime(t.due_date) < now:
            counts["overdue"] += 1
    return Statistics(
        total=counts["total"],
        completed=counts["completed"],
        pending=counts["total"] - counts["completed"],
        high=counts["High"],
        medium=counts["Medium"],
        low=counts["Low"],
        overdue=counts["overdue"],
    )


def transform(
    records: Iterable[TaskRecord | Mapping[str, Any]],
    now: datetime | None = None,
) -> Dataset:
    """Build a Dataset from extracted records.

    Plain mappings are validated through ``TaskRecord.from_document`` first, so
    a record without a title raises ``MalformedRecord`` naming its id.
    """
    logger = get_logger("todo_etl.transform")
    logger.info("Starting data transformation...")
    now = coerce_datetime(now) if now is not None else utc_now()

    tasks = []
    for r in records:
        record = r if isinstance(r, TaskRecord) else TaskRecord.from_document(r)
        tasks.append(_normalize(record, logger))

    dataset = Dataset(
        extracted_at=iso_utc(now),
        version=generate_version(now),
        tasks=tuple(tasks),
        statistics=compute_statistics(tasks, now),
    )
    logger.info("Transformation completed: %d tasks processed", dataset.count)
    return dataset
