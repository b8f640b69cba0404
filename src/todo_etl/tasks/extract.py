"""Extraction stage: read every task from the store, newest first."""

from __future__ import annotations

from ..logging import get_logger
from ..models import TaskRecord
from ..store import TaskStore


def extract(store: TaskStore) -> list[TaskRecord]:
    logger = get_logger("todo_etl.extract")
    logger.info("Starting data extraction...")
    docs = store.find_all()
    records = [TaskRecord.from_document(doc) for doc in docs]
    logger.info("Extracted %d tasks from database", len(records))
    return records
