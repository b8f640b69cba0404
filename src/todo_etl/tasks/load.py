"""Loading stage: persist the Dataset when its fingerprint changed.

Layout of the output directory:
  latest.json               newest Dataset
  dataset-<version>.json    one backup per change, pruned to ``max_backups``
  latest.hash               hex digest of the last saved task list
"""

from __future__ import annotations

import contextlib
import json
from pathlib import Path

from ..errors import LoadFailed, RetentionCleanupFailed
from ..fingerprint import fingerprint, read_hash_marker, write_hash_marker
from ..lock import output_lock
from ..logging import get_logger
from ..models import Dataset, LoadResult
from ..utils import atomic_write


LATEST_FILE = "latest.json"
BACKUP_PREFIX = "dataset-"
BACKUP_SUFFIX = ".json"


def backup_name(version: str) -> str:
    return f"{BACKUP_PREFIX}{version}{BACKUP_SUFFIX}"


def list_backups(output_dir: Path) -> list[Path]:
    """Versioned backups, most recent first."""
    files = [
        p
        for p in Path(output_dir).iterdir()
        if p.is_file() and p.name.startswith(BACKUP_PREFIX) and p.name.endswith(BACKUP_SUFFIX)
    ]
    return sorted(files, key=lambda p: p.name, reverse=True)


def prune_backups(output_dir: Path, keep: int) -> list[Path]:
    """Delete every backup beyond the ``keep`` most recent ones.

    All deletions are attempted; failures are reported together afterwards.
    """
    logger = get_logger("todo_etl.load")
    try:
        backups = list_backups(output_dir)
    except OSError as e:
        raise RetentionCleanupFailed(f"Cannot list backups in {output_dir}: {e}") from e

    removed: list[Path] = []
    failures: list[str] = []
    for p in backups[keep:]:
        try:
            p.unlink()
        except OSError as e:
            failures.append(f"{p.name}: {e}")
            continue
        removed.append(p)
        logger.info("Cleaned up old backup: %s", p.name)
    if failures:
        raise RetentionCleanupFailed("Could not remove " + "; ".join(failures))
    return removed


def load(
    dataset: Dataset,
    output_dir: Path,
    max_backups: int = 5,
    lock_timeout: float = 30.0,
) -> LoadResult:
    logger = get_logger("todo_etl.load")
    logger.info("Starting data loading...")
    output_dir = Path(output_dir)
    current_hash = fingerprint(dataset.tasks)

    # Compare and write under one lock so concurrent runs cannot interleave.
    with contextlib.ExitStack() as stack:
        try:
            stack.enter_context(output_lock(output_dir, timeout=lock_timeout))
        except OSError as e:
            raise LoadFailed(f"Cannot lock output directory: {e}") from e

        try:
            previous_hash = read_hash_marker(output_dir)
        except OSError as e:
            raise LoadFailed(f"Cannot read previous hash: {e}") from e

        if previous_hash is None:
            logger.info("No previous hash found, treating as new data")
        elif previous_hash == current_hash:
            logger.info("Data unchanged, skipping save")
            return LoadResult(saved=False, reason="No changes detected")

        saved = dataset.with_hash(current_hash)
        body = json.dumps(saved.to_dict(), indent=2, ensure_ascii=False)
        try:
            atomic_write(output_dir / LATEST_FILE, body)
            atomic_write(output_dir / backup_name(saved.version), body)
            # Marker goes last: an interrupted save is redone by the next run.
            write_hash_marker(output_dir, current_hash)
        except OSError as e:
            raise LoadFailed(f"Data loading failed: {e}") from e

        try:
            prune_backups(output_dir, max_backups)
        except RetentionCleanupFailed as e:
            logger.warning("Cleanup failed: %s", e)

    logger.info("Data loaded successfully: %d tasks saved", saved.count)
    logger.info("Version: %s, Hash: %s...", saved.version, current_hash[:12])
    return LoadResult(
        saved=True,
        version=saved.version,
        hash=current_hash,
        count=saved.count,
        stats=saved.statistics,
    )
