from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .fingerprint import read_hash_marker
from .tasks.load import LATEST_FILE, list_backups


def output_status(output_dir: Path) -> dict[str, Any]:
    """Summarize what the last saving run left in ``output_dir``. Read-only."""
    output_dir = Path(output_dir)
    latest = output_dir / LATEST_FILE
    if not output_dir.is_dir() or not latest.exists():
        return {
            "status": "ready",
            "latest_version": None,
            "extracted_at": None,
            "count": None,
            "hash": read_hash_marker(output_dir) if output_dir.is_dir() else None,
            "backups": [],
        }

    with open(latest, "r", encoding="utf-8") as f:
        metadata = json.load(f).get("metadata", {})
    return {
        "status": "available",
        "latest_version": metadata.get("version"),
        "extracted_at": metadata.get("extractedAt"),
        "count": metadata.get("count"),
        "hash": read_hash_marker(output_dir),
        "backups": [p.name for p in list_backups(output_dir)],
    }
