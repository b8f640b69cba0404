from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Iterable, Mapping

from .models import FIELD_ORDER, NormalizedTask
from .utils import atomic_write


HASH_FILE = "latest.hash"


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def canonical_json(tasks: Iterable[NormalizedTask | Mapping[str, Any]]) -> str:
    """Compact JSON of the task list with a fixed key order per record.

    Key order is taken from FIELD_ORDER, never from the incoming mapping, so
    driver-dependent ordering cannot change the output.
    """
    rows = []
    for t in tasks:
        d = t.to_dict() if isinstance(t, NormalizedTask) else t
        rows.append({k: d.get(k) for k in FIELD_ORDER})
    return json.dumps(rows, separators=(",", ":"), ensure_ascii=False)


def fingerprint(tasks: Iterable[NormalizedTask | Mapping[str, Any]]) -> str:
    return sha256_bytes(canonical_json(tasks).encode("utf-8"))


def hash_path(output_dir: Path) -> Path:
    return Path(output_dir) / HASH_FILE


def read_hash_marker(output_dir: Path) -> str | None:
    """Return the stored digest, or None when no run has saved yet."""
    try:
        value = hash_path(output_dir).read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    return value or None


def write_hash_marker(output_dir: Path, digest: str) -> Path:
    """Replace the marker with ``digest``: one line, no trailing newline."""
    path = hash_path(output_dir)
    atomic_write(path, digest)
    return path
