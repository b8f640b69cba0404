"""Advisory lock serializing runs that share an output directory.

Uses flock() so two processes cannot interleave the hash-marker
read/compare/write sequence.
"""

from __future__ import annotations

import contextlib
import fcntl
import os
import time
from pathlib import Path
from typing import Iterator

from .errors import PipelineLocked


LOCK_FILE = ".etl.lock"


@contextlib.contextmanager
def output_lock(
    output_dir: Path, timeout: float = 30.0, poll_interval: float = 0.1
) -> Iterator[Path]:
    """Hold an exclusive lock on ``output_dir`` for the duration of the block.

    Raises:
        PipelineLocked: another process kept the lock for longer than ``timeout``.
    """
    lock_path = Path(output_dir) / LOCK_FILE
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(str(lock_path), os.O_CREAT | os.O_RDWR)
    try:
        deadline = time.monotonic() + timeout
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    raise PipelineLocked(
                        f"Output directory {output_dir} is locked by another run"
                    ) from None
                time.sleep(poll_interval)
        try:
            yield lock_path
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)
