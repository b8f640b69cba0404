from __future__ import annotations

import platform
import time
from datetime import datetime
from enum import Enum
from typing import Callable

from .config import EtlConfig
from .errors import LoadFailed, PipelineError
from .logging import get_logger
from .models import LoadResult
from .store import MongoTaskStore, TaskStore
from .tasks import extract, load, transform
from .utils import redact_uri, utc_now


class RunState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    EXTRACTING = "extracting"
    TRANSFORMING = "transforming"
    LOADING = "loading"
    COMMITTED = "committed"
    SKIPPED = "skipped"
    FAILED = "failed"
    DISCONNECTED = "disconnected"


TERMINAL_STATES = {RunState.COMMITTED, RunState.SKIPPED, RunState.FAILED}

StoreFactory = Callable[[EtlConfig], TaskStore]


class Pipeline:
    """Runs extract -> transform -> load once against a store.

    The store is opened as a context manager and closed on every exit path.
    Errors from any stage propagate to the caller after the store is closed.
    An instance handles a single run.
    """

    def __init__(
        self,
        config: EtlConfig,
        store_factory: StoreFactory = MongoTaskStore,
        clock: Callable[[], datetime] = utc_now,
        name: str = "pipeline",
    ):
        self.config = config
        self.store_factory = store_factory
        self.clock = clock
        self.name = name
        self.state = RunState.IDLE
        self.history: list[RunState] = [RunState.IDLE]
        self.logger = get_logger(f"todo_etl.{self.name}")

    @property
    def outcome(self) -> RunState | None:
        for state in reversed(self.history):
            if state in TERMINAL_STATES:
                return state
        return None

    def _enter(self, state: RunState) -> None:
        self.state = state
        self.history.append(state)
        self.logger.info("State -> %s", state.value)

    def _setup_directories(self) -> None:
        try:
            self.config.output_dir.mkdir(parents=True, exist_ok=True)
            self.config.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LoadFailed(f"Failed to setup directories: {e}") from e
        self.logger.info("Directories setup completed")

    def run(self) -> LoadResult:
        if self.state is not RunState.IDLE:
            raise PipelineError("Pipeline has already run; create a new instance")

        start = time.monotonic()
        self.logger.info("Starting ETL process...")
        self.logger.info("Environment: Python %s", platform.python_version())
        self.logger.info("MongoDB URI: %s", redact_uri(self.config.mongodb_uri))
        self.logger.info("Output Path: %s", self.config.output_dir)

        count = 0
        try:
            self._setup_directories()
            self._enter(RunState.CONNECTING)
            with self.store_factory(self.config) as store:
                self._enter(RunState.EXTRACTING)
                records = extract(store)

                self._enter(RunState.TRANSFORMING)
                dataset = transform(records, now=self.clock())
                count = dataset.count

                self._enter(RunState.LOADING)
                result = load(
                    dataset,
                    self.config.output_dir,
                    max_backups=self.config.max_backups,
                    lock_timeout=self.config.lock_timeout,
                )
                self._enter(RunState.COMMITTED if result.saved else RunState.SKIPPED)
        except Exception as e:
            self._enter(RunState.FAILED)
            self.logger.error("ETL process failed: %s", e)
            raise
        finally:
            self._enter(RunState.DISCONNECTED)

        duration = time.monotonic() - start
        self.logger.info("ETL process completed in %.2fs", duration)
        if result.saved:
            self.logger.info("Summary: %d tasks processed, version %s", count, result.version)
            self.logger.info(
                "Stats: %d completed, %d pending, %d overdue",
                result.stats.completed,
                result.stats.pending,
                result.stats.overdue,
            )
        else:
            self.logger.info("Summary: %d tasks processed, %s", count, result.reason)
        return result
