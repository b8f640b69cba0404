from __future__ import annotations


class EtlError(RuntimeError):
    """Base class for every failure the pipeline reports."""


class ConfigError(EtlError):
    pass


class PipelineError(EtlError):
    pass


class StoreUnavailable(EtlError):
    """The task store could not be reached or queried."""


class MalformedRecord(EtlError):
    def __init__(self, record_id: str | None, reason: str):
        self.record_id = record_id or "<unknown>"
        self.reason = reason
        super().__init__(f"Malformed task record {self.record_id}: {reason}")


class LoadFailed(EtlError):
    """Writing an output artifact failed; the run is aborted."""


class RetentionCleanupFailed(EtlError):
    """Pruning old backups failed. Never fatal to a run."""


class PipelineLocked(EtlError):
    pass
