"""Change-detecting JSON export of the to-do task collection.

Extracts tasks from MongoDB, normalizes them, fingerprints the result and
writes a new versioned snapshot only when the fingerprint changed.
"""

from .config import EtlConfig, load_config
from .core import Pipeline, RunState

__all__ = ["EtlConfig", "load_config", "Pipeline", "RunState"]
