"""Pipeline stages, one module per stage.

`extract` reads the store, `transform` builds the Dataset, `load` persists it
when its fingerprint changed. Stages do not call each other; `todo_etl.core`
sequences them.
"""

from .extract import extract
from .load import load, prune_backups
from .transform import compute_statistics, generate_version, transform

__all__ = [
    "extract",
    "transform",
    "compute_statistics",
    "generate_version",
    "load",
    "prune_backups",
]
