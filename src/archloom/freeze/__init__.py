"""Freeze domain: violation baselines and their stores."""

from archloom.freeze.freezer import Freezer
from archloom.freeze.store import (
    BaselineStore,
    FileBaselineStore,
    MemoryBaselineStore,
    Signature,
    SqliteBaselineStore,
)

__all__ = [
    "BaselineStore",
    "FileBaselineStore",
    "Freezer",
    "MemoryBaselineStore",
    "Signature",
    "SqliteBaselineStore",
]
