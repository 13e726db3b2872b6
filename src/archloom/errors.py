"""Exception hierarchy shared by the graph, rule engine, and freeze store."""

from __future__ import annotations


class ArchloomError(Exception):
    """Base class for all archloom errors."""


class ConfigurationError(ArchloomError):
    """Raised when a rule set is malformed and cannot be evaluated at all."""


class GraphQueryError(ArchloomError):
    """Raised when a fact graph snapshot violates its own invariants."""


class BaselineStoreError(ArchloomError):
    """Raised when a freeze baseline cannot be read or written."""
