"""archloom: declarative architecture-conformance checks over a fact graph."""

__version__ = "0.3.0"
