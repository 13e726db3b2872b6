"""Pluggable persistence for freeze baselines.

A store maps a rule name to the set of violation signatures accepted when
the rule was frozen.  ``load`` returns ``None`` when no baseline exists yet
(as opposed to an empty baseline).  Every failure surfaces as
:class:`~archloom.errors.BaselineStoreError`, and ``store`` replaces a
rule's baseline all-or-nothing.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import sqlite3
import tempfile
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from archloom.errors import BaselineStoreError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from types import TracebackType

logger = logging.getLogger(__name__)

Signature = tuple[str, str, str]  # (rule_name, item, message)


class BaselineStore(Protocol):
    def load(self, rule_name: str) -> frozenset[Signature] | None: ...

    def store(self, rule_name: str, signatures: Iterable[Signature]) -> None: ...


class _Lifecycle:
    """Context-manager plumbing shared by the concrete stores."""

    def open(self) -> None:  # noqa: A003
        """Prepare the store before a run."""

    def close(self) -> None:
        """Flush and release resources after a run."""

    def __enter__(self) -> _Lifecycle:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def _sorted_entries(rule_name: str, signatures: Iterable[Signature]) -> list[tuple[str, str]]:
    entries: set[tuple[str, str]] = set()
    for sig_rule, item, message in signatures:
        if sig_rule != rule_name:
            msg = f"Signature for rule '{sig_rule}' cannot be stored under '{rule_name}'"
            raise BaselineStoreError(msg)
        entries.add((item, message))
    return sorted(entries)


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class MemoryBaselineStore(_Lifecycle):
    """Process-local store, mainly for tests and embedding."""

    def __init__(self) -> None:
        self._data: dict[str, frozenset[Signature]] = {}
        self._lock = threading.Lock()

    def load(self, rule_name: str) -> frozenset[Signature] | None:
        with self._lock:
            return self._data.get(rule_name)

    def store(self, rule_name: str, signatures: Iterable[Signature]) -> None:
        entries = _sorted_entries(rule_name, signatures)
        with self._lock:
            self._data[rule_name] = frozenset((rule_name, i, m) for i, m in entries)


# ---------------------------------------------------------------------------
# File store
# ---------------------------------------------------------------------------


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


class FileBaselineStore(_Lifecycle):
    """One JSON file per rule under *directory*.

    Entries are written sorted, one per line, so baselines diff cleanly in
    version control.  Writes go to a temporary file that is renamed over the
    target, so a crash never leaves a half-written baseline.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def open(self) -> None:  # noqa: A003
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"Cannot create baseline directory {self.directory}: {exc}"
            raise BaselineStoreError(msg) from exc

    def path_for(self, rule_name: str) -> Path:
        """Return the file backing *rule_name*'s baseline."""
        digest = hashlib.sha256(rule_name.encode("utf-8")).hexdigest()[:12]
        slug = _UNSAFE_CHARS.sub("-", rule_name).strip("-")[:60] or "rule"
        return self.directory / f"{slug}-{digest}.json"

    def load(self, rule_name: str) -> frozenset[Signature] | None:
        path = self.path_for(rule_name)
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            msg = f"Cannot read baseline for rule '{rule_name}' from {path}: {exc}"
            raise BaselineStoreError(msg) from exc

        if not isinstance(data, dict) or data.get("rule") != rule_name:
            msg = f"Baseline file {path} does not belong to rule '{rule_name}'"
            raise BaselineStoreError(msg)
        violations = data.get("violations")
        if not isinstance(violations, list):
            msg = f"Baseline file {path}: 'violations' must be a list"
            raise BaselineStoreError(msg)

        signatures: set[Signature] = set()
        for entry in violations:
            if not isinstance(entry, dict) or "item" not in entry or "message" not in entry:
                msg = f"Baseline file {path}: malformed entry {entry!r}"
                raise BaselineStoreError(msg)
            signatures.add((rule_name, str(entry["item"]), str(entry["message"])))
        return frozenset(signatures)

    def store(self, rule_name: str, signatures: Iterable[Signature]) -> None:
        entries = _sorted_entries(rule_name, signatures)
        payload = {
            "rule": rule_name,
            "violations": [{"item": item, "message": message} for item, message in entries],
        }
        text = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
        path = self.path_for(rule_name)

        tmp_name: str | None = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.directory,
                prefix=".tmp-",
                suffix=".json",
                delete=False,
            ) as fh:
                tmp_name = fh.name
                fh.write(text)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            msg = f"Cannot write baseline for rule '{rule_name}' to {path}: {exc}"
            raise BaselineStoreError(msg) from exc
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        logger.debug("Stored %d baseline entries for rule '%s'", len(entries), rule_name)


# ---------------------------------------------------------------------------
# SQLite store
# ---------------------------------------------------------------------------

_SCHEMA_SQL = """\
-- One row per frozen rule (distinguishes an empty baseline from none)
CREATE TABLE IF NOT EXISTS baselines (
    rule_name TEXT PRIMARY KEY,
    frozen_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Accepted violations
CREATE TABLE IF NOT EXISTS baseline_entries (
    rule_name TEXT NOT NULL REFERENCES baselines(rule_name) ON DELETE CASCADE,
    item      TEXT NOT NULL,
    message   TEXT NOT NULL,
    PRIMARY KEY (rule_name, item, message)
);
"""


class SqliteBaselineStore(_Lifecycle):
    """Key-value style store backed by a single SQLite database.

    Each ``store`` runs in one transaction, so a failure leaves the previous
    baseline untouched.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def open(self) -> None:  # noqa: A003
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.execute("PRAGMA foreign_keys=ON")
            conn.executescript(_SCHEMA_SQL)
        except (OSError, sqlite3.Error) as exc:
            msg = f"Cannot open baseline database {self.db_path}: {exc}"
            raise BaselineStoreError(msg) from exc
        self._conn = conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            msg = "Baseline database is not open"
            raise BaselineStoreError(msg)
        return self._conn

    def load(self, rule_name: str) -> frozenset[Signature] | None:
        with self._lock:
            conn = self._connection()
            try:
                row = conn.execute(
                    "SELECT 1 FROM baselines WHERE rule_name = ?", (rule_name,)
                ).fetchone()
                if row is None:
                    return None
                rows = conn.execute(
                    "SELECT item, message FROM baseline_entries WHERE rule_name = ?",
                    (rule_name,),
                ).fetchall()
            except sqlite3.Error as exc:
                msg = f"Cannot read baseline for rule '{rule_name}': {exc}"
                raise BaselineStoreError(msg) from exc
        return frozenset((rule_name, str(r[0]), str(r[1])) for r in rows)

    def store(self, rule_name: str, signatures: Iterable[Signature]) -> None:
        entries = _sorted_entries(rule_name, signatures)
        with self._lock:
            conn = self._connection()
            try:
                with conn:
                    conn.execute("DELETE FROM baseline_entries WHERE rule_name = ?", (rule_name,))
                    conn.execute(
                        "INSERT INTO baselines (rule_name) VALUES (?) "
                        "ON CONFLICT(rule_name) DO UPDATE SET frozen_at = datetime('now')",
                        (rule_name,),
                    )
                    conn.executemany(
                        "INSERT INTO baseline_entries (rule_name, item, message) VALUES (?, ?, ?)",
                        [(rule_name, item, message) for item, message in entries],
                    )
            except sqlite3.Error as exc:
                msg = f"Cannot write baseline for rule '{rule_name}': {exc}"
                raise BaselineStoreError(msg) from exc
