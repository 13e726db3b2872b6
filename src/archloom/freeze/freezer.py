"""Freezing evaluation: tolerate recorded violations, report only new ones."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from archloom.errors import BaselineStoreError

if TYPE_CHECKING:
    from archloom.freeze.store import BaselineStore
    from archloom.rules.engine import Violation

logger = logging.getLogger(__name__)


class Freezer:
    """Filter a rule's violations through its stored baseline.

    The first run of a rule with no stored baseline records the current
    violations and reports none.  Later runs report only violations whose
    signature is not in the baseline.  The baseline is never rewritten
    automatically: fixed violations stay recorded until :meth:`freeze` is
    called again (or the freezer runs with ``refreeze=True``), so an identical
    violation that comes back is still accepted.

    Calls for the same rule name are serialized; different rule names run
    independently.
    """

    def __init__(
        self,
        store: BaselineStore,
        *,
        allow_store_creation: bool = True,
        refreeze: bool = False,
    ) -> None:
        self.store = store
        self.allow_store_creation = allow_store_creation
        self.refreeze = refreeze
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, rule_name: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(rule_name, threading.Lock())

    def freeze(self, rule_name: str, violations: list[Violation]) -> None:
        """Record *violations* as the accepted baseline for *rule_name*."""
        with self._lock_for(rule_name):
            self._write(rule_name, violations)

    def _write(self, rule_name: str, violations: list[Violation]) -> None:
        self.store.store(rule_name, {v.signature for v in violations})
        logger.info("Froze %d violations for rule '%s'", len(violations), rule_name)

    def apply(self, rule_name: str, violations: list[Violation]) -> list[Violation]:
        """Return the violations of *rule_name* that the baseline does not accept.

        Raises :class:`BaselineStoreError` when the store fails, or when no
        baseline exists and store creation is disabled.
        """
        with self._lock_for(rule_name):
            if self.refreeze:
                self._write(rule_name, violations)
                return []

            baseline = self.store.load(rule_name)
            if baseline is None:
                if not self.allow_store_creation:
                    msg = (
                        f"No baseline stored for rule '{rule_name}' "
                        "and baseline creation is disabled"
                    )
                    raise BaselineStoreError(msg)
                self._write(rule_name, violations)
                return []

        new = [v for v in violations if v.signature not in baseline]
        logger.debug(
            "Rule '%s': %d violations, %d accepted by baseline",
            rule_name,
            len(violations),
            len(violations) - len(new),
        )
        return new
