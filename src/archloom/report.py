"""Check orchestrator: evaluate a rule set, apply baselines, aggregate and format results."""

from __future__ import annotations

import enum
import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from archloom.errors import ArchloomError
from archloom.rules.engine import evaluate_rule, validate_rule_set

if TYPE_CHECKING:
    import threading

    from archloom.freeze.freezer import Freezer
    from archloom.graph.facts import FactGraph
    from archloom.rules.engine import Rule, Violation

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


class Status(enum.Enum):
    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"  # tooling broke: bad graph, unreadable baseline, ...
    CANCELLED = "cancelled"  # never launched


@dataclass(frozen=True)
class RuleOutcome:
    """Result of evaluating one rule."""

    rule_name: str
    status: Status
    violations: tuple[Violation, ...] = ()
    error: str | None = None
    description: str = ""
    because: str = ""
    frozen: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "rule": self.rule_name,
            "status": self.status.value,
            "description": self.description,
            "because": self.because,
            "frozen": self.frozen,
            "error": self.error,
            "violations": [{"item": v.item, "message": v.message} for v in self.violations],
        }


@dataclass
class Report:
    """Outcomes for a whole rule set, in rule-set order."""

    outcomes: list[RuleOutcome] = field(default_factory=list)
    elapsed_ms: float = 0.0

    @property
    def passed(self) -> bool:
        return all(o.status is Status.PASSED for o in self.outcomes)

    @property
    def failed_rules(self) -> list[str]:
        """Names of every rule that did not pass, whatever the reason."""
        return [o.rule_name for o in self.outcomes if o.status is not Status.PASSED]

    @property
    def violations(self) -> list[Violation]:
        return [v for o in self.outcomes for v in o.violations]

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1

    def outcome(self, rule_name: str) -> RuleOutcome | None:
        for o in self.outcomes:
            if o.rule_name == rule_name:
                return o
        return None

    def counts(self) -> dict[str, int]:
        result = {status.value: 0 for status in Status}
        for o in self.outcomes:
            result[o.status.value] += 1
        return result

    def to_dict(self) -> dict[str, object]:
        """Stable structured form; timing is left out so repeated runs compare equal."""
        return {
            "passed": self.passed,
            "summary": {
                "rules_evaluated": len(self.outcomes),
                "violations_count": len(self.violations),
                **self.counts(),
            },
            "rules": [o.to_dict() for o in self.outcomes],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def _run_rule(
    graph: FactGraph,
    rule: Rule,
    freezer: Freezer | None,
    cancel_event: threading.Event | None,
) -> RuleOutcome:
    outcome = RuleOutcome(
        rule_name=rule.name,
        status=Status.CANCELLED,
        description=rule.description,
        because=rule.because,
        frozen=rule.freeze and freezer is not None,
    )
    if cancel_event is not None and cancel_event.is_set():
        return outcome

    try:
        violations = evaluate_rule(graph, rule)
        if rule.freeze and freezer is not None:
            violations = freezer.apply(rule.name, violations)
    except ArchloomError as exc:
        logger.warning("Rule '%s' errored: %s", rule.name, exc)
        return replace(outcome, status=Status.ERRORED, error=str(exc))
    except Exception as exc:  # noqa: BLE001
        logger.exception("Rule '%s' raised an unexpected error", rule.name)
        return replace(outcome, status=Status.ERRORED, error=f"{type(exc).__name__}: {exc}")

    status = Status.FAILED if violations else Status.PASSED
    return replace(outcome, status=status, violations=tuple(violations))


def check(
    graph: FactGraph,
    rules: list[Rule],
    *,
    freezer: Freezer | None = None,
    max_workers: int | None = None,
    cancel_event: threading.Event | None = None,
) -> Report:
    """Evaluate *rules* against *graph* and return a :class:`Report`.

    Parameters
    ----------
    graph:
        Immutable fact graph shared by all rule evaluations.
    rules:
        Ordered rule set.  The report keeps this order.
    freezer:
        Baseline filter for rules marked ``freeze``.  Without one, freezing
        rules are evaluated strictly.
    max_workers:
        Thread pool size; ``1`` evaluates sequentially.
    cancel_event:
        When set, rules that have not started yet are reported as
        ``CANCELLED``; rules already running finish normally.

    Raises
    ------
    ConfigurationError
        When the rule set is malformed.  No rule is evaluated in that case.
    """
    start = time.monotonic()
    validate_rule_set(rules)

    if freezer is None and any(rule.freeze for rule in rules):
        logger.warning("No baseline store configured; freezing rules are evaluated strictly")

    if max_workers == 1 or len(rules) <= 1:
        outcomes = [_run_rule(graph, rule, freezer, cancel_event) for rule in rules]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            outcomes = list(
                pool.map(lambda rule: _run_rule(graph, rule, freezer, cancel_event), rules)
            )

    elapsed = (time.monotonic() - start) * 1000
    report = Report(outcomes=outcomes, elapsed_ms=elapsed)
    logger.debug("Evaluated %d rules in %.1f ms", len(rules), elapsed)
    return report


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


_MARKS = {
    Status.PASSED: "\u2713",
    Status.FAILED: "\u2717",
    Status.ERRORED: "!",
    Status.CANCELLED: "-",
}


def format_rich(report: Report) -> str:
    """Format a Report as human-readable text.

    Example output::

        ✓ lowercase-packages
        ✗ two-presentations
          nodes that implement Presentation should contain exactly 2 elements
          <selection> → selection size mismatch: actual=3, expected=2

        1 of 2 rules failed, 1 violations (0.0s)
    """
    lines: list[str] = []
    for o in report.outcomes:
        lines.append(f"{_MARKS[o.status]} {o.rule_name}")
        if o.status is Status.PASSED:
            continue
        if o.description:
            lines.append(f"  {o.description}")
        if o.error is not None:
            lines.append(f"  error: {o.error}")
        for v in o.violations:
            lines.append(f"  {v.item} \u2192 {v.message}")
        lines.append("")

    elapsed_str = f"{report.elapsed_ms / 1000:.1f}s"
    total = len(report.outcomes)
    if report.passed:
        lines.append(f"\u2713 All {total} rules passed ({elapsed_str})")
    else:
        failed = len(report.failed_rules)
        lines.append(
            f"{failed} of {total} rules failed, "
            f"{len(report.violations)} violations ({elapsed_str})"
        )
    return "\n".join(lines)


def format_json(report: Report) -> str:
    return report.to_json()


def format_porcelain(report: Report) -> str:
    """One line per non-passing rule or violation: ``rule:status:item:message``.

    Returns empty string when every rule passed.
    """
    lines: list[str] = []
    for o in report.outcomes:
        if o.status is Status.PASSED:
            continue
        if not o.violations:
            lines.append(f"{o.rule_name}:{o.status.value}::{o.error or ''}")
        for v in o.violations:
            lines.append(f"{o.rule_name}:{o.status.value}:{v.item}:{v.message}")
    return "\n".join(lines)
