"""Architecture rule engine: rule definitions, validation, and evaluation against a fact graph."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from archloom.errors import ConfigurationError
from archloom.rules.predicates import slice_of

if TYPE_CHECKING:
    from archloom.graph.facts import FactGraph, Node
    from archloom.rules.predicates import Predicate

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Enums and constants
# ---------------------------------------------------------------------------


class ConditionKind(enum.Enum):
    ALL = "all"
    NONE = "none"
    COUNT_EQUALS = "count"
    NO_TWO_DEPEND = "independent"


class Scope(enum.Enum):
    NODES = "nodes"
    EDGES = "edges"
    METHODS = "methods"


# Item identifier used for cardinality violations, which concern the
# selection as a whole rather than one element of it.
SELECTION_ITEM = "<selection>"

DEFAULT_MESSAGES: dict[ConditionKind, str] = {
    ConditionKind.ALL: "{item} does not satisfy '{condition}'",
    ConditionKind.NONE: "{item} satisfies '{condition}'",
    ConditionKind.COUNT_EQUALS: "selection size mismatch: actual={actual}, expected={expected}",
    ConditionKind.NO_TWO_DEPEND: "{source} depends on {target}",
}

_TEMPLATE_FIELDS: dict[str, object] = {
    "rule": "",
    "item": "",
    "condition": "",
    "actual": 0,
    "expected": 0,
    "source": "",
    "target": "",
}

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Rule:
    """A named structural check.

    ``name`` is the rule's stable identifier: it keys the freeze baseline and
    must be unique within a rule set.  ``because`` is a free-text rationale
    shown in reports; it never appears in violation messages, so rewording it
    does not invalidate a baseline.
    """

    name: str
    selection: Predicate[Any]
    condition_kind: ConditionKind
    condition: Predicate[Any] | None = None
    expected_count: int | None = None
    scope: Scope = Scope.NODES
    message: str | None = None
    because: str = ""
    slices: str | None = None  # package pattern with a capture group
    freeze: bool = False

    @property
    def template(self) -> str:
        return self.message or DEFAULT_MESSAGES[self.condition_kind]

    @property
    def description(self) -> str:
        """Generated human-readable sentence for display only."""
        subject = f"{self.scope.value} that {self.selection.description}"
        if self.condition_kind is ConditionKind.ALL and self.condition is not None:
            text = f"all {subject} should {self.condition.description}"
        elif self.condition_kind is ConditionKind.NONE and self.condition is not None:
            text = f"no {subject} should {self.condition.description}"
        elif self.condition_kind is ConditionKind.COUNT_EQUALS:
            text = f"{subject} should contain exactly {self.expected_count} elements"
        else:
            unit = f"slices matching '{self.slices}' of " if self.slices else ""
            text = f"{unit}{subject} should not depend on each other"
        if self.because:
            text += f", because {self.because}"
        return text


@dataclass(frozen=True)
class Violation:
    """A single rule violation."""

    rule_name: str
    item: str  # stable identifier of the offending node, edge, method, or pair
    message: str

    @property
    def signature(self) -> tuple[str, str, str]:
        """Identity used for baseline comparison."""
        return (self.rule_name, self.item, self.message)


# ---------------------------------------------------------------------------
# Construction helpers
# ---------------------------------------------------------------------------


def should_all(
    name: str,
    selection: Predicate[Any],
    condition: Predicate[Any],
    *,
    scope: Scope = Scope.NODES,
    message: str | None = None,
    because: str = "",
) -> Rule:
    """Every selected item must satisfy *condition*."""
    return Rule(
        name=name,
        selection=selection,
        condition_kind=ConditionKind.ALL,
        condition=condition,
        scope=scope,
        message=message,
        because=because,
    )


def should_none(
    name: str,
    selection: Predicate[Any],
    condition: Predicate[Any],
    *,
    scope: Scope = Scope.NODES,
    message: str | None = None,
    because: str = "",
) -> Rule:
    """No selected item may satisfy *condition*."""
    return Rule(
        name=name,
        selection=selection,
        condition_kind=ConditionKind.NONE,
        condition=condition,
        scope=scope,
        message=message,
        because=because,
    )


def should_count(
    name: str,
    selection: Predicate[Any],
    expected: int,
    *,
    scope: Scope = Scope.NODES,
    message: str | None = None,
    because: str = "",
) -> Rule:
    """The selection must contain exactly *expected* items."""
    return Rule(
        name=name,
        selection=selection,
        condition_kind=ConditionKind.COUNT_EQUALS,
        expected_count=expected,
        scope=scope,
        message=message,
        because=because,
    )


def should_not_depend_on_each_other(
    name: str,
    selection: Predicate[Node],
    *,
    slices: str | None = None,
    message: str | None = None,
    because: str = "",
) -> Rule:
    """No two selected nodes (or slices, when *slices* is given) may depend on each other."""
    return Rule(
        name=name,
        selection=selection,
        condition_kind=ConditionKind.NO_TWO_DEPEND,
        slices=slices,
        message=message,
        because=because,
    )


def freezing(rule: Rule) -> Rule:
    """Return a copy of *rule* evaluated against the freeze baseline."""
    return replace(rule, freeze=True)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_rule(rule: Rule) -> None:
    """Raise :class:`ConfigurationError` if *rule* is malformed."""
    if not rule.name or not rule.name.strip():
        msg = "Rule name must be a non-empty string"
        raise ConfigurationError(msg)

    kind = rule.condition_kind
    if kind in (ConditionKind.ALL, ConditionKind.NONE) and rule.condition is None:
        msg = f"Rule '{rule.name}': condition '{kind.value}' requires a condition predicate"
        raise ConfigurationError(msg)

    if kind is ConditionKind.COUNT_EQUALS:
        count = rule.expected_count
        if count is None or isinstance(count, bool) or not isinstance(count, int) or count < 0:
            msg = f"Rule '{rule.name}': expected count must be a non-negative integer, got {count!r}"
            raise ConfigurationError(msg)

    if kind is ConditionKind.NO_TWO_DEPEND and rule.scope is not Scope.NODES:
        msg = f"Rule '{rule.name}': 'independent' rules can only select nodes"
        raise ConfigurationError(msg)

    if rule.slices is not None and kind is not ConditionKind.NO_TWO_DEPEND:
        msg = f"Rule '{rule.name}': slices are only supported by 'independent' rules"
        raise ConfigurationError(msg)

    try:
        rule.template.format(**_TEMPLATE_FIELDS)
    except (KeyError, IndexError, ValueError, AttributeError, TypeError) as exc:
        msg = f"Rule '{rule.name}': invalid message template {rule.template!r}: {exc}"
        raise ConfigurationError(msg) from exc


def validate_rule_set(rules: list[Rule]) -> None:
    """Validate every rule and reject duplicate names."""
    seen: set[str] = set()
    for rule in rules:
        validate_rule(rule)
        if rule.name in seen:
            msg = f"Duplicate rule name '{rule.name}'"
            raise ConfigurationError(msg)
        seen.add(rule.name)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _select(graph: FactGraph, rule: Rule) -> list[tuple[str, Any]]:
    """Return ``(identifier, item)`` pairs for the rule's selection, in graph order."""
    if rule.scope is Scope.EDGES:
        return [(e.identifier, e) for e in graph.edges_where(rule.selection)]
    if rule.scope is Scope.METHODS:
        return [(m.identifier, m) for m in graph.methods_where(rule.selection)]
    return [(n.qualified_name, n) for n in graph.nodes_where(rule.selection)]


def _format(rule: Rule, **values: object) -> str:
    fields = dict(_TEMPLATE_FIELDS)
    fields["rule"] = rule.name
    if rule.condition is not None:
        fields["condition"] = rule.condition.description
    fields.update(values)
    return rule.template.format(**fields)


def _units(rule: Rule, nodes: list[Node]) -> list[tuple[str, list[Node]]]:
    """Group selected nodes into dependency units: one per node, or one per slice."""
    if rule.slices is None:
        return [(n.qualified_name, [n]) for n in nodes]
    groups: dict[str, list[Node]] = {}
    for node in nodes:
        name = slice_of(rule.slices, node.package)
        if name is not None:
            groups.setdefault(name, []).append(node)
    return sorted(groups.items())


def _evaluate_independence(graph: FactGraph, rule: Rule, nodes: list[Node]) -> list[Violation]:
    units = _units(rule, nodes)
    violations: list[Violation] = []
    for x_name, x_nodes in units:
        for y_name, y_nodes in units:
            if x_name == y_name:
                continue
            if any(graph.depends_on(a, b) for a in x_nodes for b in y_nodes):
                violations.append(
                    Violation(
                        rule_name=rule.name,
                        item=f"{x_name} -> {y_name}",
                        message=_format(
                            rule, item=f"{x_name} -> {y_name}", source=x_name, target=y_name
                        ),
                    )
                )
    return violations


def evaluate_rule(graph: FactGraph, rule: Rule) -> list[Violation]:
    """Evaluate a single rule and return its violations in graph order.

    Raises :class:`~archloom.errors.GraphQueryError` if the graph is broken.
    """
    selected = _select(graph, rule)
    kind = rule.condition_kind
    violations: list[Violation] = []

    if kind is ConditionKind.COUNT_EQUALS:
        if len(selected) != rule.expected_count:
            violations.append(
                Violation(
                    rule_name=rule.name,
                    item=SELECTION_ITEM,
                    message=_format(
                        rule,
                        item=SELECTION_ITEM,
                        actual=len(selected),
                        expected=rule.expected_count,
                    ),
                )
            )
    elif kind is ConditionKind.NO_TWO_DEPEND:
        violations = _evaluate_independence(graph, rule, [item for _id, item in selected])
    else:
        assert rule.condition is not None  # guaranteed by validate_rule
        expect = kind is ConditionKind.ALL
        for identifier, item in selected:
            if rule.condition(item) == expect:
                continue
            extra: dict[str, object] = {}
            if rule.scope is Scope.EDGES:
                extra = {
                    "source": item.source.qualified_name,
                    "target": item.target.qualified_name,
                }
            violations.append(
                Violation(
                    rule_name=rule.name,
                    item=identifier,
                    message=_format(rule, item=identifier, **extra),
                )
            )

    logger.debug(
        "Rule '%s': %d selected, %d violations", rule.name, len(selected), len(violations)
    )
    return violations
