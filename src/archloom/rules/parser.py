"""Parse ``rules.yml`` into :class:`~archloom.rules.engine.Rule` objects.

Example document::

    version: 1
    exclude: ["..logging.."]
    rules:
      - name: speaker-is-abstract
        freeze: true
        that: { package: "..speakers", simple_name: Speaker }
        all: { modifier: abstract }
      - name: two-presentations
        that: { implements: Presentation }
        count: 2
      - name: tickets-independent
        independent: { slices: "..tickets.(*).." }

Each rule has exactly one condition key (``all``, ``none``, ``count``, or
``independent``).  Predicate mappings AND their keys together; ``not``,
``any_of``, and ``all_of`` compose nested mappings.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import yaml

from archloom.errors import ConfigurationError
from archloom.rules import predicates as p
from archloom.rules.engine import ConditionKind, Rule, Scope, validate_rule_set

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SUPPORTED_SCHEMA_VERSIONS: frozenset[int] = frozenset({1})
_CONDITION_KEYS: dict[str, ConditionKind] = {kind.value: kind for kind in ConditionKind}
_SCOPES: dict[str, Scope] = {scope.value: scope for scope in Scope}

# ---------------------------------------------------------------------------
# Predicate parsing
# ---------------------------------------------------------------------------


def _str_list(value: object, context: str) -> list[str]:
    if isinstance(value, list):
        return [str(v) for v in value]
    if isinstance(value, str):
        return [value]
    msg = f"{context} must be a string or a list of strings"
    raise ValueError(msg)


def _node_leaf(key: str, value: Any, context: str) -> p.Predicate[Any]:
    if key == "package":
        return p.resides_in_package(str(value))
    if key == "package_prefix":
        return p.package_starts_with(str(value))
    if key == "simple_name":
        return p.simple_name(str(value))
    if key == "name_contains":
        return p.simple_name_containing(str(value))
    if key == "name_matches":
        return p.name_matches(str(value))
    if key == "kind":
        return p.is_kind(str(value))
    if key == "modifier":
        return p.and_(*(p.has_modifier(m) for m in _str_list(value, f"{context}.modifier")))
    if key == "implements":
        return p.implements(str(value))
    if key == "annotated_with":
        return p.annotated_with(str(value))
    if key == "lowercase_package":
        return p.package_is_lowercase() if value else p.not_(p.package_is_lowercase())
    if key == "accesses":
        return p.accesses_member(*_str_list(value, f"{context}.accesses"))
    if key == "has_field":
        if not isinstance(value, dict) or not value.get("name"):
            msg = f"{context}.has_field must be a mapping with a 'name'"
            raise ValueError(msg)
        modifiers = _str_list(value.get("modifiers", []), f"{context}.has_field.modifiers")
        type_name = value.get("type")
        return p.has_field(
            str(value["name"]),
            tuple(modifiers),
            str(type_name) if type_name is not None else None,
        )
    msg = f"{context}: unknown node predicate '{key}'"
    raise ValueError(msg)


def _edge_leaf(key: str, value: Any, context: str) -> p.Predicate[Any]:
    if key == "from":
        return p.edge_from(parse_predicate(value, Scope.NODES, f"{context}.from"))
    if key == "to":
        return p.edge_to(parse_predicate(value, Scope.NODES, f"{context}.to"))
    msg = f"{context}: unknown edge predicate '{key}', expected 'from' or 'to'"
    raise ValueError(msg)


def _method_leaf(key: str, value: Any, context: str) -> p.Predicate[Any]:
    if key == "name":
        return p.method_named(str(value))
    if key == "annotated_with":
        return p.method_annotated_with(str(value))
    if key == "declared_in":
        return p.declared_in(parse_predicate(value, Scope.NODES, f"{context}.declared_in"))
    if key == "parameters":
        if not isinstance(value, dict):
            msg = f"{context}.parameters must be a mapping with 'min' and/or 'max'"
            raise ValueError(msg)
        bounds = {"min": value.get("min", 0), "max": value.get("max", 255)}
        for bound, number in bounds.items():
            if isinstance(number, bool) or not isinstance(number, int) or number < 0:
                msg = f"{context}.parameters.{bound} must be a non-negative integer"
                raise ValueError(msg)
        return p.parameter_count_between(bounds["min"], bounds["max"])
    msg = f"{context}: unknown method predicate '{key}'"
    raise ValueError(msg)


_LEAF_PARSERS: dict[Scope, Callable[[str, Any, str], p.Predicate[Any]]] = {
    Scope.NODES: _node_leaf,
    Scope.EDGES: _edge_leaf,
    Scope.METHODS: _method_leaf,
}


def parse_predicate(data: object, scope: Scope, context: str = "predicate") -> p.Predicate[Any]:
    """Turn a predicate mapping into a :class:`Predicate` for *scope*.

    An empty mapping (or ``None``) matches every item.
    """
    if data is None:
        return p.anything()
    if not isinstance(data, dict):
        msg = f"{context} must be a mapping"
        raise ValueError(msg)

    parts: list[p.Predicate[Any]] = []
    for key, value in data.items():
        if key == "not":
            parts.append(p.not_(parse_predicate(value, scope, f"{context}.not")))
        elif key in ("any_of", "all_of"):
            if not isinstance(value, list) or not value:
                msg = f"{context}.{key} must be a non-empty list"
                raise ValueError(msg)
            children = [parse_predicate(v, scope, f"{context}.{key}") for v in value]
            parts.append(p.or_(*children) if key == "any_of" else p.and_(*children))
        else:
            parts.append(_LEAF_PARSERS[scope](str(key), value, context))
    return p.and_(*parts)


# ---------------------------------------------------------------------------
# Rule parsing
# ---------------------------------------------------------------------------


def _parse_rule(data: dict[str, Any], idx: int) -> Rule:
    name = data.get("name")
    if name is None or not isinstance(name, str) or not name.strip():
        msg = f"rules.yml: rule at index {idx} missing required 'name' field"
        raise ValueError(msg)
    context = f"Rule '{name}'"

    scope_raw = str(data.get("scope", Scope.NODES.value))
    scope = _SCOPES.get(scope_raw)
    if scope is None:
        msg = f"{context}: invalid scope '{scope_raw}', must be one of {sorted(_SCOPES)}"
        raise ValueError(msg)

    present = [key for key in _CONDITION_KEYS if key in data]
    if len(present) != 1:
        msg = f"{context}: must have exactly one of {sorted(_CONDITION_KEYS)}"
        raise ValueError(msg)
    kind = _CONDITION_KEYS[present[0]]
    condition_data = data[present[0]]

    selection = parse_predicate(data.get("that"), scope, f"{context} that")
    condition = None
    expected_count = None
    slices = None

    if kind in (ConditionKind.ALL, ConditionKind.NONE):
        condition = parse_predicate(condition_data, scope, f"{context} {present[0]}")
    elif kind is ConditionKind.COUNT_EQUALS:
        if isinstance(condition_data, bool) or not isinstance(condition_data, int):
            msg = f"{context}: 'count' must be an integer"
            raise ValueError(msg)
        expected_count = condition_data
    elif isinstance(condition_data, dict):
        slices_raw = condition_data.get("slices")
        slices = str(slices_raw) if slices_raw is not None else None
    elif condition_data is not True and condition_data is not None:
        msg = f"{context}: 'independent' must be true or a mapping"
        raise ValueError(msg)

    freeze = data.get("freeze", False)
    if not isinstance(freeze, bool):
        msg = f"{context}: 'freeze' must be true or false, got {freeze!r}"
        raise ValueError(msg)

    message = data.get("message")
    return Rule(
        name=name,
        selection=selection,
        condition_kind=kind,
        condition=condition,
        expected_count=expected_count,
        scope=scope,
        message=str(message) if message is not None else None,
        because=str(data.get("because", "")),
        slices=slices,
        freeze=freeze,
    )


def parse_rules(data: object) -> tuple[list[Rule], list[str]]:
    """Parse a decoded rules document into ``(rules, exclude_patterns)``.

    Raises ``ValueError`` on schema errors.
    """
    if not isinstance(data, dict):
        msg = "rules.yml must be a YAML mapping"
        raise ValueError(msg)

    version = data.get("version")
    if version is None:
        msg = "rules.yml: missing required 'version' field"
        raise ValueError(msg)
    if version not in SUPPORTED_SCHEMA_VERSIONS:
        expected = sorted(SUPPORTED_SCHEMA_VERSIONS)
        msg = f"rules.yml: unsupported version {version}, expected one of {expected}"
        raise ValueError(msg)

    rules_data = data.get("rules", [])
    if not isinstance(rules_data, list):
        msg = "rules.yml: 'rules' must be a list"
        raise ValueError(msg)

    rules: list[Rule] = []
    for idx, rule_data in enumerate(rules_data):
        if not isinstance(rule_data, dict):
            msg = f"rules.yml: rule at index {idx} must be a mapping"
            raise ValueError(msg)
        rules.append(_parse_rule(rule_data, idx))

    exclude = _str_list(data.get("exclude", []), "rules.yml: 'exclude'")
    return rules, exclude


def load_rules_with_excludes(rules_path: Path) -> tuple[list[Rule], list[str]]:
    """Parse and validate ``rules.yml``, returning rules and excluded package patterns.

    Raises :class:`ConfigurationError` on any schema or rule error.
    """
    try:
        with rules_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
        rules, exclude = parse_rules(data)
    except (OSError, yaml.YAMLError, ValueError) as exc:
        msg = f"Invalid rules configuration: {exc}"
        raise ConfigurationError(msg) from exc
    validate_rule_set(rules)
    return rules, exclude


def load_rules(rules_path: Path) -> list[Rule]:
    """Parse and validate ``rules.yml``."""
    rules, _exclude = load_rules_with_excludes(rules_path)
    return rules
