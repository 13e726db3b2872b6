"""Rules domain: predicates, rule engine, rules.yml parser, and rule library."""

from archloom.rules.engine import (
    ConditionKind,
    Rule,
    Scope,
    Violation,
    evaluate_rule,
    freezing,
    should_all,
    should_count,
    should_none,
    should_not_depend_on_each_other,
    validate_rule,
    validate_rule_set,
)
from archloom.rules.library import conference_rules, no_generic_exceptions, no_standard_streams
from archloom.rules.parser import load_rules, load_rules_with_excludes, parse_predicate
from archloom.rules.predicates import Predicate, and_, not_, or_

__all__ = [
    "ConditionKind",
    "Predicate",
    "Rule",
    "Scope",
    "Violation",
    "and_",
    "conference_rules",
    "evaluate_rule",
    "freezing",
    "load_rules",
    "load_rules_with_excludes",
    "no_generic_exceptions",
    "no_standard_streams",
    "not_",
    "or_",
    "parse_predicate",
    "should_all",
    "should_count",
    "should_none",
    "should_not_depend_on_each_other",
    "validate_rule",
    "validate_rule_set",
]
