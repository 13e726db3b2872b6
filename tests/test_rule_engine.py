"""Tests for archloom.rules.engine — rule validation and evaluation semantics."""

from __future__ import annotations

import pytest

from archloom.errors import ConfigurationError, GraphQueryError
from archloom.graph.facts import FactGraph, MethodFact, Node, package_of
from archloom.rules import predicates as p
from archloom.rules.engine import (
    SELECTION_ITEM,
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


def _node(name: str, **kwargs: object) -> Node:
    return Node(qualified_name=name, package=package_of(name), **kwargs)  # type: ignore[arg-type]


def _presentations(count: int) -> list[Node]:
    names = ["LocalPresentation", "InternationalPresentation", "KeynotePresentation"]
    return [
        _node(f"com.conference.presentations.{name}", capabilities=frozenset({"Presentation"}))
        for name in names[:count]
    ]


# ---------------------------------------------------------------------------
# TestAllNone
# ---------------------------------------------------------------------------


class TestAllNone:
    """ALL / NONE conditions."""

    def test_all_reports_each_failure(self) -> None:
        graph = FactGraph.build(
            [
                _node("a.speakers.Speaker", modifiers=frozenset({"abstract"})),
                _node("b.speakers.Speaker"),
                _node("c.speakers.Speaker"),
            ]
        )
        rule = should_all(
            "speaker-abstract",
            p.resides_in_package("..speakers") & p.simple_name("Speaker"),
            p.has_modifier("abstract"),
        )
        violations = evaluate_rule(graph, rule)
        assert [v.item for v in violations] == ["b.speakers.Speaker", "c.speakers.Speaker"]
        assert violations[0].message == "b.speakers.Speaker does not satisfy 'have modifier ABSTRACT'"
        assert violations[0].rule_name == "speaker-abstract"

    def test_none_reports_each_match(self) -> None:
        graph = FactGraph.build(
            [
                _node("a.RoomInterface", kind="interface"),
                _node("a.Room", kind="interface"),
                _node("a.InterfaceHelper"),
            ]
        )
        rule = should_none("no-interface-suffix", p.is_interface(), p.simple_name_containing("Interface"))
        violations = evaluate_rule(graph, rule)
        assert [v.item for v in violations] == ["a.RoomInterface"]

    @pytest.mark.parametrize("kind", [ConditionKind.ALL, ConditionKind.NONE])
    def test_empty_selection_is_vacuously_true(self, kind: ConditionKind) -> None:
        graph = FactGraph.build([_node("a.A")])
        rule = Rule(
            name="vacuous",
            selection=p.simple_name("Missing"),
            condition_kind=kind,
            condition=p.nothing() if kind is ConditionKind.ALL else p.anything(),
        )
        assert evaluate_rule(graph, rule) == []

    def test_custom_message_template(self) -> None:
        graph = FactGraph.build([_node("a.A")])
        rule = should_all("tpl", p.anything(), p.is_interface(), message="[{rule}] {item} is not an interface")
        assert evaluate_rule(graph, rule)[0].message == "[tpl] a.A is not an interface"

    def test_because_is_not_part_of_messages(self) -> None:
        graph = FactGraph.build([_node("a.A")])
        plain = should_all("r", p.anything(), p.is_interface())
        with_rationale = should_all("r", p.anything(), p.is_interface(), because="reasons")
        assert evaluate_rule(graph, plain) == evaluate_rule(graph, with_rationale)
        assert with_rationale.description.endswith("because reasons")


# ---------------------------------------------------------------------------
# TestCountEquals
# ---------------------------------------------------------------------------


class TestCountEquals:
    """COUNT_EQUALS cardinality checks."""

    def test_exact_count_passes(self) -> None:
        graph = FactGraph.build(_presentations(2))
        rule = should_count("two-presentations", p.implements("Presentation"), 2)
        assert evaluate_rule(graph, rule) == []

    def test_third_implementer_fails_with_counts(self) -> None:
        graph = FactGraph.build(_presentations(3))
        rule = should_count("two-presentations", p.implements("Presentation"), 2)
        violations = evaluate_rule(graph, rule)
        assert violations == [
            Violation(
                rule_name="two-presentations",
                item=SELECTION_ITEM,
                message="selection size mismatch: actual=3, expected=2",
            )
        ]

    def test_zero_over_empty_selection_passes(self) -> None:
        graph = FactGraph.build([])
        assert evaluate_rule(graph, should_count("none", p.anything(), 0)) == []

    def test_positive_over_empty_selection_fails(self) -> None:
        graph = FactGraph.build([])
        violations = evaluate_rule(graph, should_count("some", p.anything(), 2))
        assert len(violations) == 1
        assert "actual=0" in violations[0].message
        assert "expected=2" in violations[0].message

    def test_count_over_methods(self, conference_graph: FactGraph) -> None:
        rule = should_count(
            "one-streamer",
            p.method_annotated_with("LocationInfoStreamer"),
            1,
            scope=Scope.METHODS,
        )
        assert evaluate_rule(conference_graph, rule) == []


# ---------------------------------------------------------------------------
# TestEdges
# ---------------------------------------------------------------------------


class TestEdges:
    """Rules scoped to dependency edges."""

    def _rule(self) -> Rule:
        return should_none(
            "local-not-international",
            p.edge_from(p.simple_name("LocalPresentation")),
            p.edge_to(p.simple_name("InternationalPresentation")),
            scope=Scope.EDGES,
        )

    def test_forbidden_edge_fails_once(self) -> None:
        local, international = _presentations(2)
        graph = FactGraph.build(
            [local, international],
            [(local.qualified_name, international.qualified_name)],
        )
        violations = evaluate_rule(graph, self._rule())
        assert len(violations) == 1
        assert violations[0].item == (
            "com.conference.presentations.LocalPresentation -> "
            "com.conference.presentations.InternationalPresentation"
        )

    def test_removing_edge_passes(self) -> None:
        graph = FactGraph.build(_presentations(2))
        assert evaluate_rule(graph, self._rule()) == []

    def test_edge_template_fields(self) -> None:
        graph = FactGraph.build([_node("a.location.Canada")], [("a.location.Canada", "a.speakers.Speaker")])
        rule = should_none(
            "location-speakers",
            p.edge_from(p.resides_in_package("..location")),
            p.edge_to(p.resides_in_package("..speakers")),
            scope=Scope.EDGES,
            message="{source} must not use {target}",
        )
        violations = evaluate_rule(graph, rule)
        assert [v.message for v in violations] == ["a.location.Canada must not use a.speakers.Speaker"]


# ---------------------------------------------------------------------------
# TestNoTwoDepend
# ---------------------------------------------------------------------------


class TestNoTwoDepend:
    """NO_TWO_DEPEND pairwise independence."""

    def test_single_edge_single_violation(self) -> None:
        graph = FactGraph.build(
            [_node("m.A"), _node("m.B"), _node("m.C")],
            [("m.A", "m.B")],
        )
        rule = should_not_depend_on_each_other("siblings", p.resides_in_package("m"))
        violations = evaluate_rule(graph, rule)
        assert [v.item for v in violations] == ["m.A -> m.B"]
        assert violations[0].message == "m.A depends on m.B"

    def test_both_directions_reported(self) -> None:
        graph = FactGraph.build([_node("m.A"), _node("m.B")], [("m.A", "m.B"), ("m.B", "m.A")])
        rule = should_not_depend_on_each_other("siblings", p.anything())
        assert [v.item for v in evaluate_rule(graph, rule)] == ["m.A -> m.B", "m.B -> m.A"]

    def test_edges_outside_selection_ignored(self) -> None:
        graph = FactGraph.build(
            [_node("m.A"), _node("m.B"), _node("other.X")],
            [("m.A", "other.X"), ("other.X", "m.B")],
        )
        rule = should_not_depend_on_each_other("siblings", p.resides_in_package("m"))
        assert evaluate_rule(graph, rule) == []

    def test_slices(self) -> None:
        graph = FactGraph.build(
            [
                _node("com.c.tickets.vip.VipTicket"),
                _node("com.c.tickets.vip.model.Seat"),
                _node("com.c.tickets.regular.RegularTicket"),
                _node("com.c.tickets.shared.Price"),
            ],
            [
                ("com.c.tickets.vip.VipTicket", "com.c.tickets.vip.model.Seat"),
                ("com.c.tickets.vip.model.Seat", "com.c.tickets.shared.Price"),
                ("com.c.tickets.regular.RegularTicket", "com.c.tickets.shared.Price"),
            ],
        )
        rule = should_not_depend_on_each_other(
            "tickets", p.resides_in_package("..tickets.."), slices="..tickets.(*).."
        )
        violations = evaluate_rule(graph, rule)
        assert [v.item for v in violations] == ["regular -> shared", "vip -> shared"]


# ---------------------------------------------------------------------------
# TestMethods
# ---------------------------------------------------------------------------


class TestMethods:
    """Method-scoped rules."""

    def test_argument_count(self) -> None:
        streamer = _node(
            "a.location.Streamer",
            methods=(
                MethodFact("ok", 2, frozenset({"LocationInfoStreamer"})),
                MethodFact("none", 0, frozenset({"LocationInfoStreamer"})),
                MethodFact("many", 5, frozenset({"LocationInfoStreamer"})),
                MethodFact("plain", 7),
            ),
        )
        rule = should_all(
            "streamer-args",
            p.method_annotated_with("LocationInfoStreamer"),
            p.parameter_count_between(1, 3),
            scope=Scope.METHODS,
            message="method {item} should specify between 1 and 3 arguments",
        )
        violations = evaluate_rule(FactGraph.build([streamer]), rule)
        assert [v.item for v in violations] == ["a.location.Streamer.none(0)", "a.location.Streamer.many(5)"]


# ---------------------------------------------------------------------------
# TestValidation
# ---------------------------------------------------------------------------


class TestValidation:
    """validate_rule() / validate_rule_set()."""

    def test_negative_count(self) -> None:
        with pytest.raises(ConfigurationError, match="non-negative"):
            validate_rule(should_count("neg", p.anything(), -1))

    def test_missing_condition(self) -> None:
        rule = Rule(name="x", selection=p.anything(), condition_kind=ConditionKind.ALL)
        with pytest.raises(ConfigurationError, match="requires a condition"):
            validate_rule(rule)

    def test_empty_name(self) -> None:
        with pytest.raises(ConfigurationError, match="non-empty"):
            validate_rule(should_count(" ", p.anything(), 1))

    def test_independent_requires_node_scope(self) -> None:
        rule = Rule(
            name="x",
            selection=p.anything(),
            condition_kind=ConditionKind.NO_TWO_DEPEND,
            scope=Scope.EDGES,
        )
        with pytest.raises(ConfigurationError, match="only select nodes"):
            validate_rule(rule)

    def test_slices_only_for_independent(self) -> None:
        rule = Rule(
            name="x",
            selection=p.anything(),
            condition_kind=ConditionKind.COUNT_EQUALS,
            expected_count=1,
            slices="..(*)",
        )
        with pytest.raises(ConfigurationError, match="slices"):
            validate_rule(rule)

    def test_bad_template(self) -> None:
        rule = should_all("x", p.anything(), p.anything(), message="{unknown}")
        with pytest.raises(ConfigurationError, match="template"):
            validate_rule(rule)

    @pytest.mark.parametrize("template", ["{item.source}", "{actual[0]}", "{item:d}", "{item[0][0]}"])
    def test_template_errors_become_configuration_errors(self, template: str) -> None:
        rule = should_none("x", p.anything(), p.anything(), message=template)
        with pytest.raises(ConfigurationError, match="invalid message template"):
            validate_rule_set([rule])

    def test_duplicate_names(self) -> None:
        rules = [should_count("same", p.anything(), 1), should_count("same", p.anything(), 2)]
        with pytest.raises(ConfigurationError, match="Duplicate rule name 'same'"):
            validate_rule_set(rules)

    def test_freezing_copies_rule(self) -> None:
        rule = should_count("r", p.anything(), 1)
        frozen = freezing(rule)
        assert frozen.freeze
        assert not rule.freeze
        assert frozen.name == rule.name


# ---------------------------------------------------------------------------
# TestGraphErrors
# ---------------------------------------------------------------------------


class TestGraphErrors:
    def test_broken_graph_raises(self) -> None:
        graph = FactGraph.build([_node("a.A"), _node("a.A")])
        with pytest.raises(GraphQueryError):
            evaluate_rule(graph, should_count("r", p.anything(), 1))
