"""Tests for archloom.graph.loader — parsing facts documents."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from archloom.graph.loader import load_graph, parse_facts, parse_graph_file

if TYPE_CHECKING:
    from pathlib import Path


_FACTS_YML = """\
nodes:
  - name: com.conference.speakers.Speaker
    kind: class
    modifiers: [public, abstract]
    depends_on: [com.conference.location.Canada]
  - name: com.conference.location.Canada
    implements: [com.conference.location.Country]
    annotations: [Entity]
    accesses: [java.lang.System.out]
    fields:
      - { name: serialVersionUID, type: java.util.UUID, modifiers: [static, final] }
    methods:
      - { name: stream, parameters: [a, b], annotations: [LocationInfoStreamer] }
      - { name: close }
edges:
  - { from: com.conference.location.Canada, to: java.lang.String }
"""


class TestParseFacts:
    """Tests for parse_facts() / parse_graph_file()."""

    def test_parse_full_document(self, tmp_path: Path) -> None:
        path = tmp_path / "facts.yml"
        path.write_text(_FACTS_YML)
        parsed = parse_graph_file(path)

        assert len(parsed.nodes) == 2
        speaker, canada = parsed.nodes
        assert speaker.package == "com.conference.speakers"
        assert speaker.modifiers == frozenset({"public", "abstract"})
        assert canada.capabilities == frozenset({"com.conference.location.Country"})
        assert canada.annotations == frozenset({"Entity"})
        assert canada.member_accesses == frozenset({"java.lang.System.out"})
        assert canada.fields[0].modifiers == frozenset({"static", "final"})
        assert canada.methods[0].parameter_count == 2
        assert canada.methods[0].parameter_types == ("a", "b")
        assert canada.methods[1].parameter_types == ()
        assert canada.methods[1].parameter_count == 0
        assert parsed.edges == [
            ("com.conference.speakers.Speaker", "com.conference.location.Canada"),
            ("com.conference.location.Canada", "java.lang.String"),
        ]

    def test_json_document(self, tmp_path: Path) -> None:
        path = tmp_path / "facts.json"
        path.write_text('{"nodes": [{"name": "a.A", "depends_on": ["a.B"]}, {"name": "a.B"}]}')
        graph = load_graph(path)
        assert graph.depends_on("a.A", "a.B")

    def test_empty_document(self) -> None:
        parsed = parse_facts(None)
        assert parsed.nodes == []
        assert parsed.edges == []

    def test_explicit_package_overrides_derived(self) -> None:
        parsed = parse_facts({"nodes": [{"name": "Main", "package": "app"}]})
        assert parsed.nodes[0].package == "app"

    def test_missing_name_raises(self) -> None:
        with pytest.raises(ValueError, match="missing required 'name'"):
            parse_facts({"nodes": [{"kind": "class"}]})

    def test_invalid_kind_raises(self) -> None:
        with pytest.raises(ValueError, match="invalid kind"):
            parse_facts({"nodes": [{"name": "a.A", "kind": "struct"}]})

    def test_bad_edge_raises(self) -> None:
        with pytest.raises(ValueError, match="edge at index 0"):
            parse_facts({"nodes": [], "edges": [{"from": "a.A"}]})

    def test_negative_parameters_raise(self) -> None:
        with pytest.raises(ValueError, match="parameters"):
            parse_facts({"nodes": [{"name": "a.A", "methods": [{"name": "m", "parameters": -1}]}]})

    def test_not_a_mapping_raises(self) -> None:
        with pytest.raises(ValueError, match="must be a mapping"):
            parse_facts(["a.A"])

    def test_invalid_yaml_raises_value_error(self, tmp_path: Path) -> None:
        path = tmp_path / "facts.yml"
        path.write_text("nodes: [unclosed\n")
        with pytest.raises(ValueError, match="invalid facts document"):
            parse_graph_file(path)

    def test_duplicate_names_surface_on_query(self, tmp_path: Path) -> None:
        from archloom.errors import GraphQueryError

        path = tmp_path / "facts.yml"
        path.write_text("nodes:\n  - name: a.A\n  - name: a.A\n")
        graph = load_graph(path)
        with pytest.raises(GraphQueryError):
            graph.nodes_where(lambda _n: True)
