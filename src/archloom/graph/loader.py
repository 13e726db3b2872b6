"""YAML/JSON fact graph parser.

Reads a facts document produced by an external extraction step and builds
an immutable :class:`~archloom.graph.facts.FactGraph`.  The document has a
``nodes`` list (each node may carry an inline ``depends_on`` list) and an
optional ``edges`` list of ``{from, to}`` mappings::

    nodes:
      - name: com.conference.speakers.Speaker
        kind: class
        modifiers: [public, abstract]
        depends_on: [com.conference.location.Canada]
    edges:
      - { from: com.conference.tickets.a.A, to: com.conference.tickets.b.B }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

from archloom.graph.facts import (
    VALID_NODE_KINDS,
    FactGraph,
    FieldFact,
    MethodFact,
    Node,
    package_of,
)

if TYPE_CHECKING:
    from pathlib import Path


@dataclass
class ParsedFile:
    """Result of parsing a facts document."""

    nodes: list[Node] = field(default_factory=list)
    edges: list[tuple[str, str]] = field(default_factory=list)


def _str_set(value: object, context: str) -> frozenset[str]:
    if value is None:
        return frozenset()
    if not isinstance(value, list):
        msg = f"{context} must be a list"
        raise ValueError(msg)
    return frozenset(str(v) for v in value)


def _parse_field(data: object, context: str) -> FieldFact:
    if not isinstance(data, dict) or not data.get("name"):
        msg = f"{context}: field must be a mapping with a 'name'"
        raise ValueError(msg)
    return FieldFact(
        name=str(data["name"]),
        type_name=str(data.get("type", "")),
        modifiers=_str_set(data.get("modifiers"), f"{context}.modifiers"),
    )


def _parse_method(data: object, context: str) -> MethodFact:
    if not isinstance(data, dict) or not data.get("name"):
        msg = f"{context}: method must be a mapping with a 'name'"
        raise ValueError(msg)
    params = data.get("parameters", 0)
    types: tuple[str, ...] = ()
    if isinstance(params, list):
        types = tuple(str(t) for t in params)
        count = len(types)
    elif isinstance(params, int) and params >= 0:
        count = params
    else:
        msg = f"{context}: 'parameters' must be a non-negative int or a list"
        raise ValueError(msg)
    return MethodFact(
        name=str(data["name"]),
        parameter_count=count,
        annotations=_str_set(data.get("annotations"), f"{context}.annotations"),
        parameter_types=types,
    )


def _parse_node(data: dict[str, Any], idx: int) -> tuple[Node, list[str]]:
    name = data.get("name")
    if not name or not isinstance(name, str):
        msg = f"facts: node at index {idx} missing required 'name' field"
        raise ValueError(msg)
    context = f"facts: node '{name}'"

    kind = str(data.get("kind", "class"))
    if kind not in VALID_NODE_KINDS:
        msg = f"{context}: invalid kind '{kind}', must be one of {sorted(VALID_NODE_KINDS)}"
        raise ValueError(msg)

    fields_raw = data.get("fields") or []
    methods_raw = data.get("methods") or []
    if not isinstance(fields_raw, list) or not isinstance(methods_raw, list):
        msg = f"{context}: 'fields' and 'methods' must be lists"
        raise ValueError(msg)

    node = Node(
        qualified_name=name,
        package=str(data.get("package", package_of(name))),
        kind=kind,
        modifiers=_str_set(data.get("modifiers"), f"{context}.modifiers"),
        fields=tuple(_parse_field(f, f"{context}.fields") for f in fields_raw),
        methods=tuple(_parse_method(m, f"{context}.methods") for m in methods_raw),
        capabilities=_str_set(data.get("implements"), f"{context}.implements"),
        annotations=_str_set(data.get("annotations"), f"{context}.annotations"),
        member_accesses=_str_set(data.get("accesses"), f"{context}.accesses"),
    )
    depends_on = sorted(_str_set(data.get("depends_on"), f"{context}.depends_on"))
    return node, depends_on


def parse_facts(data: object) -> ParsedFile:
    """Parse an already-decoded facts document."""
    if data is None:
        return ParsedFile()
    if not isinstance(data, dict):
        msg = "facts document must be a mapping"
        raise ValueError(msg)

    nodes_raw = data.get("nodes") or []
    edges_raw = data.get("edges") or []
    if not isinstance(nodes_raw, list):
        msg = "facts: 'nodes' must be a list"
        raise ValueError(msg)
    if not isinstance(edges_raw, list):
        msg = "facts: 'edges' must be a list"
        raise ValueError(msg)

    result = ParsedFile()
    for idx, node_data in enumerate(nodes_raw):
        if not isinstance(node_data, dict):
            msg = f"facts: node at index {idx} must be a mapping"
            raise ValueError(msg)
        node, depends_on = _parse_node(node_data, idx)
        result.nodes.append(node)
        result.edges.extend((node.qualified_name, dst) for dst in depends_on)

    for idx, edge in enumerate(edges_raw):
        if not isinstance(edge, dict) or not edge.get("from") or not edge.get("to"):
            msg = f"facts: edge at index {idx} must be a mapping with 'from' and 'to'"
            raise ValueError(msg)
        result.edges.append((str(edge["from"]), str(edge["to"])))

    return result


def parse_graph_file(path: Path) -> ParsedFile:
    """Parse a single YAML (or JSON, a YAML subset) facts file."""
    text = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        msg = f"{path}: invalid facts document: {exc}"
        raise ValueError(msg) from exc
    return parse_facts(data)


def load_graph(path: Path) -> FactGraph:
    """Load a facts file into an immutable :class:`FactGraph`."""
    parsed = parse_graph_file(path)
    return FactGraph.build(parsed.nodes, parsed.edges)
