"""Graph domain: immutable fact graph and its loader."""

from archloom.graph.facts import (
    Edge,
    FactGraph,
    FieldFact,
    MethodFact,
    MethodRef,
    Node,
    external_node,
    package_of,
)
from archloom.graph.loader import ParsedFile, load_graph, parse_facts, parse_graph_file

__all__ = [
    "Edge",
    "FactGraph",
    "FieldFact",
    "MethodFact",
    "MethodRef",
    "Node",
    "ParsedFile",
    "external_node",
    "load_graph",
    "package_of",
    "parse_facts",
    "parse_graph_file",
]
