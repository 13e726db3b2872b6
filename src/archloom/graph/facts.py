"""Immutable fact graph: typed nodes, dependency edges, and read-only queries."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from archloom.errors import GraphQueryError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

VALID_NODE_KINDS: frozenset[str] = frozenset({"class", "interface", "annotation", "enum"})

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldFact:
    """A field declared on a type."""

    name: str
    type_name: str
    modifiers: frozenset[str] = frozenset()


@dataclass(frozen=True)
class MethodFact:
    """A method declared on a type."""

    name: str
    parameter_count: int = 0
    annotations: frozenset[str] = frozenset()
    parameter_types: tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        """``name(T1, T2)`` when parameter types are known, else ``name(N)``."""
        if self.parameter_types:
            return f"{self.name}({', '.join(self.parameter_types)})"
        return f"{self.name}({self.parameter_count})"


@dataclass(frozen=True)
class Node:
    """One type in the analysed codebase.

    ``external`` marks stub nodes synthesized for dependency targets that
    are not part of the snapshot (e.g. ``java.lang.System``).  External
    nodes can be matched by edge predicates but are never returned by
    :meth:`FactGraph.nodes_where`.
    """

    qualified_name: str
    package: str = ""
    kind: str = "class"
    modifiers: frozenset[str] = frozenset()
    fields: tuple[FieldFact, ...] = ()
    methods: tuple[MethodFact, ...] = ()
    capabilities: frozenset[str] = frozenset()
    annotations: frozenset[str] = frozenset()
    member_accesses: frozenset[str] = frozenset()
    external: bool = False

    @property
    def simple_name(self) -> str:
        return self.qualified_name.rsplit(".", 1)[-1]


@dataclass(frozen=True)
class Edge:
    """Directed dependency: ``source`` depends on ``target``."""

    source: Node
    target: Node

    @property
    def identifier(self) -> str:
        return f"{self.source.qualified_name} -> {self.target.qualified_name}"


@dataclass(frozen=True)
class MethodRef:
    """A method together with the type that declares it.

    ``ordinal`` is the 1-based declaration position among methods of the
    same owner sharing a signature, and 0 when the signature is unique.
    """

    owner: Node
    method: MethodFact
    ordinal: int = 0

    @property
    def identifier(self) -> str:
        base = f"{self.owner.qualified_name}.{self.method.signature}"
        return f"{base}#{self.ordinal}" if self.ordinal else base


def package_of(qualified_name: str) -> str:
    """Return the package portion of a dotted qualified name."""
    if "." not in qualified_name:
        return ""
    return qualified_name.rsplit(".", 1)[0]


def external_node(qualified_name: str) -> Node:
    """Build a stub node for a dependency target outside the snapshot."""
    return Node(qualified_name=qualified_name, package=package_of(qualified_name), external=True)


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FactGraph:
    """Read-only snapshot of nodes and dependency edges.

    Nodes iterate in lexicographic order of qualified name and edges in
    ``(source, target)`` order, so every query is deterministic.  Duplicate
    edges collapse into one and self-edges are dropped.

    Construction never fails: a snapshot with duplicate qualified names is
    kept as-is and every query raises :class:`GraphQueryError`, so that a
    broken snapshot errors each rule individually instead of the whole run.
    """

    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()
    _by_name: dict[str, Node] = field(default_factory=dict, repr=False, compare=False)
    _targets: dict[str, frozenset[str]] = field(default_factory=dict, repr=False, compare=False)
    _duplicates: tuple[str, ...] = field(default=(), repr=False, compare=False)

    @classmethod
    def build(cls, nodes: Iterable[Node], edges: Iterable[tuple[str, str]] = ()) -> FactGraph:
        """Build a snapshot from nodes and ``(source, target)`` name pairs.

        Edge endpoints that do not name a node in *nodes* become external
        stub nodes.
        """
        node_list = sorted(nodes, key=lambda n: n.qualified_name)
        counts = Counter(n.qualified_name for n in node_list)
        duplicates = tuple(sorted(name for name, count in counts.items() if count > 1))
        if duplicates:
            logger.warning("Fact graph has duplicate qualified names: %s", ", ".join(duplicates))

        by_name: dict[str, Node] = {}
        for node in node_list:
            by_name.setdefault(node.qualified_name, node)

        pairs: set[tuple[str, str]] = set()
        for src, dst in edges:
            if src == dst:
                continue
            pairs.add((src, dst))

        externals: dict[str, Node] = {}

        def _resolve(name: str) -> Node:
            node = by_name.get(name)
            if node is not None:
                return node
            if name not in externals:
                externals[name] = external_node(name)
            return externals[name]

        edge_list: list[Edge] = []
        targets: dict[str, set[str]] = {}
        for src, dst in sorted(pairs):
            edge_list.append(Edge(source=_resolve(src), target=_resolve(dst)))
            targets.setdefault(src, set()).add(dst)

        return cls(
            nodes=tuple(node_list),
            edges=tuple(edge_list),
            _by_name=by_name,
            _targets={k: frozenset(v) for k, v in targets.items()},
            _duplicates=duplicates,
        )

    # -- invariants ---------------------------------------------------------

    def validate(self) -> None:
        """Raise :class:`GraphQueryError` if the snapshot breaks its invariants."""
        if self._duplicates:
            msg = f"Duplicate qualified names in fact graph: {', '.join(self._duplicates)}"
            raise GraphQueryError(msg)

    # -- queries ------------------------------------------------------------

    def node(self, qualified_name: str) -> Node | None:
        self.validate()
        return self._by_name.get(qualified_name)

    def nodes_where(self, predicate: Callable[[Node], bool]) -> list[Node]:
        """Return internal nodes matching *predicate*, in name order."""
        self.validate()
        return [n for n in self.nodes if not n.external and predicate(n)]

    def edges_where(self, predicate: Callable[[Edge], bool]) -> list[Edge]:
        """Return edges matching *predicate*, in ``(source, target)`` order."""
        self.validate()
        return [e for e in self.edges if predicate(e)]

    def methods_where(self, predicate: Callable[[MethodRef], bool]) -> list[MethodRef]:
        """Return declared methods matching *predicate*, ordered by owner then declaration.

        Identifiers are unique per method, overloads included.
        """
        self.validate()
        refs: list[MethodRef] = []
        for node in self.nodes:
            counts = Counter(m.signature for m in node.methods)
            seen: Counter[str] = Counter()
            for method in node.methods:
                ordinal = 0
                if counts[method.signature] > 1:
                    seen[method.signature] += 1
                    ordinal = seen[method.signature]
                ref = MethodRef(owner=node, method=method, ordinal=ordinal)
                if predicate(ref):
                    refs.append(ref)
        return refs

    def field_of(self, node: Node, name: str) -> FieldFact | None:
        self.validate()
        for fact in node.fields:
            if fact.name == name:
                return fact
        return None

    def depends_on(self, a: Node | str, b: Node | str) -> bool:
        """Return True if a dependency edge ``a -> b`` exists."""
        self.validate()
        src = a if isinstance(a, str) else a.qualified_name
        dst = b if isinstance(b, str) else b.qualified_name
        return dst in self._targets.get(src, frozenset())

    def excluding(self, predicate: Callable[[Node], bool]) -> FactGraph:
        """Return a new snapshot without nodes matching *predicate*.

        Edges leaving a removed node are dropped.  Edges pointing into one are
        kept, and the removed node becomes an external target, so rules can
        still see dependencies on excluded code.
        """
        removed = {n.qualified_name for n in self.nodes if predicate(n)}
        kept = [n for n in self.nodes if n.qualified_name not in removed]
        pairs = [
            (e.source.qualified_name, e.target.qualified_name)
            for e in self.edges
            if e.source.qualified_name not in removed
        ]
        return FactGraph.build(kept, pairs)
