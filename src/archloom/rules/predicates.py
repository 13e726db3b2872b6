"""Composable predicates over nodes, edges, and methods.

A :class:`Predicate` wraps a pure ``item -> bool`` function together with a
human-readable description.  Predicates never see the graph, only the item
passed to them, so one instance can be shared by any number of rules.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

    from archloom.graph.facts import Edge, MethodRef, Node

T = TypeVar("T")

# Package identifier characters (Java allows ``$`` in generated names).
_SEGMENT = r"[\w$]+"
_SEGMENTS = r"[\w$.]*"


# ---------------------------------------------------------------------------
# Core type and combinators
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Predicate(Generic[T]):
    """Named boolean test over a single item."""

    description: str
    test: Callable[[T], bool] = field(compare=False, repr=False)

    def __call__(self, item: T) -> bool:
        return bool(self.test(item))

    def __and__(self, other: Predicate[T]) -> Predicate[T]:
        return and_(self, other)

    def __or__(self, other: Predicate[T]) -> Predicate[T]:
        return or_(self, other)

    def __invert__(self) -> Predicate[T]:
        return not_(self)


def and_(*predicates: Predicate[T]) -> Predicate[T]:
    """Return a predicate that holds when every one of *predicates* holds."""
    if not predicates:
        return anything()
    if len(predicates) == 1:
        return predicates[0]
    parts = tuple(predicates)
    return Predicate(
        " and ".join(p.description for p in parts),
        lambda item: all(p(item) for p in parts),
    )


def or_(*predicates: Predicate[T]) -> Predicate[T]:
    """Return a predicate that holds when at least one of *predicates* holds."""
    if not predicates:
        return nothing()
    if len(predicates) == 1:
        return predicates[0]
    parts = tuple(predicates)
    return Predicate(
        "(" + " or ".join(p.description for p in parts) + ")",
        lambda item: any(p(item) for p in parts),
    )


def not_(predicate: Predicate[T]) -> Predicate[T]:
    return Predicate(f"not {predicate.description}", lambda item: not predicate(item))


def anything() -> Predicate[object]:
    return Predicate("anything", lambda _item: True)


def nothing() -> Predicate[object]:
    return Predicate("nothing", lambda _item: False)


def _same_name(wanted: str, actual: str) -> bool:
    """Match a fully-qualified name, or its simple name when *wanted* has no dots."""
    if wanted == actual:
        return True
    return "." not in wanted and actual.rsplit(".", 1)[-1] == wanted


# ---------------------------------------------------------------------------
# Package patterns
# ---------------------------------------------------------------------------


def _convert_segment_pattern(part: str) -> str:
    tokens = re.split(r"(\(\*\*\)|\(\*\)|\*\*|\*)", part)
    out: list[str] = []
    for token in tokens:
        if token == "(**)":
            out.append(f"({_SEGMENTS})")
        elif token == "(*)":
            out.append(f"({_SEGMENT})")
        elif token == "**":
            out.append(_SEGMENTS)
        elif token == "*":
            out.append(_SEGMENT)
        else:
            out.append(re.escape(token))
    return "".join(out)


@lru_cache(maxsize=256)
def package_pattern_regex(pattern: str) -> re.Pattern[str]:
    """Compile a package pattern into a regex matched against whole package names.

    ``..`` stands for any number of packages (including none), ``*`` for one
    package segment, and ``(*)`` / ``(**)`` capture one or several segments::

        ..speakers          -> com.conference.speakers, speakers
        com.conference..    -> com.conference, com.conference.rooms
        ..tickets.(*)..     -> com.x.tickets.vip (captures "vip")
    """
    if not pattern or pattern.strip(".") == "":
        return re.compile(f"{_SEGMENTS}")

    parts = pattern.split("..")
    regex = ""
    for idx, part in enumerate(parts):
        if idx == 0:
            regex += rf"(?:{_SEGMENTS}\.)?" if part == "" else _convert_segment_pattern(part)
            continue
        previous = parts[idx - 1]
        if part == "":
            regex += rf"(?:\.{_SEGMENTS})?"
        elif previous == "":
            regex += _convert_segment_pattern(part)
        else:
            regex += rf"(?:\.{_SEGMENTS})?\." + _convert_segment_pattern(part)
    return re.compile(regex)


def matches_package(pattern: str, package: str) -> bool:
    return package_pattern_regex(pattern).fullmatch(package) is not None


def slice_of(pattern: str, package: str) -> str | None:
    """Return the slice name captured by *pattern* for *package*, or None.

    The name joins all capture groups with ``.``; a pattern without capture
    groups yields the full package name.
    """
    match = package_pattern_regex(pattern).fullmatch(package)
    if match is None:
        return None
    groups = [g for g in match.groups() if g]
    return ".".join(groups) if groups else package


# ---------------------------------------------------------------------------
# Node predicates
# ---------------------------------------------------------------------------


def resides_in_package(pattern: str) -> Predicate[Node]:
    return Predicate(
        f"reside in a package '{pattern}'",
        lambda node: matches_package(pattern, node.package),
    )


def package_starts_with(prefix: str) -> Predicate[Node]:
    """Plain dotted-prefix match, segment aware (``com.a`` does not match ``com.ab``)."""
    return Predicate(
        f"reside in a package starting with '{prefix}'",
        lambda node: node.package == prefix or node.package.startswith(prefix + "."),
    )


def simple_name(name: str) -> Predicate[Node]:
    return Predicate(f"have simple name '{name}'", lambda node: node.simple_name == name)


def simple_name_containing(text: str) -> Predicate[Node]:
    return Predicate(
        f"have simple name containing '{text}'",
        lambda node: text in node.simple_name,
    )


def name_matches(regex: str) -> Predicate[Node]:
    compiled = re.compile(regex)
    return Predicate(
        f"have name matching '{regex}'",
        lambda node: compiled.fullmatch(node.qualified_name) is not None,
    )


def is_kind(kind: str) -> Predicate[Node]:
    return Predicate(f"are of kind {kind}", lambda node: node.kind == kind)


def is_interface() -> Predicate[Node]:
    return Predicate("are interfaces", lambda node: node.kind == "interface")


def has_modifier(modifier: str) -> Predicate[Node]:
    wanted = modifier.lower()
    return Predicate(
        f"have modifier {modifier.upper()}",
        lambda node: wanted in {m.lower() for m in node.modifiers},
    )


def implements(capability: str) -> Predicate[Node]:
    return Predicate(
        f"implement {capability}",
        lambda node: any(_same_name(capability, c) for c in node.capabilities),
    )


def annotated_with(annotation: str) -> Predicate[Node]:
    return Predicate(
        f"are annotated with @{annotation}",
        lambda node: any(_same_name(annotation, a) for a in node.annotations),
    )


def has_field(
    name: str,
    modifiers: tuple[str, ...] | frozenset[str] = (),
    type_name: str | None = None,
) -> Predicate[Node]:
    """Node declares field *name* carrying all *modifiers* and, if given, of *type_name*."""
    wanted = {m.lower() for m in modifiers}
    parts = [f"have a field '{name}'"]
    if wanted:
        parts.append(f"with modifiers {sorted(wanted)}")
    if type_name is not None:
        parts.append(f"of type {type_name}")

    def _test(node: Node) -> bool:
        for fact in node.fields:
            if fact.name != name:
                continue
            if not wanted <= {m.lower() for m in fact.modifiers}:
                return False
            return type_name is None or _same_name(type_name, fact.type_name)
        return False

    return Predicate(" ".join(parts), _test)


def package_is_lowercase() -> Predicate[Node]:
    return Predicate(
        "have a lower-case package name",
        lambda node: node.package == node.package.lower(),
    )


def accesses_member(*members: str) -> Predicate[Node]:
    wanted = frozenset(members)
    return Predicate(
        f"access any of {sorted(wanted)}",
        lambda node: not wanted.isdisjoint(node.member_accesses),
    )


# ---------------------------------------------------------------------------
# Edge predicates
# ---------------------------------------------------------------------------


def edge_from(predicate: Predicate[Node]) -> Predicate[Edge]:
    return Predicate(
        f"originate from classes that {predicate.description}",
        lambda edge: predicate(edge.source),
    )


def edge_to(predicate: Predicate[Node]) -> Predicate[Edge]:
    return Predicate(
        f"depend on classes that {predicate.description}",
        lambda edge: predicate(edge.target),
    )


# ---------------------------------------------------------------------------
# Method predicates
# ---------------------------------------------------------------------------


def method_named(name: str) -> Predicate[MethodRef]:
    return Predicate(f"are named '{name}'", lambda ref: ref.method.name == name)


def method_annotated_with(annotation: str) -> Predicate[MethodRef]:
    return Predicate(
        f"are annotated with @{annotation}",
        lambda ref: any(_same_name(annotation, a) for a in ref.method.annotations),
    )


def parameter_count_between(low: int, high: int) -> Predicate[MethodRef]:
    return Predicate(
        f"have between {low} and {high} parameters",
        lambda ref: low <= ref.method.parameter_count <= high,
    )


def declared_in(predicate: Predicate[Node]) -> Predicate[MethodRef]:
    return Predicate(
        f"are declared in classes that {predicate.description}",
        lambda ref: predicate(ref.owner),
    )
