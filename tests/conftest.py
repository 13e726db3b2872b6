"""Shared test fixtures for archloom."""

from __future__ import annotations

import pytest

from archloom.graph.facts import FactGraph, FieldFact, MethodFact, Node


def _node(name: str, **kwargs: object) -> Node:
    """Build a node whose package is derived from *name* unless given."""
    kwargs.setdefault("package", name.rsplit(".", 1)[0] if "." in name else "")
    return Node(qualified_name=name, **kwargs)  # type: ignore[arg-type]


@pytest.fixture()
def conference_graph() -> FactGraph:
    """A small conference application that satisfies every example rule."""
    nodes = [
        _node("com.conference.presentations.Presentation", kind="interface"),
        _node(
            "com.conference.presentations.LocalPresentation",
            capabilities=frozenset({"com.conference.presentations.Presentation"}),
        ),
        _node(
            "com.conference.presentations.InternationalPresentation",
            capabilities=frozenset({"com.conference.presentations.Presentation"}),
        ),
        _node("com.conference.speakers.Speaker", modifiers=frozenset({"public", "abstract"})),
        _node("com.conference.location.Canada"),
        _node(
            "com.conference.location.LocationStreamer",
            methods=(
                MethodFact("stream", 2, frozenset({"LocationInfoStreamer"})),
                MethodFact("close", 0),
            ),
        ),
        _node("com.conference.rooms.Room", kind="interface"),
        _node(
            "com.conference.rooms.BigRoom",
            capabilities=frozenset({"com.conference.rooms.Room"}),
            fields=(FieldFact("serialVersionUID", "java.util.UUID", frozenset({"static", "final"})),),
        ),
        _node("com.conference.tickets.vip.VipTicket"),
        _node("com.conference.tickets.regular.RegularTicket"),
        _node("com.conference.tickets.shared.Price"),
    ]
    edges = [
        ("com.conference.tickets.vip.VipTicket", "java.math.BigDecimal"),
        ("com.conference.location.Canada", "java.lang.String"),
    ]
    return FactGraph.build(nodes, edges)
