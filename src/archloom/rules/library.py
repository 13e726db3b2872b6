"""Ready-made rules: general coding rules and the conference example rule set."""

from __future__ import annotations

from archloom.rules import predicates as p
from archloom.rules.engine import (
    Rule,
    Scope,
    freezing,
    should_all,
    should_count,
    should_none,
    should_not_depend_on_each_other,
)

STANDARD_STREAM_MEMBERS: tuple[str, ...] = (
    "java.lang.System.out",
    "java.lang.System.err",
    "java.lang.Throwable.printStackTrace",
)

GENERIC_EXCEPTION_CONSTRUCTORS: tuple[str, ...] = (
    "java.lang.Throwable.<init>",
    "java.lang.Exception.<init>",
    "java.lang.RuntimeException.<init>",
)


def no_standard_streams(name: str = "no-standard-streams") -> Rule:
    """No class should write to ``System.out``/``System.err`` or print stack traces."""
    return should_none(
        name,
        p.anything(),
        p.Predicate("access standard streams", p.accesses_member(*STANDARD_STREAM_MEMBERS)),
        message="{item} accesses standard streams",
        because="a proper logger should be used instead",
    )


def no_generic_exceptions(name: str = "no-generic-exceptions") -> Rule:
    """No class should throw ``Throwable``, ``Exception``, or ``RuntimeException``."""
    return should_none(
        name,
        p.anything(),
        p.Predicate(
            "throw generic exceptions",
            p.accesses_member(*GENERIC_EXCEPTION_CONSTRUCTORS),
        ),
        message="{item} throws a generic exception",
        because="specific exceptions carry more meaning",
    )


def conference_rules() -> list[Rule]:
    """Rule set for the conference sample application."""
    return [
        no_standard_streams(),
        no_generic_exceptions(),
        should_none(
            "interfaces-not-named-interface",
            p.is_interface(),
            p.simple_name_containing("Interface"),
        ),
        freezing(
            should_all(
                "speaker-is-abstract",
                p.resides_in_package("..speakers") & p.simple_name("Speaker"),
                p.has_modifier("abstract"),
            )
        ),
        should_count(
            "two-presentations",
            p.implements("Presentation"),
            2,
            because=(
                "only two presentations are allowed according to our design. "
                "We might keep just one"
            ),
        ),
        should_none(
            "local-presentation-independent",
            p.edge_from(p.simple_name("LocalPresentation")),
            p.edge_to(p.simple_name("InternationalPresentation")),
            scope=Scope.EDGES,
        ),
        should_none(
            "location-independent-of-speakers",
            p.edge_from(p.resides_in_package("..location")),
            p.edge_to(p.resides_in_package("..speakers")),
            scope=Scope.EDGES,
            because="speakers may have talks in different locations",
        ),
        should_not_depend_on_each_other(
            "tickets-independent",
            p.resides_in_package("..tickets.."),
            slices="..tickets.(*)..",
        ),
        should_all(
            "room-serial-version-uid",
            p.implements("Room"),
            p.has_field("serialVersionUID", ("static", "final"), "java.util.UUID"),
            message="{item}: serialVersionUID is not valid",
            because="Room interface is serializable",
        ),
        should_all(
            "lowercase-packages",
            p.anything(),
            p.package_is_lowercase(),
        ),
        should_all(
            "location-streamer-arguments",
            p.method_annotated_with("LocationInfoStreamer"),
            p.parameter_count_between(1, 3),
            scope=Scope.METHODS,
            message=(
                "method {item} should specify between 1 and 3 arguments "
                "when annotation is used"
            ),
        ),
    ]


def exclude_logging() -> p.Predicate[object]:
    """Graph filter dropping logging classes before evaluation."""
    return p.resides_in_package("..logging..")
