"""
Table definitions for the intermediate and final index tables.

Intermediate tables carry a ``t_`` prefix and are dropped at the end of a run.
"""

from __future__ import annotations

from .models import ColumnSpec, TableSpec


def _columns(*specs) -> tuple:
    return tuple(
        ColumnSpec(name, type_, nullable) for name, type_, nullable in specs
    )


# Intermediate tables

T_DISTRIBUTION = TableSpec(
    name="t_distribution",
    columns=_columns(
        ("dist", "TEXT", False),
        ("version", "TEXT", True),
        ("dist_version", "TEXT", True),
        ("author", "TEXT", False),
        ("release", "TEXT", False),
    ),
    indexes=("dist", "version", "dist_version", "author", "release"),
)

T_TESTERS = TableSpec(
    name="t_testers",
    columns=_columns(
        ("dist_version", "TEXT", False),
        ("pass", "INTEGER", True),
        ("fail", "INTEGER", True),
        ("na", "INTEGER", True),
        ("unknown", "INTEGER", True),
    ),
    indexes=("dist_version",),
)

T_UPLOADED = TableSpec(
    name="t_uploaded",
    columns=_columns(
        ("dist_version", "TEXT", True),
        ("release", "TEXT", False),
        ("uploaded", "TEXT", True),
    ),
    indexes=("release", "dist_version"),
)

T_TICKET = TableSpec(
    name="t_ticket",
    columns=_columns(
        ("id", "INTEGER", False),
        ("distribution", "TEXT", False),
        ("subject", "TEXT", False),
        ("status", "TEXT", False),
        ("severity", "TEXT", False),
        ("created", "TEXT", True),
        ("updated", "TEXT", True),
    ),
    indexes=("id", "distribution", "status", "severity"),
)

T_REQUIRES = TableSpec(
    name="t_requires",
    columns=_columns(
        ("distribution", "TEXT", False),
        ("module", "TEXT", False),
        ("version", "TEXT", True),
        ("phase", "TEXT", False),
        ("core", "REAL", True),
    ),
    indexes=("distribution", "module", "version", "phase", "core"),
)

INTERMEDIATE_TABLES = (T_DISTRIBUTION, T_TESTERS, T_UPLOADED, T_TICKET, T_REQUIRES)


# Final tables

AUTHOR = TableSpec(
    name="author",
    columns=_columns(
        ("author", "TEXT", False),
        ("name", "TEXT", False),
    ),
    primary_key=("author",),
    indexes=("name",),
)

DISTRIBUTION = TableSpec(
    name="distribution",
    columns=_columns(
        ("distribution", "TEXT", False),
        ("version", "TEXT", True),
        ("author", "TEXT", False),
        ("meta", "INTEGER", False),
        ("license", "TEXT", True),
        ("release", "TEXT", False),
        ("uploaded", "TEXT", True),
        ("pass", "INTEGER", True),
        ("fail", "INTEGER", True),
        ("unknown", "INTEGER", True),
        ("na", "INTEGER", True),
        ("rating", "TEXT", True),
        ("ratings", "INTEGER", False),
        ("weight", "INTEGER", False),
        ("volatility", "INTEGER", False),
    ),
    primary_key=("distribution",),
    foreign_keys=(("author", "author", "author"),),
    indexes=(
        "version",
        "author",
        "meta",
        "license",
        "pass",
        "fail",
        "unknown",
        "na",
        "uploaded",
        "rating",
        "ratings",
        "weight",
        "volatility",
    ),
)

MODULE = TableSpec(
    name="module",
    columns=_columns(
        ("module", "TEXT", False),
        ("version", "TEXT", True),
        ("distribution", "TEXT", False),
    ),
    primary_key=("module",),
    foreign_keys=(("distribution", "distribution", "distribution"),),
    indexes=("version", "distribution"),
)

DEPENDENCY = TableSpec(
    name="dependency",
    columns=_columns(
        ("distribution", "TEXT", False),
        ("dependency", "TEXT", False),
        ("phase", "TEXT", False),
        ("core", "REAL", True),
    ),
    primary_key=("distribution", "dependency", "phase"),
    foreign_keys=(
        ("distribution", "distribution", "distribution"),
        ("dependency", "distribution", "distribution"),
    ),
    indexes=("distribution", "dependency", "phase", "core"),
)

REQUIRES = TableSpec(
    name="requires",
    columns=_columns(
        ("distribution", "TEXT", False),
        ("module", "TEXT", False),
        ("version", "TEXT", True),
        ("phase", "TEXT", False),
    ),
    primary_key=("distribution", "module", "phase"),
    foreign_keys=(
        ("distribution", "distribution", "distribution"),
        ("module", "module", "module"),
    ),
    indexes=("distribution", "module", "version", "phase"),
)

TICKET = TableSpec(
    name="ticket",
    columns=_columns(
        ("id", "INTEGER", False),
        ("distribution", "TEXT", False),
        ("subject", "TEXT", False),
        ("status", "TEXT", False),
        ("severity", "TEXT", False),
        ("created", "TEXT", True),
        ("updated", "TEXT", True),
    ),
    primary_key=("id",),
    foreign_keys=(("distribution", "distribution", "distribution"),),
    indexes=("distribution", "status", "severity"),
)

FINAL_TABLES = (AUTHOR, DISTRIBUTION, MODULE, DEPENDENCY, REQUIRES, TICKET)
