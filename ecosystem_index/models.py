"""
Core data models for the ecosystem index.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple


DEFAULT_BATCH_SIZE = 100
DEFAULT_UMBRELLA_PREFIXES = ("Task-", "Acme-")


@dataclass(frozen=True)
class ColumnSpec:
    """A column in a store table."""

    name: str
    type: str = "TEXT"
    nullable: bool = True


@dataclass(frozen=True)
class TableSpec:
    """Declarative description of a store table and its indexes."""

    name: str
    columns: Tuple[ColumnSpec, ...]
    primary_key: Tuple[str, ...] = ()
    foreign_keys: Tuple[Tuple[str, str, str], ...] = ()
    indexes: Tuple[str, ...] = ()

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(column.name for column in self.columns)


@dataclass(frozen=True)
class DependencyEdge:
    """Distribution-level dependency, after module references are collapsed."""

    distribution: str
    dependency: str
    phase: str
    core: Optional[float] = None


@dataclass(frozen=True)
class GraphMetrics:
    """Computed weight and volatility per distribution."""

    weight: Dict[str, int] = field(default_factory=dict)
    volatility: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class GeneratorSettings:
    """Run configuration for the index generator."""

    sqlite_path: Path = Path("./output/ecosystem-index.db")
    batch_size: int = DEFAULT_BATCH_SIZE
    umbrella_prefixes: Tuple[str, ...] = DEFAULT_UMBRELLA_PREFIXES
    cache_size: Optional[int] = 100000
    keep_intermediate: bool = False
    vacuum: bool = True
