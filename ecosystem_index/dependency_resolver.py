"""
Collapse module-level dependency declarations into distribution-level edges.
"""

from __future__ import annotations

import logging
from typing import Dict, List

import pandas as pd

from .models import DependencyEdge
from .schema import DEPENDENCY, REQUIRES
from .store import IndexStore


logger = logging.getLogger(__name__)

EDGE_KEY = ["distribution", "dependency", "phase"]


def collapse_edges(frame: pd.DataFrame) -> pd.DataFrame:
    """Keep one row per (distribution, dependency, phase).

    The row with the highest core wins; a null core loses to any number.
    Remaining ties go to the lexically first module.

    Args:
        frame: Rows with distribution, dependency, phase, core and module columns

    Returns:
        Collapsed edges sorted by distribution, phase, dependency
    """
    frame = frame.assign(core=pd.to_numeric(frame["core"], errors="coerce"))
    ordered = frame.sort_values(
        EDGE_KEY + ["core", "module"],
        ascending=[True, True, True, False, True],
        kind="mergesort",
        na_position="last",
    )
    collapsed = ordered.drop_duplicates(subset=EDGE_KEY, keep="first")
    collapsed = collapsed.sort_values(["distribution", "phase", "dependency"], kind="mergesort")
    return collapsed[EDGE_KEY + ["core"]].reset_index(drop=True)


def resolve_dependencies(requires: pd.DataFrame, modules: pd.DataFrame) -> pd.DataFrame:
    """Substitute each required module with its owning distribution and collapse.

    Declarations of modules that are not indexed are dropped, since the edge
    would point at an unknown distribution. Self edges pass through.

    Args:
        requires: Module-level rows (distribution, module, version, phase, core)
        modules: Module to distribution mapping (module, distribution)

    Returns:
        Distribution-level edges (distribution, dependency, phase, core)
    """
    owners = modules[["module", "distribution"]].rename(columns={"distribution": "dependency"})
    joined = requires.merge(owners, on="module", how="inner")
    dropped = len(requires) - len(joined)
    if dropped:
        logger.info("%d requires rows reference modules outside the index", dropped)
    return collapse_edges(joined)


def frame_to_edges(frame: pd.DataFrame) -> List[DependencyEdge]:
    return [
        DependencyEdge(
            distribution=row.distribution,
            dependency=row.dependency,
            phase=row.phase,
            core=None if pd.isna(row.core) else float(row.core),
        )
        for row in frame.itertuples(index=False)
    ]


class DependencyResolver:
    """Build the ``dependency`` and ``requires`` tables from ``t_requires``."""

    def __init__(self, store: IndexStore):
        self.store = store

    def build_dependencies(self) -> int:
        logger.info("Generating table dependency...")
        requires = self.store.query(
            "SELECT distribution, module, version, phase, core FROM t_requires"
        )
        modules = self.store.query("SELECT module, distribution FROM module")
        edges = resolve_dependencies(requires, modules)

        self.store.create_table(DEPENDENCY)
        self.store.insert_frame(DEPENDENCY.name, edges, DEPENDENCY.column_names)
        self.store.create_index(DEPENDENCY.name, *DEPENDENCY.indexes)
        return len(edges)

    def build_requires(self) -> int:
        """Final requires table, without the core column.

        Duplicate (distribution, module, phase) declarations keep the row with
        the highest core.
        """
        logger.info("Generating table requires...")
        frame = self.store.query(
            "SELECT distribution, module, version, phase, core FROM t_requires"
        )
        frame = frame.assign(core=pd.to_numeric(frame["core"], errors="coerce"))
        frame = frame.sort_values(
            ["distribution", "phase", "module", "core", "version"],
            ascending=[True, True, True, False, True],
            kind="mergesort",
            na_position="last",
        )
        frame = frame.drop_duplicates(subset=["distribution", "module", "phase"], keep="first")

        self.store.create_table(REQUIRES)
        self.store.insert_frame(REQUIRES.name, frame, REQUIRES.column_names)
        self.store.create_index(REQUIRES.name, *REQUIRES.indexes)
        return len(frame)

    def edges(self) -> List[DependencyEdge]:
        frame = self.store.query(
            "SELECT distribution, dependency, phase, core FROM dependency "
            "ORDER BY distribution, phase, dependency"
        )
        return frame_to_edges(frame)

    def run(self) -> Dict[str, int]:
        return {
            DEPENDENCY.name: self.build_dependencies(),
            REQUIRES.name: self.build_requires(),
        }
