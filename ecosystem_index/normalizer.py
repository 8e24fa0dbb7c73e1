"""
Projection of raw extracts into uniformly keyed intermediate tables.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import pandas as pd

from .cleaner import version_key
from .extracts import RawExtracts
from .models import TableSpec
from .schema import T_DISTRIBUTION, T_REQUIRES, T_TESTERS, T_TICKET, T_UPLOADED
from .store import IndexStore
from .time_utils import epoch_to_date, timestamp_to_date


logger = logging.getLogger(__name__)

PHASES = ("runtime", "build", "test", "configure", "develop")
CLOSED_STATUSES = ("resolved", "rejected")
DEFAULT_SEVERITY = "normal"


def release_identity(names: pd.Series, versions: pd.Series) -> pd.Series:
    """``"<name> <version>"``; null when either part is null."""
    return names.str.cat(versions, sep=" ")


def release_path(authors: pd.Series, files: pd.Series) -> pd.Series:
    """``"<author>/<file>"``; null when either part is null."""
    return authors.str.cat(files, sep="/")


def _drop_incomplete(frame: pd.DataFrame, columns, label: str) -> pd.DataFrame:
    incomplete = frame[list(columns)].isna().any(axis=1)
    if incomplete.any():
        logger.warning("Dropping %d %s rows with missing %s", int(incomplete.sum()), label, "/".join(columns))
    return frame[~incomplete]


def _counts(values: pd.Series) -> pd.Series:
    return pd.to_numeric(values, errors="coerce").astype("Int64")


class Normalizer:
    """Build the ``t_*`` intermediate tables from raw extracts."""

    def __init__(self, store: IndexStore, extracts: RawExtracts):
        self.store = store
        self.extracts = extracts
        self._distributions: Optional[pd.DataFrame] = None

    def run(self) -> Dict[str, int]:
        """Load every intermediate table except ``t_requires``.

        Returns:
            Row count per table
        """
        counts = {}
        logger.info("Cleaning distribution index...")
        counts[T_DISTRIBUTION.name] = self._load(T_DISTRIBUTION, self.distributions())
        logger.info("Cleaning testers...")
        counts[T_TESTERS.name] = self._load(T_TESTERS, self.testers())
        logger.info("Cleaning uploads...")
        counts[T_UPLOADED.name] = self._load(T_UPLOADED, self.uploads())
        logger.info("Cleaning tickets...")
        counts[T_TICKET.name] = self._load(T_TICKET, self.tickets())
        return counts

    def _load(self, spec: TableSpec, frame: pd.DataFrame) -> int:
        self.store.create_table(spec)
        rows = self.store.insert_frame(spec.name, frame, spec.column_names)
        self.store.create_index(spec.name, *spec.indexes)
        return rows

    def load_requires(self, frame: pd.DataFrame) -> int:
        """Load an already cleaned module-level requires frame into ``t_requires``."""
        frame = frame.sort_values(
            ["distribution", "phase", "core", "module"],
            ascending=[True, True, False, True],
            kind="mergesort",
            na_position="last",
        )
        return self._load(T_REQUIRES, frame)

    def distributions(self) -> pd.DataFrame:
        """One row per distribution, keeping its highest version."""
        if self._distributions is not None:
            return self._distributions

        raw = self.extracts.get("distributions")
        frame = pd.DataFrame({
            "dist": raw["distribution"],
            "version": raw["version"],
            "author": raw["author"],
            "file": raw["file"],
        })
        frame = _drop_incomplete(frame, ("dist", "author", "file"), "distribution")

        best: Dict[str, tuple] = {}
        for position, (dist, version) in enumerate(zip(frame["dist"], frame["version"])):
            key = version_key(version)
            if dist not in best or key > best[dist][0]:
                best[dist] = (key, position)
        if len(best) < len(frame):
            logger.info("Collapsed %d superseded releases", len(frame) - len(best))
        frame = frame.iloc[sorted(position for _, position in best.values())]

        frame = frame.assign(
            dist_version=release_identity(frame["dist"], frame["version"]),
            release=release_path(frame["author"], frame["file"]),
        )
        frame = frame.sort_values("dist", kind="mergesort").reset_index(drop=True)
        self._distributions = frame[list(T_DISTRIBUTION.column_names)]
        return self._distributions

    def testers(self) -> pd.DataFrame:
        raw = self.extracts.get("testers")
        frame = pd.DataFrame({
            "dist_version": release_identity(raw["dist"], raw["version"]),
            "pass": _counts(raw["pass"]),
            "fail": _counts(raw["fail"]),
            "na": _counts(raw["na"]),
            "unknown": _counts(raw["unknown"]),
        })
        frame = frame.dropna(subset=["dist_version"])
        frame = frame.sort_values("dist_version", kind="mergesort")
        return frame.drop_duplicates(subset="dist_version", keep="first").reset_index(drop=True)

    def uploads(self) -> pd.DataFrame:
        """One upload per release; the shortest distribution name wins."""
        raw = self.extracts.get("uploads")
        frame = pd.DataFrame({
            "dist_version": release_identity(raw["dist"], raw["version"]),
            "release": release_path(raw["author"], raw["filename"]),
            "uploaded": epoch_to_date(raw["released"]),
            "name_length": raw["dist"].str.len(),
        })
        frame = frame.dropna(subset=["release"])
        frame = frame.sort_values(["release", "name_length"], kind="mergesort", na_position="last")
        frame = frame.drop_duplicates(subset="release", keep="first")
        return frame.drop(columns="name_length").reset_index(drop=True)

    def tickets(self) -> pd.DataFrame:
        """Open tickets for known distributions, sorted by id."""
        raw = self.extracts.get("tickets")
        known = set(self.distributions()["dist"])
        status = raw["status"].astype(object)
        frame = pd.DataFrame({
            "id": pd.to_numeric(raw["id"], errors="coerce"),
            "distribution": raw["distribution"],
            "subject": raw["subject"].fillna(""),
            "status": status,
            "severity": raw["severity"].fillna(DEFAULT_SEVERITY),
            "created": timestamp_to_date(raw["created"]),
            "updated": timestamp_to_date(raw["updated"]),
        })
        frame = _drop_incomplete(frame, ("id", "distribution", "status"), "ticket")
        frame = frame[~frame["status"].str.lower().isin(CLOSED_STATUSES)]
        frame = frame[frame["distribution"].isin(known)]
        frame = frame.assign(id=frame["id"].astype("int64"))
        frame = frame.sort_values("id", kind="mergesort")
        return frame.drop_duplicates(subset="id", keep="first").reset_index(drop=True)

    def requires(self) -> pd.DataFrame:
        """Module-level requires keyed by distribution instead of release."""
        raw = self.extracts.get("requires")
        releases = self.distributions()[["dist", "release"]]
        frame = raw.merge(releases, on="release", how="inner")
        unmatched = len(raw) - len(frame)
        if unmatched > 0:
            logger.info("Skipped %d requires rows for unindexed releases", unmatched)
        frame = pd.DataFrame({
            "distribution": frame["dist"],
            "module": frame["module"],
            "version": frame["version"],
            "phase": frame["phase"].str.strip().str.lower(),
            "core": frame["core"],
        })
        frame = _drop_incomplete(frame, ("module", "phase"), "requires")

        unknown = ~frame["phase"].isin(PHASES)
        if unknown.any():
            logger.warning(
                "Keeping %d requires rows with unrecognised phases: %s",
                int(unknown.sum()), ", ".join(sorted(frame.loc[unknown, "phase"].unique())),
            )
        return frame.reset_index(drop=True)
