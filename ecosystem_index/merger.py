"""
Entity merger: builds the author, distribution, module and ticket tables.
"""

from __future__ import annotations

import logging
from typing import Dict

import pandas as pd

from .extracts import RawExtracts
from .models import DEFAULT_BATCH_SIZE
from .schema import AUTHOR, DISTRIBUTION, MODULE, TICKET
from .store import IndexStore


logger = logging.getLogger(__name__)


DISTRIBUTION_INSERT = """
INSERT INTO distribution
SELECT
	d.dist AS distribution,
	d.version AS version,
	d.author AS author,
	0 AS meta,
	NULL AS license,
	d.release AS release,
	COALESCE(ur.uploaded, uv.uploaded) AS uploaded,
	t.pass AS pass,
	t.fail AS fail,
	t.unknown AS unknown,
	t.na AS na,
	NULL AS rating,
	0 AS ratings,
	0 AS weight,
	0 AS volatility
FROM
	t_distribution d
LEFT JOIN
	t_uploaded ur ON ur.release = d.release
LEFT JOIN (
	SELECT dist_version, MIN(uploaded) AS uploaded
	FROM t_uploaded
	WHERE dist_version IS NOT NULL
	GROUP BY dist_version
) uv ON uv.dist_version = d.dist_version
LEFT JOIN
	t_testers t ON t.dist_version = d.dist_version
ORDER BY
	distribution
"""

PLACEHOLDER_AUTHORS = """
INSERT INTO author
SELECT DISTINCT
	d.author AS author,
	d.author AS name
FROM
	t_distribution d
WHERE
	d.author NOT IN ( SELECT author FROM author )
ORDER BY
	author
"""

RATING_UPDATE = "UPDATE distribution SET rating = ?, ratings = ? WHERE distribution = ?"
META_UPDATE = "UPDATE distribution SET meta = ?, license = ? WHERE release = ?"


class EntityMerger:
    """Join the normalized tables into the final entity tables.

    Secondary sources never drop a distribution: a missing upload, testers,
    rating or meta row leaves the matching columns null.
    """

    def __init__(
        self,
        store: IndexStore,
        extracts: RawExtracts,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.store = store
        self.extracts = extracts
        self.batch_size = batch_size

    def build_authors(self) -> int:
        logger.info("Generating table author...")
        raw = self.extracts.get("authors")
        frame = raw.dropna(subset=["author"]).copy()
        frame["name"] = frame["name"].fillna(frame["author"])
        frame = frame.sort_values("author", kind="mergesort").drop_duplicates("author")

        self.store.create_table(AUTHOR)
        self.store.insert_frame(AUTHOR.name, frame, AUTHOR.column_names)
        added = self.store.execute(PLACEHOLDER_AUTHORS).rowcount
        if added > 0:
            logger.warning("Added %d authors missing from the author extract", added)
        self.store.create_index(AUTHOR.name, *AUTHOR.indexes)
        return self.store.count(AUTHOR.name)

    def build_distributions(self) -> int:
        logger.info("Generating table distribution...")
        self.store.create_table(DISTRIBUTION)
        self.store.execute(DISTRIBUTION_INSERT)
        # The requires join and the meta backfill both look distributions up by release
        self.store.create_index(DISTRIBUTION.name, "release")
        return self.store.count(DISTRIBUTION.name)

    def apply_ratings(self) -> int:
        """Backfill rating columns, keyed by distribution name only."""
        raw = self.extracts.get("ratings")
        if raw.empty:
            logger.warning("No ratings available, distribution.rating stays null")
            return 0
        logger.info("Populating ratings...")
        frame = raw.dropna(subset=["distribution"])
        counts = pd.to_numeric(frame["review_count"], errors="coerce").fillna(0).astype(int)
        rows = zip(
            frame["rating"].map(lambda value: None if pd.isna(value) else str(value)),
            counts,
            frame["distribution"],
        )
        matched = self.store.batched_update(
            RATING_UPDATE, rows, self.batch_size, desc="ratings", total=len(frame)
        )
        self._report_unmatched("ratings", len(frame), matched)
        return matched

    def apply_meta(self) -> int:
        """Backfill meta flag and license, keyed by release."""
        raw = self.extracts.get("meta")
        if raw.empty:
            logger.warning("No meta data available, distribution.meta stays 0")
            return 0
        logger.info("Generating columns distribution.(meta|license)...")
        frame = raw.dropna(subset=["release"])
        flags = pd.to_numeric(frame["meta"], errors="coerce").fillna(0).astype(int)
        rows = zip(
            flags,
            frame["meta_license"].map(lambda value: None if pd.isna(value) else value),
            frame["release"],
        )
        matched = self.store.batched_update(
            META_UPDATE, rows, self.batch_size, desc="meta", total=len(frame)
        )
        self._report_unmatched("meta", len(frame), matched)
        return matched

    def _report_unmatched(self, source: str, total: int, matched: int) -> None:
        if matched < total:
            logger.info("%d of %d %s rows matched no distribution", total - matched, total, source)

    def build_modules(self) -> int:
        """Module table, restricted to modules whose distribution exists."""
        logger.info("Generating table module...")
        raw = self.extracts.get("modules")
        known = set(self.store.query("SELECT distribution FROM distribution")["distribution"])

        frame = raw.dropna(subset=["module", "distribution"])
        orphaned = ~frame["distribution"].isin(known)
        if orphaned.any():
            logger.warning("Dropping %d modules of unindexed distributions", int(orphaned.sum()))
        frame = frame[~orphaned]
        frame = frame.sort_values(["module", "distribution"], kind="mergesort")
        duplicated = frame.duplicated(subset="module", keep="first")
        if duplicated.any():
            logger.warning("Dropping %d duplicate module rows", int(duplicated.sum()))
        frame = frame[~duplicated]

        self.store.create_table(MODULE)
        self.store.insert_frame(MODULE.name, frame, MODULE.column_names)
        self.store.create_index(MODULE.name, *MODULE.indexes)
        return len(frame)

    def build_tickets(self) -> int:
        logger.info("Generating table ticket...")
        self.store.create_table(TICKET)
        self.store.execute(
            "INSERT INTO ticket SELECT id, distribution, subject, status, severity, created, updated "
            "FROM t_ticket ORDER BY id"
        )
        self.store.create_index(TICKET.name, *TICKET.indexes)
        return self.store.count(TICKET.name)

    def run(self) -> Dict[str, int]:
        counts = {
            AUTHOR.name: self.build_authors(),
            DISTRIBUTION.name: self.build_distributions(),
        }
        self.apply_ratings()
        self.apply_meta()
        counts[MODULE.name] = self.build_modules()
        counts[TICKET.name] = self.build_tickets()
        return counts
