"""
Index generator: runs every stage of the merge-and-analyze pipeline.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from .cleaner import clean_requires
from .dependency_resolver import DependencyResolver
from .errors import GeneratorError, StageError
from .extracts import EXTRACT_COLUMNS, RawExtracts
from .interfaces import AgeReporter, NullAgeReporter
from .merger import EntityMerger
from .metrics import compute_metrics
from .models import GeneratorSettings, GraphMetrics
from .normalizer import Normalizer
from .reporting import coverage_report, log_coverage
from .schema import DISTRIBUTION, INTERMEDIATE_TABLES
from .store import IndexStore


logger = logging.getLogger(__name__)

WEIGHT_UPDATE = "UPDATE distribution SET weight = ? WHERE distribution = ?"
VOLATILITY_UPDATE = "UPDATE distribution SET volatility = ? WHERE distribution = ?"


class IndexGenerator:
    """Build the merged index from raw extracts into a store."""

    def __init__(
        self,
        store: IndexStore,
        extracts: RawExtracts,
        settings: Optional[GeneratorSettings] = None,
        age_reporter: Optional[AgeReporter] = None,
    ):
        """Initialize the generator.

        Args:
            store: Empty store the index is written to
            extracts: Raw source datasets
            settings: Run configuration; defaults apply when omitted
            age_reporter: Reports extract freshness; a no-op reporter when omitted
        """
        self.store = store
        self.extracts = extracts
        self.settings = settings or GeneratorSettings()
        self.age_reporter = age_reporter or NullAgeReporter()

        self.normalizer = Normalizer(store, extracts)
        self.merger = EntityMerger(store, extracts, batch_size=self.settings.batch_size)
        self.resolver = DependencyResolver(store)
        self.metrics: Optional[GraphMetrics] = None

    @classmethod
    def from_settings(
        cls,
        extracts: RawExtracts,
        settings: GeneratorSettings,
        age_reporter: Optional[AgeReporter] = None,
    ) -> "IndexGenerator":
        """Open a fresh store for ``settings`` once the required extracts are known to be usable.

        An existing database is only cleared after that check passes.
        """
        extracts.check_required()
        store = IndexStore.create(settings.sqlite_path, cache_size=settings.cache_size)
        return cls(store, extracts, settings=settings, age_reporter=age_reporter)

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """Attach the stage name to any failure raised inside the block."""
        logger.info("Stage: %s", name)
        try:
            yield
        except GeneratorError as e:
            if e.stage is None:
                e.stage = name
            logger.error("%s", e)
            raise
        except Exception as e:
            logger.error("Stage %s failed: %s", name, e)
            raise StageError(f"{type(e).__name__}: {e}", stage=name) from e

    def report_ages(self) -> None:
        for name in EXTRACT_COLUMNS:
            if not self.extracts.available(name):
                continue
            age = self.age_reporter.age(name)
            if age is None:
                logger.info("%s age = Not Implemented", name)
            else:
                logger.info("%s age = %.1f day(s)", name, age)

    def run(self) -> Dict[str, Any]:
        """Run the full pipeline.

        Returns:
            Coverage report for the finished store
        """
        self.report_ages()

        with self.stage("normalize"):
            self.normalizer.run()
            requires = self.normalizer.requires()

        with self.stage("clean"):
            logger.info("Cleaning table t_requires...")
            requires = clean_requires(requires)
            self.normalizer.load_requires(requires)

        with self.stage("merge"):
            self.merger.run()

        with self.stage("resolve"):
            self.resolver.run()

        with self.stage("metrics"):
            self.metrics = self.compute_metrics()
            self.apply_metrics(self.metrics)

        with self.stage("index"):
            self.store.create_index(DISTRIBUTION.name, *DISTRIBUTION.indexes)
            report = coverage_report(self.store)
            log_coverage(report)

        with self.stage("cleanup"):
            self.cleanup()

        return report

    def compute_metrics(self) -> GraphMetrics:
        distributions = list(
            self.store.query("SELECT distribution FROM distribution ORDER BY distribution")["distribution"]
        )
        return compute_metrics(
            distributions,
            self.resolver.edges(),
            umbrella_prefixes=self.settings.umbrella_prefixes,
        )

    def apply_metrics(self, metrics: GraphMetrics) -> None:
        """Backfill weight and volatility in batches; zero values are already in place."""
        logger.info("Populating column distribution.weight...")
        weights = [(value, name) for name, value in sorted(metrics.weight.items()) if value]
        self.store.batched_update(
            WEIGHT_UPDATE, weights, self.settings.batch_size, desc="weight", total=len(weights)
        )

        logger.info("Populating column distribution.volatility...")
        volatility = [(value, name) for name, value in sorted(metrics.volatility.items()) if value]
        self.store.batched_update(
            VOLATILITY_UPDATE, volatility, self.settings.batch_size, desc="volatility", total=len(volatility)
        )

    def cleanup(self) -> None:
        if not self.settings.keep_intermediate:
            logger.info("Dropping excess tables...")
            for spec in INTERMEDIATE_TABLES:
                self.store.drop_table(spec.name)
        if self.settings.vacuum:
            logger.info("Freeing excess space...")
            self.store.vacuum()
        logger.info("Optimising indexes...")
        self.store.analyze()
