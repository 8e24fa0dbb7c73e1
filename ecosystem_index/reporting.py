"""
Coverage reporting and summary export.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

from .schema import FINAL_TABLES
from .store import IndexStore


logger = logging.getLogger(__name__)

COVERAGE_CHECKS = {
    "uploaded": "uploaded IS NOT NULL",
    "meta": "meta = 1",
    "rating": "rating IS NOT NULL",
}


def coverage_report(store: IndexStore) -> Dict[str, Any]:
    """Row counts per final table and merge coverage of the distribution table."""
    tables = {
        spec.name: store.count(spec.name)
        for spec in FINAL_TABLES
        if store.table_exists(spec.name)
    }
    coverage = {
        column: store.count("distribution", where)
        for column, where in COVERAGE_CHECKS.items()
    }
    return {"tables": tables, "coverage": coverage}


def log_coverage(report: Dict[str, Any]) -> None:
    logger.info("=" * 60)
    logger.info("INDEX SUMMARY")
    logger.info("=" * 60)
    for table, rows in report["tables"].items():
        logger.info("Table %s = %d rows", table, rows)
    logger.info("-" * 60)
    for column, rows in report["coverage"].items():
        logger.info("Coverage for column %s = %d", column, rows)
    logger.info("=" * 60)


def save_summary_json(report: Dict[str, Any], output_dir: Path, name: str = "index") -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    summary_file = output_dir / f"{name}_summary.json"
    with open(summary_file, 'w') as f:
        json.dump(report, f, indent=2, default=str)
    return summary_file
