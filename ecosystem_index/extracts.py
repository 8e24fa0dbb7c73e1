"""
Raw extract access: expected layouts, validation, and a CSV directory reader.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Optional

import pandas as pd

from .errors import MissingExtractError
from .interfaces import ExtractSource
from .time_utils import age_in_days


logger = logging.getLogger(__name__)


EXTRACT_COLUMNS: Dict[str, tuple] = {
    "authors": ("author", "name"),
    "distributions": ("author", "distribution", "version", "file"),
    "modules": ("module", "version", "distribution"),
    "requires": ("release", "module", "version", "phase", "core"),
    "uploads": ("author", "filename", "dist", "version", "released"),
    "testers": ("dist", "version", "pass", "fail", "na", "unknown"),
    "ratings": ("distribution", "rating", "review_count"),
    "meta": ("release", "meta", "meta_license"),
    "tickets": ("id", "distribution", "subject", "status", "severity", "created", "updated"),
}

REQUIRED_EXTRACTS = ("authors", "distributions", "modules", "requires")
OPTIONAL_EXTRACTS = ("uploads", "testers", "ratings", "meta", "tickets")

# Columns that may be absent from an extract without failing validation
OPTIONAL_COLUMNS = {
    "requires": ("core",),
    "tickets": ("severity",),
}


def empty_extract(name: str) -> pd.DataFrame:
    """An empty frame with the columns expected for ``name``."""
    return pd.DataFrame({column: pd.Series(dtype=object) for column in EXTRACT_COLUMNS[name]})


def _as_text(value):
    if value is None or pd.isna(value):
        return None
    return str(value)


def validate_extract(name: str, frame: pd.DataFrame) -> pd.DataFrame:
    """Check that ``frame`` carries the columns expected for ``name``.

    Missing optional columns are added as nulls. Every non-null value is
    turned into text, whatever dtype the source produced.

    Raises:
        MissingExtractError: if a required column is absent
    """
    expected = EXTRACT_COLUMNS[name]
    optional = OPTIONAL_COLUMNS.get(name, ())
    missing = [column for column in expected if column not in frame.columns and column not in optional]
    if missing:
        raise MissingExtractError(
            f"Extract '{name}' is missing required columns: {', '.join(missing)}"
        )
    frame = frame.copy()
    for column in optional:
        if column not in frame.columns:
            frame[column] = None
    frame = frame[list(expected)].copy()
    for column in expected:
        frame[column] = frame[column].map(_as_text).astype(object)
    return frame


class RawExtracts:
    """Validated access to the raw source datasets.

    Required extracts raise ``MissingExtractError`` when absent; optional
    extracts degrade to empty frames so that their columns end up null.
    """

    def __init__(self, frames: Dict[str, pd.DataFrame]):
        self.frames = dict(frames)
        self._cache: Dict[str, pd.DataFrame] = {}

    @classmethod
    def from_source(cls, source: ExtractSource, names: Optional[Iterable[str]] = None) -> "RawExtracts":
        frames = {}
        for name in names or EXTRACT_COLUMNS:
            if source.has(name):
                frames[name] = source.read(name)
        return cls(frames)

    def available(self, name: str) -> bool:
        return name in self.frames

    def check_required(self) -> None:
        """Validate every required extract, raising ``MissingExtractError`` on the first failure."""
        for name in REQUIRED_EXTRACTS:
            self.get(name)

    def get(self, name: str) -> pd.DataFrame:
        if name not in EXTRACT_COLUMNS:
            raise KeyError(f"Unknown extract: {name}")
        if name in self._cache:
            return self._cache[name]

        if name not in self.frames:
            if name in REQUIRED_EXTRACTS:
                raise MissingExtractError(f"Required extract '{name}' is missing")
            logger.warning("Optional extract '%s' is missing, its columns will be null", name)
            frame = empty_extract(name)
        else:
            frame = validate_extract(name, self.frames[name])

        self._cache[name] = frame
        return frame


class CsvExtractSource:
    """Read extracts from ``<name>.csv`` files in a directory.

    All values are read as text; stages convert numeric columns themselves so
    that versions such as ``1.10`` are not mangled into floats.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path(self, name: str) -> Path:
        return self.directory / f"{name}.csv"

    def has(self, name: str) -> bool:
        return self.path(name).is_file()

    def read(self, name: str) -> pd.DataFrame:
        path = self.path(name)
        if not path.is_file():
            raise MissingExtractError(f"Extract file not found: {path}")
        logger.info("Reading extract %s", path)
        return pd.read_csv(path, dtype=str, keep_default_na=True)

    def age(self, name: str) -> Optional[float]:
        path = self.path(name)
        if not path.is_file():
            return None
        modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        return age_in_days(modified)
