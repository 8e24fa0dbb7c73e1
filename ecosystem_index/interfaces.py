"""
Interfaces for raw extract sources and their optional capabilities.
"""

from __future__ import annotations

from typing import Optional, Protocol

import pandas as pd


class ExtractSource(Protocol):
    """Read-only tabular access to the raw source datasets."""

    def has(self, name: str) -> bool:
        ...

    def read(self, name: str) -> pd.DataFrame:
        ...


class AgeReporter(Protocol):
    """Report how old a source dataset is, in days."""

    def age(self, name: str) -> Optional[float]:
        ...


class NullAgeReporter:
    """Age reporter for sources that cannot tell how fresh they are."""

    def age(self, name: str) -> Optional[float]:
        return None
