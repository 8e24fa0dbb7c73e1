"""Shared fixtures: a small extract set and an in-memory store."""

from typing import Dict

import pandas as pd
import pytest

from ecosystem_index.extracts import RawExtracts
from ecosystem_index.store import IndexStore


def sample_frames() -> Dict[str, pd.DataFrame]:
    """Foo-1.0 by AKI depends on Bar at runtime; Bar-2.0 has no dependencies."""
    return {
        "authors": pd.DataFrame({
            "author": ["AKI", "BOB"],
            "name": ["Aki Author", "Bob Builder"],
        }),
        "distributions": pd.DataFrame({
            "author": ["AKI", "BOB"],
            "distribution": ["Foo", "Bar"],
            "version": ["1.0", "2.0"],
            "file": ["Foo-1.0.tar.gz", "Bar-2.0.tar.gz"],
        }),
        "modules": pd.DataFrame({
            "module": ["Foo", "Foo::Util", "Bar"],
            "version": ["1.0", "1.0", "2.0"],
            "distribution": ["Foo", "Foo", "Bar"],
        }),
        "requires": pd.DataFrame({
            "release": ["AKI/Foo-1.0.tar.gz"],
            "module": ["Bar"],
            "version": [">= 2.0"],
            "phase": ["runtime"],
            "core": [None],
        }),
    }


@pytest.fixture
def frames() -> Dict[str, pd.DataFrame]:
    return sample_frames()


@pytest.fixture
def extracts(frames) -> RawExtracts:
    return RawExtracts(frames)


@pytest.fixture
def store():
    store = IndexStore.create(":memory:")
    yield store
    store.close()
