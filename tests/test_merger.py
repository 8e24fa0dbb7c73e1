"""Tests for the entity merger."""

import pandas as pd
import pytest

from ecosystem_index.extracts import RawExtracts
from ecosystem_index.merger import EntityMerger
from ecosystem_index.normalizer import Normalizer


def _merger(store, frames, batch_size=100) -> EntityMerger:
    extracts = RawExtracts(frames)
    Normalizer(store, extracts).run()
    return EntityMerger(store, extracts, batch_size=batch_size)


def _distribution(store, name):
    frame = store.query("SELECT * FROM distribution WHERE distribution = ?", (name,))
    assert len(frame) == 1
    return frame.iloc[0]


def test_distribution_left_join_keeps_every_distribution(store, frames):
    merger = _merger(store, frames)

    merger.build_authors()
    assert merger.build_distributions() == 2

    foo = _distribution(store, "Foo")
    assert foo["version"] == "1.0"
    assert foo["release"] == "AKI/Foo-1.0.tar.gz"
    assert foo["meta"] == 0
    assert foo["ratings"] == 0
    assert foo["weight"] == 0
    assert foo["volatility"] == 0
    assert foo["uploaded"] is None
    assert foo["pass"] is None
    assert foo["rating"] is None


def test_secondary_sources_fill_matching_columns(store, frames):
    frames["uploads"] = pd.DataFrame({
        "author": ["AKI"],
        "filename": ["Foo-1.0.tar.gz"],
        "dist": ["Foo"],
        "version": ["1.0"],
        "released": ["1230768000"],
    })
    frames["testers"] = pd.DataFrame({
        "dist": ["Bar"],
        "version": ["2.0"],
        "pass": ["7"],
        "fail": ["1"],
        "na": ["0"],
        "unknown": ["2"],
    })
    merger = _merger(store, frames)
    merger.build_authors()
    merger.build_distributions()

    foo = _distribution(store, "Foo")
    bar = _distribution(store, "Bar")
    assert foo["uploaded"] == "2009-01-01"
    assert bar["uploaded"] is None
    assert bar["pass"] == 7
    assert bar["unknown"] == 2
    assert foo["pass"] is None


def test_upload_falls_back_to_release_identity(store, frames):
    frames["uploads"] = pd.DataFrame({
        "author": ["SOMEONE"],
        "filename": ["Foo-1.0.zip"],
        "dist": ["Foo"],
        "version": ["1.0"],
        "released": ["0"],
    })
    merger = _merger(store, frames)
    merger.build_authors()
    merger.build_distributions()

    assert _distribution(store, "Foo")["uploaded"] == "1970-01-01"


def test_ratings_and_meta_backfill(store, frames):
    frames["ratings"] = pd.DataFrame({
        "distribution": ["Foo", "Ghost"],
        "rating": ["4.5", "3.0"],
        "review_count": ["3", "1"],
    })
    frames["meta"] = pd.DataFrame({
        "release": ["BOB/Bar-2.0.tar.gz", "BOB/Bar-1.0.tar.gz"],
        "meta": ["1", "1"],
        "meta_license": ["perl", "gpl"],
    })
    merger = _merger(store, frames, batch_size=1)
    merger.build_authors()
    merger.build_distributions()

    assert merger.apply_ratings() == 1
    assert merger.apply_meta() == 1

    foo = _distribution(store, "Foo")
    bar = _distribution(store, "Bar")
    assert foo["rating"] == "4.5"
    assert foo["ratings"] == 3
    assert bar["rating"] is None
    assert bar["ratings"] == 0
    assert bar["meta"] == 1
    assert bar["license"] == "perl"
    assert foo["meta"] == 0
    assert foo["license"] is None


def test_missing_backfill_sources_are_skipped(store, frames, caplog):
    merger = _merger(store, frames)
    merger.build_authors()
    merger.build_distributions()

    assert merger.apply_ratings() == 0
    assert merger.apply_meta() == 0
    assert "No ratings available" in caplog.text


def test_authors_missing_from_extract_get_placeholders(store, frames):
    frames["authors"] = pd.DataFrame({"author": ["AKI"], "name": [None]})
    merger = _merger(store, frames)

    assert merger.build_authors() == 2

    names = dict(store.query("SELECT author, name FROM author").values.tolist())
    assert names == {"AKI": "AKI", "BOB": "BOB"}


def test_modules_of_unknown_distributions_are_dropped(store, frames):
    frames["modules"] = pd.DataFrame({
        "module": ["Foo", "Foo", "Bar", "Orphan"],
        "version": ["1.0", "0.9", "2.0", "1.0"],
        "distribution": ["Foo", "Foo", "Bar", "Nowhere"],
    })
    merger = _merger(store, frames)
    merger.build_authors()
    merger.build_distributions()

    assert merger.build_modules() == 2

    owners = dict(store.query("SELECT module, distribution FROM module").values.tolist())
    assert owners == {"Bar": "Bar", "Foo": "Foo"}


def test_run_builds_entity_tables(store, frames):
    counts = _merger(store, frames).run()

    assert counts == {"author": 2, "distribution": 2, "module": 3, "ticket": 0}
    assert "distribution__release" in store.index_names("distribution")


@pytest.mark.parametrize("column", ["weight", "volatility", "meta", "ratings"])
def test_counters_start_at_zero(store, frames, column):
    _merger(store, frames).run()
    assert store.count("distribution", f"{column} = 0") == 2
