"""Tests for the SQLite store primitives."""

from pathlib import Path

import pandas as pd
import pytest

from ecosystem_index.errors import StoreError
from ecosystem_index.models import ColumnSpec, TableSpec
from ecosystem_index.store import IndexStore, quote_identifier


PEOPLE = TableSpec(
    name="people",
    columns=(
        ColumnSpec("name", "TEXT", False),
        ColumnSpec("score", "INTEGER", True),
    ),
    primary_key=("name",),
    indexes=("score",),
)


def _load_people(store: IndexStore, names):
    store.create_table(PEOPLE)
    frame = pd.DataFrame({"name": names, "score": [0] * len(names)})
    store.insert_frame(PEOPLE.name, frame)


def test_insert_frame_maps_nan_to_null(store):
    store.create_table(PEOPLE)
    frame = pd.DataFrame({"name": ["a", "b"], "score": [1, None]})

    assert store.insert_frame("people", frame) == 2

    result = store.query("SELECT name, score FROM people ORDER BY name")
    assert list(result["name"]) == ["a", "b"]
    assert result.loc[0, "score"] == 1
    assert pd.isna(result.loc[1, "score"])
    assert store.count("people", "score IS NULL") == 1


def test_quote_identifier_rejects_statements():
    assert quote_identifier("distribution") == '"distribution"'
    with pytest.raises(StoreError):
        quote_identifier("people; DROP TABLE people")


def test_create_index_names(store):
    _load_people(store, ["a"])
    store.create_index("people", "score")
    assert "people__score" in store.index_names("people")


def test_statement_failure_carries_statement(store):
    with pytest.raises(StoreError) as excinfo:
        store.execute("SELECT * FROM missing_table")
    assert excinfo.value.statement == "SELECT * FROM missing_table"
    assert "missing_table" in str(excinfo.value)


def test_batched_update_applies_every_row(store):
    _load_people(store, ["a", "b", "c", "d", "e"])

    changed = store.batched_update(
        "UPDATE people SET score = ? WHERE name = ?",
        [(1, "a"), (2, "b"), (3, "c"), (4, "d"), (5, "e"), (6, "zzz")],
        batch_size=2,
    )

    assert changed == 5
    scores = store.query("SELECT score FROM people ORDER BY name")["score"]
    assert list(scores) == [1, 2, 3, 4, 5]
    assert not store.connection.in_transaction


def test_batched_update_failure_keeps_committed_batches(store):
    _load_people(store, ["a", "b", "c"])

    def rows():
        yield (1, "a")
        yield (1, "b")
        yield (1, "c")
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        store.batched_update("UPDATE people SET score = ? WHERE name = ?", rows(), batch_size=2)

    scores = dict(store.query("SELECT name, score FROM people").values.tolist())
    assert scores == {"a": 1, "b": 1, "c": 0}


def test_batched_update_rejects_bad_batch_size(store):
    with pytest.raises(ValueError):
        store.batched_update("SELECT 1", [], batch_size=0)


def test_create_clears_existing_database(tmp_path: Path):
    path = tmp_path / "nested" / "index.db"
    with IndexStore.create(path) as first:
        _load_people(first, ["a"])

    with IndexStore.create(path, cache_size=1000) as second:
        assert not second.table_exists("people")
        assert second.scalar("PRAGMA cache_size") == 1000


def test_drop_table(store):
    _load_people(store, ["a"])
    store.drop_table("people")
    assert not store.table_exists("people")
