"""
SQLite store holding the merged index.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Sequence, Union

import pandas as pd
from tqdm import tqdm

from .errors import StoreError
from .models import DEFAULT_BATCH_SIZE, TableSpec


logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_COLUMN_TYPES = {"TEXT", "INTEGER", "REAL"}


def quote_identifier(name: str) -> str:
    """Quote a table or column name, rejecting anything that is not a plain identifier."""
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise StoreError(f"Invalid identifier: {name!r}")
    return f'"{name}"'


def _to_python(value: Any) -> Any:
    """Convert pandas/numpy scalars into values sqlite3 can bind."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        return value
    if hasattr(value, "item"):
        return value.item()
    return value


class IndexStore:
    """Thin wrapper around a sqlite3 connection.

    Statements run in autocommit mode unless wrapped in ``transaction()`` or
    ``batched_update()``, which manage explicit BEGIN/COMMIT.
    """

    def __init__(self, connection: sqlite3.Connection, path: Union[str, Path] = ":memory:"):
        self.connection = connection
        self.path = path

    @classmethod
    def create(
        cls,
        path: Union[str, Path],
        cache_size: Optional[int] = None,
    ) -> "IndexStore":
        """Create a fresh store, removing any previous database at ``path``.

        Args:
            path: Database file, or ``":memory:"``
            cache_size: Optional ``PRAGMA cache_size`` value

        Returns:
            Connected store
        """
        if str(path) != ":memory:":
            path = Path(path)
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StoreError(f"Failed to create '{path.parent}': {e}") from e
            if path.exists():
                logger.info("Clearing existing database %s", path)
                try:
                    path.unlink()
                except OSError as e:
                    raise StoreError(f"Failed to clear {path}: {e}") from e
            if path.exists():
                raise StoreError(f"Failed to clear {path}")

        try:
            connection = sqlite3.connect(str(path), isolation_level=None)
        except sqlite3.Error as e:
            raise StoreError(f"connect: {e}") from e

        store = cls(connection, path)
        if cache_size:
            store.execute(f"PRAGMA cache_size = {int(cache_size)}")
        return store

    def close(self) -> None:
        self.connection.close()

    def __enter__(self) -> "IndexStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Statements

    def execute(self, statement: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            return self.connection.execute(statement, tuple(_to_python(p) for p in params))
        except sqlite3.Error as e:
            raise StoreError(f"Database Error: {e}", statement=statement) from e

    def executemany(self, statement: str, rows: Iterable[Sequence[Any]]) -> int:
        cursor = self.connection.cursor()
        try:
            cursor.executemany(statement, rows)
        except sqlite3.Error as e:
            raise StoreError(f"Database Error: {e}", statement=statement) from e
        return cursor.rowcount

    @contextmanager
    def transaction(self) -> Iterator["IndexStore"]:
        self.execute("BEGIN")
        try:
            yield self
        except BaseException:
            if self.connection.in_transaction:
                self.connection.rollback()
            raise
        self.execute("COMMIT")

    def query(self, statement: str, params: Sequence[Any] = ()) -> pd.DataFrame:
        """Run a SELECT and return the rows as a DataFrame."""
        cursor = self.execute(statement, params)
        columns = [description[0] for description in cursor.description]
        return pd.DataFrame.from_records(cursor.fetchall(), columns=columns)

    def scalar(self, statement: str, params: Sequence[Any] = ()) -> Any:
        row = self.execute(statement, params).fetchone()
        return row[0] if row else None

    # Tables

    def create_table(self, spec: TableSpec) -> None:
        definitions = []
        for column in spec.columns:
            column_type = column.type.upper()
            if column_type not in _COLUMN_TYPES:
                raise StoreError(f"Unsupported column type {column.type!r} in {spec.name}")
            null = "NULL" if column.nullable else "NOT NULL"
            definitions.append(f"{quote_identifier(column.name)} {column_type} {null}")
        if spec.primary_key:
            keys = ", ".join(quote_identifier(name) for name in spec.primary_key)
            definitions.append(f"PRIMARY KEY ( {keys} )")
        for column, table, target in spec.foreign_keys:
            definitions.append(
                f"FOREIGN KEY ( {quote_identifier(column)} ) "
                f"REFERENCES {quote_identifier(table)} ( {quote_identifier(target)} )"
            )
        body = ",\n\t".join(definitions)
        self.execute(f"CREATE TABLE {quote_identifier(spec.name)} (\n\t{body}\n)")

    def table_exists(self, table: str) -> bool:
        return self.scalar(
            "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = ?",
            (table,),
        ) > 0

    def table_columns(self, table: str) -> list:
        cursor = self.execute(f"PRAGMA table_info({quote_identifier(table)})")
        return [row[1] for row in cursor.fetchall()]

    def drop_table(self, table: str) -> None:
        self.execute(f"DROP TABLE IF EXISTS {quote_identifier(table)}")

    def insert_frame(
        self,
        table: str,
        frame: pd.DataFrame,
        columns: Optional[Sequence[str]] = None,
    ) -> int:
        """Bulk insert a DataFrame into an existing table in one transaction."""
        columns = list(columns or frame.columns)
        if frame.empty:
            return 0
        names = ", ".join(quote_identifier(name) for name in columns)
        placeholders = ", ".join("?" for _ in columns)
        statement = f"INSERT INTO {quote_identifier(table)} ( {names} ) VALUES ( {placeholders} )"
        rows = (
            tuple(_to_python(value) for value in row)
            for row in frame[columns].itertuples(index=False, name=None)
        )
        with self.transaction():
            self.executemany(statement, rows)
        return len(frame)

    def count(self, table: str, where: Optional[str] = None, params: Sequence[Any] = ()) -> int:
        statement = f"SELECT COUNT(*) FROM {quote_identifier(table)}"
        if where:
            statement += f" WHERE {where}"
        return int(self.scalar(statement, params))

    def create_index(self, table: str, *columns: str) -> None:
        logger.info("Indexing   table %s (%d rows)", table, self.count(table))
        for column in columns:
            self.execute(
                f"CREATE INDEX {quote_identifier(f'{table}__{column}')} "
                f"ON {quote_identifier(table)} ( {quote_identifier(column)} )"
            )

    def index_names(self, table: str) -> list:
        frame = self.query(
            "SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = ? ORDER BY name",
            (table,),
        )
        return list(frame["name"])

    # Batched updates

    def batched_update(
        self,
        statement: str,
        rows: Iterable[Sequence[Any]],
        batch_size: int = DEFAULT_BATCH_SIZE,
        desc: Optional[str] = None,
        total: Optional[int] = None,
    ) -> int:
        """Apply a parameterized UPDATE per row, committing every ``batch_size`` rows.

        A failure rolls back only the batch in progress; earlier batches stay
        committed.

        Args:
            statement: Parameterized statement, run once per row
            rows: Parameter tuples
            batch_size: Rows per committed transaction
            desc: Progress bar label
            total: Expected number of rows, for the progress bar

        Returns:
            Number of rows in the table the statement changed
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        changed = 0
        counter = 0
        self.execute("BEGIN")
        try:
            for row in tqdm(rows, desc=desc, total=total, disable=desc is None):
                changed += self.execute(statement, row).rowcount
                counter += 1
                if counter % batch_size:
                    continue
                self.execute("COMMIT")
                self.execute("BEGIN")
        except BaseException:
            if self.connection.in_transaction:
                self.connection.rollback()
            raise
        self.execute("COMMIT")
        logger.debug("Updated %d of %d rows with %s", changed, counter, statement)
        return changed

    # Maintenance

    def vacuum(self) -> None:
        self.execute("VACUUM")

    def analyze(self) -> None:
        self.execute("ANALYZE main")
