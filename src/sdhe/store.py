"""Indicator store implementations.

The store is a plain key-value collection of indicator records with two
operations: read everything, and upsert a batch keyed by id. There is no
delete and no partial patch; every write replaces the whole record.

Two implementations are provided:

- ``InMemoryIndicatorStore`` keeps records in a dict (tests, dry runs)
- ``DuckDBIndicatorStore`` keeps records in a local DuckDB table
"""

import copy
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Sequence

import duckdb

from sdhe import config
from sdhe.error_handler import retryable_operation
from sdhe.exceptions import BatchUpsertError, StoreError
from sdhe.logging_config import create_logger
from sdhe.models import Indicator, indicator_sort_key

logger = create_logger(__name__)

TABLE_NAME = "indicators"

COLUMNS = (
    ("id", "VARCHAR PRIMARY KEY"),
    ("domain", "VARCHAR"),
    ("subdomain", "VARCHAR"),
    ("title", "VARCHAR"),
    ("description", "VARCHAR"),
    ("unit", "VARCHAR"),
    ("indicator_type", "VARCHAR"),
    ("target", "DOUBLE"),
    ("baseline", "DOUBLE"),
    ("current", "DOUBLE"),
    ("current_year", "INTEGER"),
    ("warning", "VARCHAR"),
    ("status", "VARCHAR"),
    ("time_series_data", "VARCHAR"),
    ("disaggregation_types", "VARCHAR"),
    ("details", "VARCHAR"),
)
JSON_COLUMNS = ("time_series_data", "disaggregation_types", "details")


def _as_record(item: Any) -> Dict[str, Any]:
    if isinstance(item, Indicator):
        return item.to_record()
    return dict(item)


class IndicatorStore(ABC):
    """Persistence collaborator for indicators."""

    @abstractmethod
    def read_all(self) -> List[Indicator]:
        """Return every stored indicator."""

    @abstractmethod
    def upsert_batch(self, records: Sequence[Any], conflict_key: str = "id") -> int:
        """Insert or fully replace records keyed by ``conflict_key``.

        :param records: ``Indicator`` objects or store records
        :param conflict_key: Column identifying a record; only "id" is supported
        :return: Number of records written
        """

    @staticmethod
    def _check_conflict_key(conflict_key: str) -> None:
        if conflict_key != "id":
            raise StoreError(f"Unsupported conflict key: {conflict_key}")


class InMemoryIndicatorStore(IndicatorStore):
    """Dictionary-backed store.

    Records are deep copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self, indicators: Optional[Iterable[Indicator]] = None):
        self.records: Dict[str, Dict[str, Any]] = {}
        self.upsert_calls = 0
        if indicators:
            self.upsert_batch(list(indicators))
            self.upsert_calls = 0

    def read_all(self) -> List[Indicator]:
        return [
            Indicator.from_record(copy.deepcopy(record))
            for _, record in sorted(
                self.records.items(), key=lambda item: indicator_sort_key(item[0])
            )
        ]

    def upsert_batch(self, records: Sequence[Any], conflict_key: str = "id") -> int:
        self._check_conflict_key(conflict_key)
        self.upsert_calls += 1
        for item in records:
            record = copy.deepcopy(_as_record(item))
            self.records[record["id"]] = record
        return len(records)


class DuckDBIndicatorStore(IndicatorStore):
    """Store backed by a single DuckDB table.

    Nested fields are kept as JSON text. Each batch runs in its own
    transaction, so a failing batch leaves earlier batches committed.
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        connection: Optional[duckdb.DuckDBPyConnection] = None,
    ):
        """Open (or reuse) a DuckDB connection and ensure the table exists.

        Args:
            db_path: Path to the DuckDB file; defaults to config.DB_PATH
            connection: Existing connection to use instead of opening one
        """
        if connection is not None:
            self.con = connection
        else:
            path = db_path or config.DB_PATH
            try:
                self.con = duckdb.connect(path)
            except duckdb.Error as e:
                raise StoreError(f"Unable to open indicator store at {path}: {e}") from e
            logger.info(f"Opened indicator store at {path}")
        self._ensure_table()

    def _ensure_table(self) -> None:
        column_sql = ",\n                ".join(
            f'"{name}" {column_type}' for name, column_type in COLUMNS
        )
        try:
            self.con.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
                {column_sql}
                )
                """
            )
        except duckdb.Error as e:
            raise StoreError(f"Unable to create {TABLE_NAME} table: {e}") from e

    def read_all(self) -> List[Indicator]:
        names = [name for name, _ in COLUMNS]
        select_sql = ", ".join(f'"{name}"' for name in names)
        try:
            rows = self.con.execute(
                f"SELECT {select_sql} FROM {TABLE_NAME}"
            ).fetchall()
        except duckdb.Error as e:
            logger.error(f"Error reading indicators: {e}")
            raise StoreError(f"Error reading indicators: {e}") from e

        indicators = []
        for row in rows:
            record = dict(zip(names, row))
            for column in JSON_COLUMNS:
                if record[column] is not None:
                    record[column] = json.loads(record[column])
            indicators.append(Indicator.from_record(record))

        indicators.sort(key=lambda indicator: indicator_sort_key(indicator.id))
        logger.debug(f"Read {len(indicators)} indicators from store")
        return indicators

    def upsert_batch(self, records: Sequence[Any], conflict_key: str = "id") -> int:
        self._check_conflict_key(conflict_key)
        if not records:
            return 0

        names = [name for name, _ in COLUMNS]
        column_sql = ", ".join(f'"{name}"' for name in names)
        placeholders = ", ".join("?" for _ in names)
        params = []
        for item in records:
            record = _as_record(item)
            params.append(
                [
                    json.dumps(record.get(name)) if name in JSON_COLUMNS else record.get(name)
                    for name in names
                ]
            )

        try:
            self._write_batch(
                f"INSERT OR REPLACE INTO {TABLE_NAME} ({column_sql}) VALUES ({placeholders})",
                params,
            )
        except duckdb.Error as e:
            logger.error(f"Error upserting {len(params)} indicators: {e}")
            raise StoreError(f"Error upserting indicators: {e}") from e

        logger.debug(f"Upserted {len(params)} indicators")
        return len(params)

    @retryable_operation(max_attempts=3, initial_delay=0.2, max_delay=2.0, retry_on=(duckdb.Error,))
    def _write_batch(self, sql: str, params: List[list]) -> None:
        """Run one batch in its own transaction; a lock conflict is retried."""
        try:
            self.con.begin()
            self.con.executemany(sql, params)
            self.con.commit()
        except duckdb.Error:
            self.con.rollback()
            raise

    def close(self) -> None:
        self.con.close()


def upsert_in_batches(
    store: IndicatorStore, indicators: Sequence[Indicator], batch_size: int
) -> int:
    """Write indicators in fixed-size batches, one batch at a time.

    The first failing batch aborts the rest.

    :return: Number of records written
    :raises BatchUpsertError: If any batch fails
    """
    if batch_size <= 0:
        raise StoreError(f"Batch size must be positive, got {batch_size}")

    written = 0
    for batch_index, start in enumerate(range(0, len(indicators), batch_size)):
        batch = indicators[start:start + batch_size]
        try:
            written += store.upsert_batch(batch, conflict_key="id")
        except Exception as e:
            logger.error(
                f"Batch {batch_index + 1} failed after {written} records were written: {e}"
            )
            raise BatchUpsertError(
                f"Batch {batch_index + 1} failed: {e}", batch_index=batch_index, written=written
            ) from e
        logger.info(f"Upserted batch {batch_index + 1} ({len(batch)} records)")

    return written
