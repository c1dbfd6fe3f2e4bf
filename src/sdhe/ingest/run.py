"""Ingest module for CSV import into the indicator store.

This module runs the full import flow for one uploaded file: read the CSV,
build indicators, merge them with stored metadata and upsert them in
sequential batches.
"""

import argparse
import sys
import time
from typing import List, Optional, Sequence

from sdhe import config
from sdhe.exceptions import (
    BatchUpsertError,
    ConfigurationError,
    IngestError,
    StoreError,
)
from sdhe.ingest.csv_reader import Row, parse_csv_text, read_csv_file
from sdhe.ingest.merge import merge_indicator_data
from sdhe.ingest.transform import process_csv_data, sort_indicators
from sdhe.logging_config import create_logger, log_exception
from sdhe.models import Indicator
from sdhe.store import DuckDBIndicatorStore, IndicatorStore, upsert_in_batches

logger = create_logger(__name__)


class Ingest:
    """Manage one CSV import into the indicator store.

    Steps:
    - Parse rows into indicators and sort them by id
    - Merge with stored descriptions, methodology and policies
    - Upsert in fixed-size batches; the first failing batch aborts the import
    """

    def __init__(self, store: Optional[IndicatorStore] = None, batch_size: Optional[int] = None) -> None:
        """Initialize the import with a store and batch size.

        :param store: Indicator store; defaults to the DuckDB store at config.DB_PATH
        :param batch_size: Records per upsert; defaults to config.BATCH_SIZE
        """
        logger.info("Initializing Ingest Process")
        self.store = store if store is not None else DuckDBIndicatorStore()
        self.batch_size = batch_size or config.BATCH_SIZE
        self.rows_processed = 0
        self.indicators_written = 0

    def transform(self, rows: Sequence[Row]) -> List[Indicator]:
        """Build indicators from parsed rows, sorted by id."""
        self.rows_processed += len(rows)
        return sort_indicators(process_csv_data(rows))

    def import_rows(self, rows: Sequence[Row]) -> List[Indicator]:
        """Transform, merge and persist rows.

        :return: The merged indicators as written to the store
        :raises IngestError: If the store read or any batch write fails
        """
        indicators = self.transform(rows)

        try:
            merged = merge_indicator_data(indicators, self.store)
        except StoreError as e:
            logger.error(f"Error fetching existing indicators: {e}")
            raise IngestError(f"Error fetching existing indicators: {e}") from e

        try:
            self.indicators_written += upsert_in_batches(self.store, merged, self.batch_size)
        except BatchUpsertError as e:
            self.indicators_written += e.written
            raise IngestError(f"Error saving indicators: {e}") from e

        return merged

    def import_text(self, text: str) -> List[Indicator]:
        return self.import_rows(parse_csv_text(text))

    def import_file(self, file_path: str) -> List[Indicator]:
        return self.import_rows(read_csv_file(file_path))

    def run(self, file_path: str) -> List[Indicator]:
        """
        Main method to run the import for one file.

        :raises IngestError: If the import fails
        """
        start_time = time.time()
        logger.info(f"Starting import of {file_path} with TARGET={config.TARGET}")

        try:
            indicators = self.import_file(file_path)
        except IngestError as e:
            log_exception(logger, e, {"context": "CSV import", "file": file_path})
            raise

        duration = time.time() - start_time
        logger.info(
            f"Import completed successfully: {len(indicators)} indicators, "
            f"{self.rows_processed} rows in {duration:.2f}s"
        )
        return indicators


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Import an indicator CSV into the store")
    parser.add_argument("csv_path", help="Path to the indicator CSV file")
    parser.add_argument("--db-path", default=None, help="DuckDB file (default: DB_PATH)")
    parser.add_argument("--batch-size", type=int, default=None, help="Records per upsert batch")
    args = parser.parse_args(argv)

    try:
        config.validate_config()
        store = DuckDBIndicatorStore(db_path=args.db_path)
        Ingest(store=store, batch_size=args.batch_size).run(args.csv_path)
    except (ConfigurationError, IngestError, StoreError) as e:
        logger.error(f"Ingestion process failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
