"""Publish stage: push the indicator store to S3.

Writes a flat parquet snapshot of every indicator plus one CSV download
per indicator under ``s3://<bucket>/<S3_ENV>/published/``.
"""

import argparse
import io
import math
import sys
import time
from typing import Any, List, Optional, Sequence

import pandas as pd
from botocore.exceptions import BotoCoreError, ClientError

from sdhe import config
from sdhe.error_handler import PartialFailureCollector, PartialFailureError, retryable_operation
from sdhe.exceptions import ConfigurationError, PublishError, StoreError
from sdhe.export import export_filename, indicator_to_csv
from sdhe.logging_config import create_logger, log_exception
from sdhe.models import Indicator
from sdhe.store import DuckDBIndicatorStore, IndicatorStore
from sdhe.units import IndicatorStatus, calculate_progress, is_no_data
from sdhe.utils import s3_init

logger = create_logger(__name__)

SNAPSHOT_FILENAME = "indicators.parquet"
EXPORTS_FOLDER = "exports"

SNAPSHOT_COLUMNS = [
    "id",
    "domain",
    "subdomain",
    "title",
    "unit",
    "indicator_type",
    "baseline",
    "target",
    "current",
    "current_year",
    "number_of_years",
    "progress",
    "status",
    "warning",
]


def _number(value) -> float:
    return math.nan if is_no_data(value) else float(value)


def indicators_to_snapshot(indicators: Sequence[Indicator]) -> pd.DataFrame:
    """One row per indicator with its scalar fields, progress and status.

    Missing numbers stay NaN (not the store sentinel) so the parquet
    columns are plain nullable doubles.
    """
    rows = []
    for indicator in indicators:
        rows.append(
            {
                "id": indicator.id,
                "domain": indicator.domain,
                "subdomain": indicator.subdomain,
                "title": indicator.title,
                "unit": indicator.unit,
                "indicator_type": indicator.indicator_type.value,
                "baseline": _number(indicator.baseline),
                "target": _number(indicator.target),
                "current": _number(indicator.current),
                "current_year": indicator.current_year,
                "number_of_years": indicator.number_of_years,
                "progress": calculate_progress(
                    indicator.current,
                    indicator.baseline,
                    indicator.target,
                    indicator.indicator_type,
                ),
                "status": IndicatorStatus(indicator.status).value,
                "warning": indicator.warning,
            }
        )

    df = pd.DataFrame(rows, columns=SNAPSHOT_COLUMNS)
    df["current_year"] = df["current_year"].astype("Int64")
    return df


class Publish:
    """Manage publishing of the indicator store to S3.

    Steps:
    - Read every indicator from the store
    - Upload the parquet snapshot
    - Upload each indicator's CSV download; failures are collected and
      reported after all indicators were attempted
    """

    def __init__(
        self,
        store: Optional[IndicatorStore] = None,
        s3_client: Any = None,
        bucket: Optional[str] = None,
        prefix: Optional[str] = None,
    ) -> None:
        """Initialize the publish process.

        :param store: Indicator store; defaults to the DuckDB store at config.DB_PATH
        :param s3_client: boto3 S3 client; defaults to ``s3_init()``
        :param bucket: Target bucket; defaults to config.S3_BUCKET_NAME
        :param prefix: Key prefix; defaults to config.PUBLISH_AREA_FOLDER
        """
        logger.info("Initializing Publish Process")
        logger.info(f"   Environment Target: {config.TARGET}")

        self.store = store if store is not None else DuckDBIndicatorStore()
        self.s3_client = s3_client if s3_client is not None else s3_init()
        self.bucket = bucket or config.S3_BUCKET_NAME
        self.prefix = (prefix if prefix is not None else config.PUBLISH_AREA_FOLDER).strip("/")
        self.uploaded_keys: List[str] = []

    def key_for(self, *parts: str) -> str:
        return "/".join(part for part in (self.prefix,) + parts if part)

    @retryable_operation(max_attempts=3, initial_delay=1.0, retry_on=(ClientError, BotoCoreError))
    def put_object(self, key: str, body: bytes, content_type: str) -> None:
        self.s3_client.put_object(
            Bucket=self.bucket, Key=key, Body=body, ContentType=content_type
        )
        logger.info(f"Uploaded s3://{self.bucket}/{key}")

    def publish_snapshot(self, indicators: Sequence[Indicator]) -> str:
        """Upload the parquet snapshot.

        :return: The object key written
        """
        buffer = io.BytesIO()
        indicators_to_snapshot(indicators).to_parquet(buffer, index=False)
        key = self.key_for(SNAPSHOT_FILENAME)
        self.put_object(key, buffer.getvalue(), "application/vnd.apache.parquet")
        self.uploaded_keys.append(key)
        return key

    def publish_exports(self, indicators: Sequence[Indicator]) -> PartialFailureCollector:
        """Upload ``exports/<id>_data.csv`` for every indicator with a time series."""
        collector = PartialFailureCollector()
        for indicator in indicators:
            content = indicator_to_csv(indicator)
            if not content:
                logger.debug(f"Skipping {indicator.id}: no time series data")
                continue

            key = self.key_for(EXPORTS_FOLDER, export_filename(indicator))
            try:
                self.put_object(key, content.encode("utf-8"), "text/csv")
            except (ClientError, BotoCoreError) as e:
                collector.add_failure(indicator.id, e)
                continue
            self.uploaded_keys.append(key)
            collector.add_success(indicator.id)

        collector.log_summary()
        return collector

    def run(self) -> List[str]:
        """
        Execute the full publish process.

        :return: Keys uploaded, snapshot first
        :raises PublishError: If the store cannot be read or any upload fails
        """
        if not config.ENABLE_S3_UPLOAD:
            logger.warning("S3 upload is disabled (ENABLE_S3_UPLOAD is not 'true'); skipping publish")
            return []

        start_time = time.time()
        try:
            indicators = self.store.read_all()
            logger.info(f"Publishing {len(indicators)} indicators to s3://{self.bucket}/{self.prefix}")
            self.publish_snapshot(indicators)
            self.publish_exports(indicators).raise_if_failures("Publishing CSV exports failed")
        except (StoreError, ClientError, BotoCoreError, PartialFailureError) as e:
            log_exception(logger, e, {"context": "S3 publish", "bucket": self.bucket})
            raise PublishError(f"Publish failed: {e}") from e

        duration = time.time() - start_time
        logger.info(f"Publish completed: {len(self.uploaded_keys)} objects in {duration:.2f}s")
        return list(self.uploaded_keys)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Publish the indicator store to S3")
    parser.add_argument("--db-path", default=None, help="DuckDB file (default: DB_PATH)")
    parser.add_argument("--bucket", default=None, help="Target bucket (default: S3_BUCKET_NAME)")
    args = parser.parse_args(argv)

    try:
        config.validate_config()
        if not config.ENABLE_S3_UPLOAD:
            logger.warning("S3 upload is disabled; set ENABLE_S3_UPLOAD=true to publish")
            return 0
        Publish(store=DuckDBIndicatorStore(db_path=args.db_path), bucket=args.bucket).run()
    except (ConfigurationError, PublishError, StoreError, ClientError) as e:
        logger.error(f"Publish process failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
