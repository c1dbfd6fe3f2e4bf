"""Integration tests for publishing the indicator store to S3.

Tests use moto to mock S3 so no real AWS calls are made.
"""

import io
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest
from botocore.exceptions import ClientError

from sdhe.exceptions import PublishError
from sdhe.publish.run import Publish, indicators_to_snapshot, main
from sdhe.store import InMemoryIndicatorStore
from sdhe.utils import s3_init


@pytest.fixture
def upload_enabled():
    with patch("sdhe.publish.run.config.ENABLE_S3_UPLOAD", True):
        yield


@pytest.fixture
def populated_store(indicator_factory, district_indicator):
    return InMemoryIndicatorStore(
        [district_indicator, indicator_factory("EDU-2", years=()), indicator_factory("HEALTH-10")]
    )


# ============================================================================
# Snapshot Tests
# ============================================================================

@pytest.mark.unit
class TestSnapshot:
    def test_one_row_per_indicator(self, populated_store):
        df = indicators_to_snapshot(populated_store.read_all())
        assert list(df["id"]) == ["ECON-01", "EDU-2", "HEALTH-10"]
        assert list(df["status"]) == ["Improving", "Improving", "Improving"]
        assert df.loc[0, "progress"] == pytest.approx(62.5)
        assert df.loc[1, "number_of_years"] == 0
        assert str(df["current_year"].dtype) == "Int64"

    def test_missing_numbers_stay_nan(self, indicator_factory):
        df = indicators_to_snapshot([indicator_factory(target=float("nan"))])
        assert pd.isna(df.loc[0, "target"])
        assert df.loc[0, "progress"] == 0.0


# ============================================================================
# S3 Publish Tests
# ============================================================================

@pytest.mark.integration
@pytest.mark.s3
class TestPublish:
    """Test Publish against a mocked bucket."""

    def test_uploads_snapshot_and_exports(self, populated_store, s3_client, s3_bucket, upload_enabled):
        publish = Publish(
            store=populated_store, s3_client=s3_client, bucket=s3_bucket, prefix="dev/test/published"
        )
        keys = publish.run()

        assert keys == [
            "dev/test/published/indicators.parquet",
            "dev/test/published/exports/ECON-01_data.csv",
            "dev/test/published/exports/HEALTH-10_data.csv",
        ]
        listed = s3_client.list_objects_v2(Bucket=s3_bucket)["Contents"]
        assert sorted(obj["Key"] for obj in listed) == sorted(keys)

    def test_snapshot_is_readable_parquet(self, populated_store, s3_client, s3_bucket, upload_enabled):
        Publish(store=populated_store, s3_client=s3_client, bucket=s3_bucket, prefix="p").run()

        body = s3_client.get_object(Bucket=s3_bucket, Key="p/indicators.parquet")["Body"].read()
        df = pd.read_parquet(io.BytesIO(body))
        assert list(df["id"]) == ["ECON-01", "EDU-2", "HEALTH-10"]

    def test_export_body_matches_download(self, populated_store, s3_client, s3_bucket, upload_enabled):
        Publish(store=populated_store, s3_client=s3_client, bucket=s3_bucket, prefix="p").run()

        body = s3_client.get_object(Bucket=s3_bucket, Key="p/exports/ECON-01_data.csv")["Body"].read()
        assert body.decode("utf-8").splitlines()[0] == "Year,Total,Age Group - 18 24,Age Group - 25 34"

    def test_default_prefix_uses_environment(self, populated_store, s3_client, s3_bucket, upload_enabled):
        with patch("sdhe.publish.run.config.PUBLISH_AREA_FOLDER", "dev/dev_testuser/published"):
            publish = Publish(store=populated_store, s3_client=s3_client, bucket=s3_bucket)
        assert publish.key_for("indicators.parquet") == "dev/dev_testuser/published/indicators.parquet"

    def test_missing_bucket_raises_publish_error(self, populated_store, s3_client, upload_enabled):
        publish = Publish(store=populated_store, s3_client=s3_client, bucket="no-such-bucket", prefix="p")
        with pytest.raises(PublishError, match="Publish failed"):
            publish.run()

    def test_skipped_when_upload_disabled(self, populated_store, s3_client, s3_bucket):
        with patch("sdhe.publish.run.config.ENABLE_S3_UPLOAD", False):
            keys = Publish(store=populated_store, s3_client=s3_client, bucket=s3_bucket).run()
        assert keys == []
        assert s3_client.list_objects_v2(Bucket=s3_bucket).get("KeyCount") == 0

    @patch("sdhe.error_handler.time.sleep")
    def test_partial_export_failure(self, mock_sleep, populated_store, upload_enabled):
        client = MagicMock()
        denied = ClientError({"Error": {"Code": "AccessDenied", "Message": "no"}}, "PutObject")

        def put_object(Bucket, Key, Body, ContentType):
            if Key.endswith("HEALTH-10_data.csv"):
                raise denied

        client.put_object.side_effect = put_object
        publish = Publish(store=populated_store, s3_client=client, bucket="b", prefix="p")

        with pytest.raises(PublishError, match="HEALTH-10"):
            publish.run()
        assert publish.uploaded_keys == ["p/indicators.parquet", "p/exports/ECON-01_data.csv"]
        mock_sleep.assert_not_called()

    @patch("sdhe.error_handler.time.sleep")
    def test_transient_error_is_retried(self, mock_sleep, populated_store, upload_enabled):
        client = MagicMock()
        client.put_object.side_effect = [
            ClientError({"Error": {"Code": "SlowDown", "Message": "slow"}}, "PutObject"),
            None,
            None,
            None,
        ]
        keys = Publish(store=populated_store, s3_client=client, bucket="b", prefix="p").run()
        assert len(keys) == 3
        assert client.put_object.call_count == 4
        mock_sleep.assert_called_once()


# ============================================================================
# Client and Command Tests
# ============================================================================

@pytest.mark.integration
@pytest.mark.s3
class TestS3Init:
    def test_default_credential_chain(self, s3_mock, s3_bucket):
        client = s3_init()
        assert s3_bucket in [b["Name"] for b in client.list_buckets()["Buckets"]]

    def test_assume_role(self, s3_mock, monkeypatch):
        monkeypatch.setenv("AWS_ROLE_ARN", "arn:aws:iam::123456789012:role/sdhe-publisher")
        client = s3_init(region="us-east-1")
        assert client.meta.region_name == "us-east-1"


@pytest.mark.integration
@pytest.mark.s3
@pytest.mark.duckdb
def test_main_publishes_duckdb_store(temp_dir, indicator_factory, s3_client, s3_bucket, upload_enabled):
    from sdhe.store import DuckDBIndicatorStore

    db_path = str(temp_dir / "sdhe.db")
    store = DuckDBIndicatorStore(db_path=db_path)
    store.upsert_batch([indicator_factory()])
    store.close()

    with patch("sdhe.publish.run.config.validate_config"), patch(
        "sdhe.publish.run.s3_init", return_value=s3_client
    ), patch("sdhe.publish.run.config.PUBLISH_AREA_FOLDER", "cli"):
        assert main(["--db-path", db_path, "--bucket", s3_bucket]) == 0

    keys = [obj["Key"] for obj in s3_client.list_objects_v2(Bucket=s3_bucket)["Contents"]]
    assert sorted(keys) == ["cli/exports/ECON-01_data.csv", "cli/indicators.parquet"]
