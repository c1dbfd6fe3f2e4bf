"""Pytest configuration and shared fixtures for SDHE indicator tracker tests.

This module provides fixtures for:
- DuckDB-backed and in-memory indicator stores
- Mock AWS S3 services using moto
- Sample indicator CSV data
- Temporary file management
- Environment configuration
"""

import tempfile
from pathlib import Path
from typing import Dict, Generator, List

import boto3
import duckdb
import pytest
from moto import mock_aws

from sdhe.models import (
    DisaggregationData,
    DistrictDataPoint,
    Indicator,
    TimeSeriesDataPoint,
)
from sdhe.store import DuckDBIndicatorStore, InMemoryIndicatorStore
from sdhe.units import Direction, IndicatorStatus

CSV_HEADERS = [
    "Indicator ID",
    "Domain",
    "Subdomain",
    "Indicator Title",
    "Description",
    "Unit",
    "IndicatorType",
    "Target",
    "Baseline",
    "Current",
    "Year",
    "Total",
    "Methodology",
    "DataSources",
    "TargetMethod",
    "Disaggregation Category",
    "Disaggregation Value",
    "Percentage",
    "district_code",
    "district_name",
    "value",
]


def build_csv(rows: List[Dict[str, str]]) -> str:
    """Render rows (dicts keyed by header, missing keys empty) as CSV text."""
    lines = [",".join(CSV_HEADERS)]
    for row in rows:
        lines.append(",".join(str(row.get(header, "")) for header in CSV_HEADERS))
    return "\n".join(lines) + "\n"


def econ_row(**overrides) -> Dict[str, str]:
    row = {
        "Indicator ID": "ECON-01",
        "Domain": "Economic Stability",
        "Subdomain": "Employment",
        "Indicator Title": "Employment rate",
        "Description": "Share of adults employed",
        "Unit": "%",
        "IndicatorType": "direct",
        "Target": "70",
        "Baseline": "50",
        "Current": "62.5",
        "Year": "2020",
        "Total": "50",
        "Methodology": "Household survey",
        "DataSources": "ACS;BLS",
        "TargetMethod": "Trend",
    }
    row.update(overrides)
    return row


# ============================================================================
# Environment and Configuration Fixtures
# ============================================================================

@pytest.fixture(scope="session")
def test_env_vars() -> Dict[str, str]:
    """Provide test environment variables.

    Returns:
        Dictionary of environment variables for testing
    """
    return {
        "TARGET": "dev",
        "USERNAME": "testuser",
        "ENABLE_S3_UPLOAD": "true",
        "S3_BUCKET_NAME": "test-sdhe-indicators",
        "AWS_ACCESS_KEY_ID": "testing",
        "AWS_SECRET_ACCESS_KEY": "testing",
        "AWS_SECURITY_TOKEN": "testing",
        "AWS_SESSION_TOKEN": "testing",
        "AWS_DEFAULT_REGION": "us-east-1",
    }


@pytest.fixture(scope="function")
def mock_env(test_env_vars: Dict[str, str], monkeypatch) -> None:
    """Mock environment variables for testing."""
    for key, value in test_env_vars.items():
        monkeypatch.setenv(key, value)


@pytest.fixture(scope="function")
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files.

    Yields:
        Path to temporary directory
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def duckdb_connection() -> Generator[duckdb.DuckDBPyConnection, None, None]:
    """Provide an in-memory DuckDB connection for testing.

    Yields:
        DuckDB connection object
    """
    con = duckdb.connect(":memory:")
    yield con
    con.close()


@pytest.fixture(scope="function")
def duckdb_store(duckdb_connection) -> DuckDBIndicatorStore:
    return DuckDBIndicatorStore(connection=duckdb_connection)


@pytest.fixture(scope="function")
def memory_store() -> InMemoryIndicatorStore:
    return InMemoryIndicatorStore()


# ============================================================================
# AWS S3 Mocking Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def aws_credentials(test_env_vars: Dict[str, str], monkeypatch):
    """Mock AWS credentials for moto."""
    for key, value in test_env_vars.items():
        if key.startswith("AWS_"):
            monkeypatch.setenv(key, value)
    monkeypatch.delenv("AWS_ROLE_ARN", raising=False)


@pytest.fixture(scope="function")
def s3_mock(aws_credentials):
    """Provide mocked S3 service using moto.

    Yields:
        Mocked AWS context
    """
    with mock_aws():
        yield


@pytest.fixture(scope="function")
def s3_client(s3_mock, test_env_vars: Dict[str, str]):
    """Provide mocked S3 client."""
    return boto3.client("s3", region_name=test_env_vars["AWS_DEFAULT_REGION"])


@pytest.fixture(scope="function")
def s3_bucket(s3_client, test_env_vars: Dict[str, str]) -> str:
    """Create a test S3 bucket.

    Returns:
        S3 bucket name
    """
    bucket_name = test_env_vars["S3_BUCKET_NAME"]
    s3_client.create_bucket(Bucket=bucket_name)
    return bucket_name


# ============================================================================
# Test Data Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def sample_csv_text() -> str:
    """Three indicators: improving with breakdowns, baseline only, reverse target achieved."""
    return build_csv(
        [
            econ_row(**{
                "Disaggregation Category": "age_group",
                "Disaggregation Value": "18_24",
                "Percentage": "40",
                "district_code": "12",
                "district_name": "North",
                "value": "48",
            }),
            econ_row(**{
                "Disaggregation Category": "age_group",
                "Disaggregation Value": "25_34",
                "Percentage": "60",
                "district_code": "0013",
                "district_name": "South",
                "value": "52",
            }),
            econ_row(**{
                "Year": "2023",
                "Total": "62.5",
                "Disaggregation Category": "age_group",
                "Disaggregation Value": "18_24",
                "Percentage": "55",
                "district_code": "12",
                "district_name": "North",
                "value": "60",
            }),
            {
                "Indicator ID": "HEALTH-10",
                "Domain": "Health Care",
                "Subdomain": "Access",
                "Indicator Title": "Uninsured rate",
                "Unit": "%",
                "IndicatorType": "reverse",
                "Target": "10",
                "Baseline": "20",
                "Current": "8",
                "Year": "2019",
                "Total": "20",
            },
            {
                "Indicator ID": "HEALTH-10",
                "Domain": "Health Care",
                "Subdomain": "Access",
                "Indicator Title": "Uninsured rate",
                "Unit": "%",
                "IndicatorType": "reverse",
                "Target": "10",
                "Baseline": "20",
                "Current": "8",
                "Year": "2022",
                "Total": "8",
            },
            {
                "Indicator ID": "EDU-2",
                "Domain": "Education",
                "Subdomain": "Attainment",
                "Indicator Title": "High school completion",
                "Unit": "%",
                "IndicatorType": "direct",
                "Target": "95",
                "Baseline": "80",
                "Current": "80",
                "Year": "2021",
                "Total": "80",
            },
        ]
    )


@pytest.fixture(scope="function")
def sample_csv_file(temp_dir: Path, sample_csv_text: str) -> Path:
    path = temp_dir / "indicators.csv"
    path.write_text(sample_csv_text, encoding="utf-8")
    return path


def make_indicator(
    indicator_id: str = "ECON-01",
    years=(("2020", 50.0), ("2023", 62.5)),
    **overrides,
) -> Indicator:
    """Build an indicator with a simple time series."""
    fields = dict(
        id=indicator_id,
        domain="Economic Stability",
        subdomain="Employment",
        title="Employment rate",
        unit="%",
        indicator_type=Direction.DIRECT,
        target=70.0,
        baseline=50.0,
        current=62.5,
        current_year=2023,
        status=IndicatorStatus.IMPROVING,
        time_series_data=[TimeSeriesDataPoint(year=y, total=t) for y, t in years],
    )
    fields.update(overrides)
    return Indicator(**fields)


@pytest.fixture(scope="function")
def indicator_factory():
    return make_indicator


@pytest.fixture(scope="function")
def district_indicator() -> Indicator:
    """Indicator with disaggregation and district data in two years."""
    return make_indicator(
        disaggregation_types=["age_group"],
        time_series_data=[
            TimeSeriesDataPoint(
                year="2020",
                total=50.0,
                disaggregation=[
                    DisaggregationData("age_group", "18_24", 40.0),
                    DisaggregationData("age_group", "25_34", 60.0),
                ],
                districts=[
                    DistrictDataPoint("0012", "North", 48.0),
                    DistrictDataPoint("0013", "South", 52.0),
                ],
            ),
            TimeSeriesDataPoint(
                year="2023",
                total=62.5,
                disaggregation=[DisaggregationData("age_group", "18_24", 55.0)],
                districts=[
                    DistrictDataPoint("0012", "North", 60.0),
                    DistrictDataPoint("0013", "South", 40.0),
                    DistrictDataPoint("0014", "East", 50.0),
                ],
            ),
        ],
    )


@pytest.fixture(scope="function")
def csv_builder():
    return build_csv


@pytest.fixture(scope="function")
def econ_row_factory():
    return econ_row
