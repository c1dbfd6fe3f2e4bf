"""End-to-end integration tests for the complete indicator workflow.

Tests the full workflow:
1. CSV file on disk
2. Import into a DuckDB indicator store
3. Dashboard load, summary and single-record edit
4. CSV export and district map styling
5. Publish to S3
"""

import pandas as pd
import pytest

from sdhe.dashboard import IndicatorDashboard
from sdhe.export import write_indicator_csv
from sdhe.ingest.run import Ingest
from sdhe.map_scale import district_values_for_year, style_features, year_options
from sdhe.publish.run import Publish
from sdhe.store import DuckDBIndicatorStore
from sdhe.units import IndicatorStatus, status_display


# ============================================================================
# Complete Workflow End-to-End Tests
# ============================================================================

@pytest.mark.integration
@pytest.mark.duckdb
@pytest.mark.slow
class TestCompleteWorkflowE2E:
    """End-to-end tests across ingest, store, dashboard and export."""

    def test_import_then_dashboard(self, temp_dir, sample_csv_file):
        store = DuckDBIndicatorStore(db_path=str(temp_dir / "sdhe.db"))
        Ingest(store=store, batch_size=2).run(str(sample_csv_file))

        dashboard = IndicatorDashboard(store)
        assert dashboard.load() is True
        assert [i.id for i in dashboard.indicators] == ["ECON-01", "EDU-2", "HEALTH-10"]

        stats = dashboard.summary_stats()
        assert (stats.total, stats.improving, stats.target_achieved, stats.baseline_only) == (3, 1, 1, 1)
        assert [status_display(i) for i in dashboard.indicators] == [
            "Significant Progress",
            "Baseline Data Only",
            "Target Achieved",
        ]
        store.close()

    def test_edit_survives_reimport(self, temp_dir, sample_csv_file):
        store = DuckDBIndicatorStore(db_path=str(temp_dir / "sdhe.db"))
        dashboard = IndicatorDashboard(store)
        assert dashboard.import_csv_file(str(sample_csv_file)) is True

        edu = dashboard.get_indicator("EDU-2").copy()
        edu.description = "Completion within four years"
        edu.details.methodology = "State records"
        assert dashboard.save_indicator(edu) is True

        assert dashboard.import_csv_file(str(sample_csv_file)) is True
        reloaded = {i.id: i for i in DuckDBIndicatorStore(connection=store.con).read_all()}
        assert reloaded["EDU-2"].description == "Completion within four years"
        assert reloaded["EDU-2"].details.methodology == "State records"
        assert reloaded["EDU-2"].status == IndicatorStatus.BASELINE_ONLY
        store.close()

    def test_export_and_map(self, temp_dir, sample_csv_file, duckdb_store):
        [econ, _, _] = Ingest(store=duckdb_store).run(str(sample_csv_file))

        path = write_indicator_csv(econ, str(temp_dir / "exports"))
        exported = pd.read_csv(path, dtype=str, keep_default_na=False)
        assert list(exported.columns) == ["Year", "Total", "Age Group - 18 24", "Age Group - 25 34"]
        assert exported.values.tolist() == [["2020", "50.0", "40.0", "60.0"], ["2023", "62.5", "55.0", ""]]

        years = year_options(econ.time_series_data)
        assert years == ["2020", "2023"]
        districts = district_values_for_year(econ.time_series_data, years[-1])
        geojson = {
            "features": [
                {"properties": {"dcode": "0012"}},
                {"properties": {"dcode": "0013"}},
            ]
        }
        # only North has a 2023 value, so it is the whole range
        assert [s["fillColor"] for s in style_features(geojson, districts)] == [
            "rgb(0, 0, 255)",
            "#ffffff",
        ]


@pytest.mark.integration
@pytest.mark.s3
@pytest.mark.slow
def test_import_then_publish(sample_csv_file, duckdb_store, s3_client, s3_bucket, monkeypatch):
    monkeypatch.setattr("sdhe.publish.run.config.ENABLE_S3_UPLOAD", True)
    Ingest(store=duckdb_store).run(str(sample_csv_file))

    keys = Publish(store=duckdb_store, s3_client=s3_client, bucket=s3_bucket, prefix="e2e").run()

    assert keys == [
        "e2e/indicators.parquet",
        "e2e/exports/ECON-01_data.csv",
        "e2e/exports/EDU-2_data.csv",
        "e2e/exports/HEALTH-10_data.csv",
    ]
