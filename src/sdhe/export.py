"""CSV export of an indicator's time series.

The download has one row per year: ``Year``, ``Total`` and one column per
``<Category> - <Value>`` pair seen in the indicator's disaggregation data.
Values carry one decimal and a pair missing for a year is an empty cell.
"""

import argparse
import os
import sys
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from sdhe import config
from sdhe.exceptions import StoreError
from sdhe.logging_config import create_logger
from sdhe.models import Indicator
from sdhe.store import DuckDBIndicatorStore
from sdhe.units import format_category_name

logger = create_logger(__name__)


def disaggregation_columns(indicator: Indicator) -> List[Tuple[str, str, str]]:
    """(column label, category, value) for each disaggregation pair, in type order."""
    columns: List[Tuple[str, str, str]] = []
    seen = set()
    for category in indicator.disaggregation_types:
        for point in indicator.time_series_data:
            for entry in point.disaggregation:
                if entry.category != category:
                    continue
                label = f"{format_category_name(category)} - {format_category_name(entry.value)}"
                if label not in seen:
                    seen.add(label)
                    columns.append((label, entry.category, entry.value))
    return columns


def indicator_to_dataframe(indicator: Indicator) -> pd.DataFrame:
    """Tabulate the time series with 1-decimal string cells."""
    columns = disaggregation_columns(indicator)
    rows = []
    for point in indicator.time_series_data:
        row = {"Year": point.year, "Total": f"{point.total:.1f}"}
        for label, category, value in columns:
            entry = next(
                (
                    d
                    for d in point.disaggregation
                    if d.category.lower() == category.lower() and d.value.lower() == value.lower()
                ),
                None,
            )
            row[label] = f"{entry.percentage:.1f}" if entry is not None else ""
        rows.append(row)

    return pd.DataFrame(rows, columns=["Year", "Total"] + [label for label, _, _ in columns])


def indicator_to_csv(indicator: Indicator) -> str:
    """Render the download CSV; empty string when there is no time series."""
    if not indicator.time_series_data:
        return ""
    return indicator_to_dataframe(indicator).to_csv(index=False, lineterminator="\n")


def export_filename(indicator: Indicator) -> str:
    return f"{indicator.id}_data.csv"


def write_indicator_csv(indicator: Indicator, directory: Optional[str] = None) -> Optional[str]:
    """Write ``<id>_data.csv`` into directory (default: EXPORT_DIR).

    :return: The written path, or None when the indicator has no time series
    """
    content = indicator_to_csv(indicator)
    if not content:
        logger.warning(f"No time series data to export for {indicator.id}")
        return None

    directory = directory or config.EXPORT_DIR
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, export_filename(indicator))
    with open(path, "w", encoding="utf-8", newline="") as handle:
        handle.write(content)
    logger.info(f"Exported {indicator.id} to {path}")
    return path


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Export indicator time series as CSV")
    parser.add_argument("indicator_ids", nargs="*", help="Indicator ids (default: all)")
    parser.add_argument("--db-path", default=None, help="DuckDB file (default: DB_PATH)")
    parser.add_argument("--out-dir", default=None, help="Output directory (default: EXPORT_DIR)")
    args = parser.parse_args(argv)

    try:
        indicators = DuckDBIndicatorStore(db_path=args.db_path).read_all()
    except StoreError as e:
        logger.error(f"Export failed: {e}")
        return 1

    wanted = set(args.indicator_ids)
    for indicator in indicators:
        if not wanted or indicator.id in wanted:
            write_indicator_csv(indicator, args.out_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
