"""Ingest package for CSV import of indicator data.

This package turns uploaded CSV text into ``Indicator`` aggregates, merges
them with previously stored metadata and writes them to the indicator store.
"""

from sdhe.ingest.csv_reader import parse_csv_text, read_csv_file
from sdhe.ingest.merge import merge_indicator_data
from sdhe.ingest.transform import process_csv_data, sort_indicators

__all__ = [
    "merge_indicator_data",
    "parse_csv_text",
    "process_csv_data",
    "read_csv_file",
    "sort_indicators",
]
