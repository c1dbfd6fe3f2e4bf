"""Transform CSV rows into indicator aggregates.

Rows are grouped by ``Indicator ID``. The first row seen for an id supplies
the indicator's descriptive fields and targets; every row with a numeric
``Total`` and a ``Year`` contributes to the time series. A final pass drops
invalid points, sorts everything and settles the status.

The transform never raises on bad input: unparseable numbers become NaN
and rows without an id are skipped.
"""

import math
from typing import Dict, Iterable, List, Mapping, Optional

from sdhe.logging_config import create_logger
from sdhe.models import (
    DisaggregationData,
    DistrictDataPoint,
    Indicator,
    IndicatorDetails,
    TimeSeriesDataPoint,
    indicator_sort_key,
    normalize_district_code,
)
from sdhe.units import Direction, calculate_status

logger = create_logger(__name__)

# Recognized CSV headers
ID_COLUMN = "Indicator ID"
DOMAIN_COLUMN = "Domain"
SUBDOMAIN_COLUMN = "Subdomain"
TITLE_COLUMN = "Indicator Title"
DESCRIPTION_COLUMN = "Description"
UNIT_COLUMN = "Unit"
TYPE_COLUMN = "IndicatorType"
TARGET_COLUMN = "Target"
BASELINE_COLUMN = "Baseline"
CURRENT_COLUMN = "Current"
YEAR_COLUMN = "Year"
TOTAL_COLUMN = "Total"
METHODOLOGY_COLUMN = "Methodology"
DATA_SOURCES_COLUMN = "DataSources"
TARGET_METHOD_COLUMN = "TargetMethod"
CATEGORY_COLUMN = "Disaggregation Category"
CATEGORY_VALUE_COLUMN = "Disaggregation Value"
PERCENTAGE_COLUMN = "Percentage"
DISTRICT_CODE_COLUMN = "district_code"
DISTRICT_NAME_COLUMN = "district_name"
DISTRICT_VALUE_COLUMN = "value"

WARNING_MISSING_CURRENT = "Missing current value"
WARNING_MISSING_BASELINE = "Missing baseline value"
WARNING_MISSING_TARGET = "Missing target value"
WARNING_BASELINE_ONLY = "Only baseline data available"
WARNING_NO_TIME_SERIES = "No time series data available"

Row = Mapping[str, Optional[str]]


def parse_number(raw: Optional[str]) -> float:
    """Parse a numeric cell; empty or unparseable cells become NaN."""
    if raw is None:
        return math.nan
    text = str(raw).strip()
    if not text:
        return math.nan
    try:
        return float(text)
    except ValueError:
        return math.nan


def parse_year(raw: Optional[str]) -> Optional[int]:
    """Parse a year cell to int, or None."""
    value = parse_number(raw)
    if math.isnan(value) or math.isinf(value):
        return None
    return int(value)


def _cell(row: Row, column: str) -> str:
    value = row.get(column)
    return str(value).strip() if value is not None else ""


def _finite_total(row: Row) -> Optional[float]:
    total = parse_number(row.get(TOTAL_COLUMN))
    return total if math.isfinite(total) else None


def _year_sort_key(year: str):
    number = parse_year(year)
    return (number is None, number if number is not None else 0, year)


def _initial_warning(current: float, baseline: float, target: float, number_of_years: int) -> str:
    if math.isnan(current):
        return WARNING_MISSING_CURRENT
    if math.isnan(baseline):
        return WARNING_MISSING_BASELINE
    if math.isnan(target):
        return WARNING_MISSING_TARGET
    if number_of_years <= 1:
        return WARNING_BASELINE_ONLY
    return ""


def _build_indicator(indicator_id: str, first_row: Row, rows: List[Row]) -> Indicator:
    """Create the indicator record from its first row and all of its rows."""
    disaggregation_types: List[str] = []
    years_with_data = set()
    for row in rows:
        category = _cell(row, CATEGORY_COLUMN)
        if category and category not in disaggregation_types:
            disaggregation_types.append(category)
        year = _cell(row, YEAR_COLUMN)
        if year and _finite_total(row) is not None:
            years_with_data.add(year)
    number_of_years = len(years_with_data)

    current = parse_number(first_row.get(CURRENT_COLUMN))
    baseline = parse_number(first_row.get(BASELINE_COLUMN))
    target = parse_number(first_row.get(TARGET_COLUMN))
    direction = Direction.parse(_cell(first_row, TYPE_COLUMN) or Direction.DIRECT.value)

    data_sources_cell = _cell(first_row, DATA_SOURCES_COLUMN)
    data_sources = (
        [source.strip() for source in data_sources_cell.split(";")]
        if data_sources_cell
        else []
    )

    return Indicator(
        id=indicator_id,
        domain=_cell(first_row, DOMAIN_COLUMN),
        subdomain=_cell(first_row, SUBDOMAIN_COLUMN),
        title=_cell(first_row, TITLE_COLUMN),
        description=_cell(first_row, DESCRIPTION_COLUMN),
        unit=_cell(first_row, UNIT_COLUMN) or "%",
        indicator_type=direction,
        target=target,
        baseline=baseline,
        current=current,
        current_year=parse_year(first_row.get(YEAR_COLUMN)),
        warning=_initial_warning(current, baseline, target, number_of_years),
        status=calculate_status(current, baseline, target, direction, number_of_years),
        time_series_data=[],
        disaggregation_types=disaggregation_types,
        details=IndicatorDetails(
            methodology=_cell(first_row, METHODOLOGY_COLUMN),
            data_sources=data_sources,
            target_method=_cell(first_row, TARGET_METHOD_COLUMN),
            relevant_policies=[],
        ),
    )


def _add_row_to_time_series(indicator: Indicator, row: Row) -> None:
    """Merge one row's total, disaggregation and district cells into the series."""
    total = _finite_total(row)
    year = _cell(row, YEAR_COLUMN)
    if total is None or not year:
        return

    point = next((p for p in indicator.time_series_data if p.year == year), None)
    if point is None:
        # First total seen for a year wins
        point = TimeSeriesDataPoint(year=year, total=total)
        indicator.time_series_data.append(point)

    category = _cell(row, CATEGORY_COLUMN)
    category_value = _cell(row, CATEGORY_VALUE_COLUMN)
    percentage_cell = _cell(row, PERCENTAGE_COLUMN)
    if category and category_value and percentage_cell:
        percentage = parse_number(percentage_cell)
        if not math.isnan(percentage) and point.find_disaggregation(category, category_value) is None:
            point.disaggregation.append(
                DisaggregationData(category=category, value=category_value, percentage=percentage)
            )

    district_code = _cell(row, DISTRICT_CODE_COLUMN)
    district_name = _cell(row, DISTRICT_NAME_COLUMN)
    district_value_cell = _cell(row, DISTRICT_VALUE_COLUMN)
    if district_code and district_name and district_value_cell:
        district_value = parse_number(district_value_cell)
        code = normalize_district_code(district_code)
        if math.isfinite(district_value) and point.find_district(code) is None:
            point.districts.append(
                DistrictDataPoint(
                    district_code=code, district_name=district_name, value=district_value
                )
            )


def _finalize(indicator: Indicator) -> None:
    """Drop invalid points, sort, backfill current and settle the status."""
    indicator.time_series_data = [
        point
        for point in indicator.time_series_data
        if point.total is not None and not math.isnan(point.total)
    ]
    indicator.time_series_data.sort(key=lambda point: _year_sort_key(point.year))
    for point in indicator.time_series_data:
        point.disaggregation.sort(key=lambda d: (d.category, d.value))

    if math.isnan(indicator.current) and indicator.time_series_data:
        latest = indicator.time_series_data[-1]
        indicator.current = latest.total
        indicator.current_year = latest.year_number

    valid_years = len(indicator.time_series_data)
    if valid_years == 0:
        indicator.warning = WARNING_NO_TIME_SERIES
    elif valid_years == 1:
        indicator.warning = WARNING_BASELINE_ONLY

    # with one point or none this is No Data when a value is missing, else Baseline Only
    indicator.status = calculate_status(
        indicator.current,
        indicator.baseline,
        indicator.target,
        indicator.indicator_type,
        valid_years,
    )


def process_csv_data(rows: Iterable[Row]) -> List[Indicator]:
    """Build one indicator per ``Indicator ID`` from parsed CSV rows.

    :param rows: Row mappings from ``parse_csv_text``
    :return: Indicators in order of first appearance
    """
    grouped: Dict[str, List[Row]] = {}
    skipped = 0
    for row in rows:
        indicator_id = _cell(row, ID_COLUMN)
        if not indicator_id:
            skipped += 1
            continue
        grouped.setdefault(indicator_id, []).append(row)

    if skipped:
        logger.warning(f"Skipped {skipped} rows without an {ID_COLUMN}")

    indicators: List[Indicator] = []
    for indicator_id, indicator_rows in grouped.items():
        indicator = _build_indicator(indicator_id, indicator_rows[0], indicator_rows)
        for row in indicator_rows:
            _add_row_to_time_series(indicator, row)
        _finalize(indicator)
        indicators.append(indicator)

    logger.info(f"Processed {len(indicators)} indicators from CSV rows")
    return indicators


def sort_indicators(indicators: Iterable[Indicator]) -> List[Indicator]:
    """Sort indicators by the number in their ``<PREFIX>-<number>`` id."""
    return sorted(indicators, key=lambda indicator: indicator_sort_key(indicator.id))
