"""Data models for indicators and their time series.

``Indicator`` is the aggregate root. It is built by the CSV ingestion
pipeline or read back from the indicator store, and is always replaced
wholesale (no partial field patches).

Store records use a flat snake_case layout with nested lists/dicts for the
time series and details. Missing numeric values are written as the ``-999``
sentinel.
"""

import copy
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sdhe.units import (
    NO_DATA_SENTINEL,
    Direction,
    IndicatorStatus,
    calculate_status,
    is_no_data,
)


def to_float(value: Any) -> float:
    """Convert a stored value to float; None or garbage becomes NaN."""
    if value is None:
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def normalize_district_code(code: Any) -> str:
    """Left-pad a district code with zeros to four characters ('12' -> '0012')."""
    return str(code).strip().rjust(4, "0")


@dataclass
class DisaggregationData:
    """Share of one sub-group within a year and category."""

    category: str
    value: str
    percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return {"category": self.category, "value": self.value, "percentage": self.percentage}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DisaggregationData":
        return cls(
            category=str(data.get("category", "")),
            value=str(data.get("value", "")),
            percentage=to_float(data.get("percentage")),
        )


@dataclass
class DistrictDataPoint:
    """Value of an indicator for one district in one year."""

    district_code: str
    district_name: str
    value: float

    def __post_init__(self):
        self.district_code = normalize_district_code(self.district_code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "district_code": self.district_code,
            "district_name": self.district_name,
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DistrictDataPoint":
        return cls(
            district_code=data.get("district_code", ""),
            district_name=str(data.get("district_name", "")),
            value=to_float(data.get("value")),
        )


@dataclass
class TimeSeriesDataPoint:
    """One year of an indicator: the total plus its breakdowns."""

    year: str
    total: float
    disaggregation: List[DisaggregationData] = field(default_factory=list)
    districts: List[DistrictDataPoint] = field(default_factory=list)

    @property
    def year_number(self) -> Optional[int]:
        """The year parsed as an integer, or None if it is not numeric."""
        try:
            return int(float(self.year))
        except (TypeError, ValueError):
            return None

    def find_disaggregation(self, category: str, value: str) -> Optional[DisaggregationData]:
        for entry in self.disaggregation:
            if entry.category == category and entry.value == value:
                return entry
        return None

    def find_district(self, district_code: str) -> Optional[DistrictDataPoint]:
        for district in self.districts:
            if district.district_code == district_code:
                return district
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "total": self.total,
            "disaggregation": [d.to_dict() for d in self.disaggregation],
            "districts": [d.to_dict() for d in self.districts],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeSeriesDataPoint":
        return cls(
            year=str(data.get("year", "")),
            total=to_float(data.get("total")),
            disaggregation=[
                DisaggregationData.from_dict(d) for d in data.get("disaggregation") or []
            ],
            districts=[DistrictDataPoint.from_dict(d) for d in data.get("districts") or []],
        )


@dataclass
class PolicyReference:
    title: str = ""
    description: str = ""


@dataclass
class IndicatorDetails:
    """Free-text metadata edited alongside an indicator."""

    methodology: str = ""
    data_sources: List[str] = field(default_factory=list)
    target_method: str = ""
    relevant_policies: List[PolicyReference] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "methodology": self.methodology,
            "dataSources": list(self.data_sources),
            "targetMethod": self.target_method,
            "relevantPolicies": [
                {"title": p.title, "description": p.description}
                for p in self.relevant_policies
            ],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "IndicatorDetails":
        data = data or {}
        return cls(
            methodology=data.get("methodology") or "",
            data_sources=list(data.get("dataSources") or []),
            target_method=data.get("targetMethod") or "",
            relevant_policies=[
                PolicyReference(
                    title=p.get("title") or "", description=p.get("description") or ""
                )
                for p in data.get("relevantPolicies") or []
            ],
        )


@dataclass
class Indicator:
    """An equity indicator with its targets, time series and metadata."""

    id: str
    domain: str = ""
    subdomain: str = ""
    title: str = ""
    description: str = ""
    unit: str = "%"
    indicator_type: Direction = Direction.DIRECT
    target: float = math.nan
    baseline: float = math.nan
    current: float = math.nan
    current_year: Optional[int] = None
    warning: str = ""
    status: IndicatorStatus = IndicatorStatus.NO_DATA
    time_series_data: List[TimeSeriesDataPoint] = field(default_factory=list)
    disaggregation_types: List[str] = field(default_factory=list)
    details: IndicatorDetails = field(default_factory=IndicatorDetails)

    @property
    def number_of_years(self) -> int:
        return len(self.time_series_data)

    def copy(self) -> "Indicator":
        return copy.deepcopy(self)

    def to_record(self) -> Dict[str, Any]:
        """Flatten into the layout held by the indicator store."""

        def _number(value):
            return float(NO_DATA_SENTINEL) if is_no_data(value) else float(value)

        return {
            "id": self.id,
            "domain": self.domain,
            "subdomain": self.subdomain,
            "title": self.title,
            "description": self.description,
            "unit": self.unit,
            "indicator_type": Direction.parse(self.indicator_type).value,
            "target": _number(self.target),
            "baseline": _number(self.baseline),
            "current": _number(self.current),
            "current_year": self.current_year,
            "warning": self.warning or "",
            "status": IndicatorStatus(self.status).value,
            "time_series_data": [point.to_dict() for point in self.time_series_data],
            "disaggregation_types": list(self.disaggregation_types),
            "details": self.details.to_dict(),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Indicator":
        """Rebuild an indicator from a store record.

        Stored statuses are trusted; an unknown or missing label is
        recomputed from the record's values.
        """
        current_year = record.get("current_year")
        try:
            current_year = int(current_year) if current_year is not None else None
        except (TypeError, ValueError):
            current_year = None

        indicator = cls(
            id=str(record["id"]),
            domain=record.get("domain") or "",
            subdomain=record.get("subdomain") or "",
            title=record.get("title") or "",
            description=record.get("description") or "",
            unit=record.get("unit") or "",
            indicator_type=Direction.parse(record.get("indicator_type")),
            target=to_float(record.get("target")),
            baseline=to_float(record.get("baseline")),
            current=to_float(record.get("current")),
            current_year=current_year,
            warning=record.get("warning") or "",
            time_series_data=[
                TimeSeriesDataPoint.from_dict(p) for p in record.get("time_series_data") or []
            ],
            disaggregation_types=list(record.get("disaggregation_types") or []),
            details=IndicatorDetails.from_dict(record.get("details")),
        )

        status = IndicatorStatus.from_label(record.get("status"))
        if status is None:
            status = calculate_status(
                indicator.current,
                indicator.baseline,
                indicator.target,
                indicator.indicator_type,
                indicator.number_of_years,
            )
        indicator.status = status
        return indicator


def indicator_sort_key(indicator_id: str):
    """Order ids of the form ``<PREFIX>-<number>`` by their number.

    Ids without a numeric part sort after numbered ones, by id.
    """
    parts = str(indicator_id).split("-")
    if len(parts) > 1:
        try:
            return (0, int(parts[1]), indicator_id)
        except ValueError:
            pass
    return (1, 0, indicator_id)
