"""Dashboard view model.

``IndicatorDashboard`` owns the in-memory indicator list and the view state
(selected domain, selected indicator, status filter, edit flags). The list
is only ever replaced wholesale, or one record at a time by id; callers get
copies and never mutate shared indicators.

Failures of a user-initiated operation (load, import, save) are logged and
kept as a single user-visible message in ``last_error``; the in-memory list
is left as it was.
"""

import datetime
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from sdhe.exceptions import IngestError, StoreError
from sdhe.ingest.run import Ingest
from sdhe.logging_config import create_logger
from sdhe.models import Indicator, indicator_sort_key
from sdhe.store import IndicatorStore
from sdhe.units import IndicatorStatus, is_declining_from_baseline, refresh_status

logger = create_logger(__name__)


@dataclass
class SummaryStats:
    total: int = 0
    target_achieved: int = 0
    target_achieved_but_declining: int = 0
    improving: int = 0
    getting_worse: int = 0
    little_change: int = 0
    no_data: int = 0
    baseline_only: int = 0


@dataclass(frozen=True)
class StatusFilter:
    label: str
    value: str
    get_count: Callable[[SummaryStats], int]
    filter_fn: Callable[[Indicator], bool]


def _has_status(status: IndicatorStatus) -> Callable[[Indicator], bool]:
    return lambda indicator: indicator.status == status


STATUS_FILTERS = (
    StatusFilter("All Indicators", "all", lambda s: s.total, lambda i: True),
    StatusFilter(
        "Target Achieved",
        "target-achieved",
        lambda s: s.target_achieved + s.target_achieved_but_declining,
        _has_status(IndicatorStatus.TARGET_ACHIEVED),
    ),
    StatusFilter("Improving", "improving", lambda s: s.improving, _has_status(IndicatorStatus.IMPROVING)),
    StatusFilter(
        "Getting Worse", "getting-worse", lambda s: s.getting_worse, _has_status(IndicatorStatus.GETTING_WORSE)
    ),
    StatusFilter(
        "Little or No Change",
        "little-change",
        lambda s: s.little_change,
        _has_status(IndicatorStatus.LITTLE_OR_NO_CHANGE),
    ),
    StatusFilter("No Data", "no-data", lambda s: s.no_data, _has_status(IndicatorStatus.NO_DATA)),
    StatusFilter(
        "Baseline Only", "baseline-only", lambda s: s.baseline_only, _has_status(IndicatorStatus.BASELINE_ONLY)
    ),
)
STATUS_FILTERS_BY_VALUE: Dict[str, StatusFilter] = {f.value: f for f in STATUS_FILTERS}


def calculate_summary_stats(indicators: List[Indicator]) -> SummaryStats:
    """Count indicators per status, splitting declining target achievers out."""
    stats = SummaryStats(total=len(indicators))
    for indicator in indicators:
        status = IndicatorStatus(indicator.status)
        if status is IndicatorStatus.TARGET_ACHIEVED:
            if is_declining_from_baseline(indicator):
                stats.target_achieved_but_declining += 1
            else:
                stats.target_achieved += 1
        elif status is IndicatorStatus.IMPROVING:
            stats.improving += 1
        elif status is IndicatorStatus.GETTING_WORSE:
            stats.getting_worse += 1
        elif status is IndicatorStatus.LITTLE_OR_NO_CHANGE:
            stats.little_change += 1
        elif status is IndicatorStatus.NO_DATA:
            stats.no_data += 1
        else:
            stats.baseline_only += 1
    return stats


class IndicatorDashboard:
    """State holder for the home/dashboard/detail views."""

    def __init__(self, store: IndicatorStore, batch_size: Optional[int] = None, is_admin: bool = False):
        self.store = store
        self.batch_size = batch_size
        # Client-side UI toggle only
        self.is_admin = is_admin
        self.is_editing = False
        self.indicators: List[Indicator] = []
        self.selected_domain: Optional[str] = None
        self.selected_indicator: Optional[Indicator] = None
        self.status_filter = "all"
        self.last_error: Optional[str] = None

    def _replace_indicators(self, indicators: List[Indicator]) -> None:
        self.indicators = sorted(indicators, key=lambda i: indicator_sort_key(i.id))
        if self.indicators:
            self.selected_domain = self.indicators[0].domain

    def load(self) -> bool:
        """Load every indicator from the store.

        :return: True on success; on failure the current list is kept
        """
        try:
            indicators = self.store.read_all()
        except StoreError as e:
            logger.error(f"Error loading indicators: {e}")
            self.last_error = f"Error loading indicators: {e}"
            return False

        self.last_error = None
        if indicators:
            self._replace_indicators(indicators)
        logger.info(f"Loaded {len(indicators)} indicators")
        return True

    def import_csv_text(self, text: str) -> bool:
        """Import CSV text; the list is replaced only when every batch was saved."""
        return self._import(lambda ingest: ingest.import_text(text))

    def import_csv_file(self, file_path: str) -> bool:
        return self._import(lambda ingest: ingest.import_file(file_path))

    def _import(self, run_import: Callable[[Ingest], List[Indicator]]) -> bool:
        try:
            merged = run_import(Ingest(store=self.store, batch_size=self.batch_size))
        except IngestError as e:
            logger.error(f"Error processing file: {e}")
            self.last_error = f"Error processing or saving file: {e}"
            return False

        self.last_error = None
        self._replace_indicators(merged)
        return True

    def save_indicator(self, updated: Indicator) -> bool:
        """Save a single edited indicator.

        The current year falls back to the stored record's, then to the
        calendar year. Status is recomputed, and forced to Baseline Only
        when the indicator has at most one time-series point.
        """
        indicator = updated.copy()
        existing = self.get_indicator(indicator.id)
        if not indicator.current_year:
            indicator.current_year = (
                existing.current_year if existing and existing.current_year
                else datetime.date.today().year
            )

        refresh_status(indicator)
        if len(indicator.time_series_data) <= 1:
            indicator.status = IndicatorStatus.BASELINE_ONLY

        try:
            self.store.upsert_batch([indicator], conflict_key="id")
        except StoreError as e:
            logger.error(f"Error saving indicator {indicator.id}: {e}")
            self.last_error = f"Error saving indicator: {e}"
            return False

        self.last_error = None
        if existing is None:
            self._replace_indicators(self.indicators + [indicator])
        else:
            self.indicators = [
                indicator if item.id == indicator.id else item for item in self.indicators
            ]
        self.selected_indicator = indicator
        self.is_editing = False
        return True

    def get_indicator(self, indicator_id: str) -> Optional[Indicator]:
        for indicator in self.indicators:
            if indicator.id == indicator_id:
                return indicator
        return None

    def select_indicator(self, indicator_id: str) -> Optional[Indicator]:
        self.selected_indicator = self.get_indicator(indicator_id)
        self.is_editing = False
        return self.selected_indicator

    def domains(self) -> List[str]:
        """Distinct domains in indicator order."""
        seen: List[str] = []
        for indicator in self.indicators:
            if indicator.domain not in seen:
                seen.append(indicator.domain)
        return seen

    def subdomains(self, domain: Optional[str] = None) -> List[str]:
        domain = domain if domain is not None else self.selected_domain
        seen: List[str] = []
        for indicator in self.indicators:
            if indicator.domain == domain and indicator.subdomain not in seen:
                seen.append(indicator.subdomain)
        return seen

    def summary_stats(self) -> SummaryStats:
        return calculate_summary_stats(self.indicators)

    def filter_counts(self) -> Dict[str, int]:
        stats = self.summary_stats()
        return {f.value: f.get_count(stats) for f in STATUS_FILTERS}

    def filtered_indicators(self, domain: Optional[str] = None) -> List[Indicator]:
        """Indicators of a domain (default: selected) passing the status filter."""
        status_filter = STATUS_FILTERS_BY_VALUE.get(self.status_filter, STATUS_FILTERS[0])
        domain = domain if domain is not None else self.selected_domain
        return [
            indicator
            for indicator in self.indicators
            if (domain is None or indicator.domain == domain) and status_filter.filter_fn(indicator)
        ]
