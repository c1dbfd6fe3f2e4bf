"""Indicator classification engine.

Pure functions that turn an indicator snapshot (current, baseline, target,
direction and the number of observed years) into a progress percentage and
one of six status labels, plus the value formatting shared by every view.

Absent values are NaN, ``None`` or the ``-999`` sentinel; see ``is_no_data``.
"""

import math
from enum import Enum
from typing import Any, Optional, Union

from sdhe import config

NO_DATA_SENTINEL = -999

# Progress at or above this share of the baseline->target distance is "Improving"
IMPROVING_THRESHOLD = 25.0


class IndicatorStatus(str, Enum):
    """Status labels produced by ``calculate_status``."""
    TARGET_ACHIEVED = "Target Achieved"
    IMPROVING = "Improving"
    GETTING_WORSE = "Getting Worse"
    LITTLE_OR_NO_CHANGE = "Little or No Change"
    NO_DATA = "No Data"
    BASELINE_ONLY = "Baseline Only"

    @classmethod
    def from_label(cls, label: Any) -> Optional["IndicatorStatus"]:
        """Return the status for a stored label, or None if unknown."""
        try:
            return cls(label)
        except ValueError:
            return None


class Direction(str, Enum):
    """Which way an indicator improves."""
    DIRECT = "direct"  # higher is better
    REVERSE = "reverse"  # lower is better

    @classmethod
    def parse(cls, raw: Any) -> "Direction":
        """Parse an ``IndicatorType`` cell; anything but 'reverse' is direct."""
        if isinstance(raw, cls):
            return raw
        if raw and str(raw).strip().lower() == cls.REVERSE.value:
            return cls.REVERSE
        return cls.DIRECT


Number = Union[int, float, None]


def is_no_data(value: Any) -> bool:
    """Return True if value is None, NaN or the -999 sentinel."""
    if value is None:
        return True
    try:
        if math.isnan(value):
            return True
    except TypeError:
        return True
    return value == NO_DATA_SENTINEL


def calculate_progress(
    current: Number,
    baseline: Number,
    target: Number,
    direction: Union[Direction, str],
) -> float:
    """Share of the baseline->target distance covered, clamped to [0, 100].

    :param current: Latest observed value
    :param baseline: Starting value
    :param target: Value to reach
    :param direction: ``direct`` (higher is better) or ``reverse``
    :return: Progress percentage; 0 when any input is missing
    """
    if is_no_data(current) or is_no_data(baseline) or is_no_data(target):
        return 0.0

    direction = Direction.parse(direction)

    if direction is Direction.DIRECT:
        if current >= target:
            return 100.0
        value_range = target - baseline
        if value_range == 0:
            return 0.0
        progress = (current - baseline) / value_range * 100
    else:
        if current <= target:
            return 100.0
        # Regressed past the starting point
        if current > baseline:
            return 0.0
        value_range = baseline - target
        if value_range == 0:
            return 0.0
        progress = (baseline - current) / value_range * 100

    return float(min(100.0, max(0.0, progress)))


def _target_reached(current, target, direction: Direction) -> bool:
    if direction is Direction.DIRECT:
        return current >= target
    return current <= target


def _moved_away_from_target(current, baseline, direction: Direction) -> bool:
    if direction is Direction.DIRECT:
        return current < baseline
    return current > baseline


def calculate_status(
    current: Number,
    baseline: Number,
    target: Number,
    direction: Union[Direction, str],
    number_of_years: int,
) -> IndicatorStatus:
    """Classify an indicator snapshot into one of the six status labels.

    Checks run in a fixed order and the first match wins:

    1. any of current/baseline/target missing -> No Data
    2. one year of data or less -> Baseline Only
    3. current equals baseline -> Baseline Only
    4. target reached -> Target Achieved, unless the value also moved away
       from the target relative to baseline, which is Getting Worse
    5. moved away from the target relative to baseline -> Getting Worse
    6. progress >= 25 -> Improving, otherwise Little or No Change
    """
    if is_no_data(current) or is_no_data(baseline) or is_no_data(target):
        return IndicatorStatus.NO_DATA

    if number_of_years <= 1:
        return IndicatorStatus.BASELINE_ONLY

    if current == baseline:
        return IndicatorStatus.BASELINE_ONLY

    direction = Direction.parse(direction)
    declining = _moved_away_from_target(current, baseline, direction)

    if _target_reached(current, target, direction):
        if declining:
            return IndicatorStatus.GETTING_WORSE
        return IndicatorStatus.TARGET_ACHIEVED

    if declining:
        return IndicatorStatus.GETTING_WORSE

    progress = calculate_progress(current, baseline, target, direction)
    if progress >= IMPROVING_THRESHOLD:
        return IndicatorStatus.IMPROVING
    return IndicatorStatus.LITTLE_OR_NO_CHANGE


def refresh_status(indicator) -> IndicatorStatus:
    """Recompute and store an indicator's status from its own fields."""
    indicator.status = calculate_status(
        indicator.current,
        indicator.baseline,
        indicator.target,
        indicator.indicator_type,
        len(indicator.time_series_data),
    )
    return indicator.status


def is_percentage(unit: Optional[str]) -> bool:
    """Return True for '%' or any unit mentioning percent."""
    if not unit:
        return False
    return unit == "%" or "percent" in unit.lower()


def _is_high_precision(indicator_id: Optional[str]) -> bool:
    if not indicator_id:
        return False
    upper_id = indicator_id.upper()
    return any(code in upper_id for code in config.HIGH_PRECISION_INDICATORS)


def format_value(value: Number, unit: Optional[str] = None, indicator_id: Optional[str] = None) -> str:
    """Format a value for display.

    Two decimals for high-precision indicators (e.g. Gini coefficients) and
    for sub-unit index values, one decimal otherwise.
    """
    if is_no_data(value):
        return "No data"

    precision = 1
    if _is_high_precision(indicator_id):
        precision = 2
    elif unit and unit.strip().lower() == "index" and value < 1:
        precision = 2

    return f"{value:.{precision}f}"


def precision_for_magnitude(value: Number) -> int:
    """Pick a decimal count from the size of the value."""
    if is_no_data(value):
        return 1
    magnitude = abs(value)
    if magnitude >= 1000:
        return 0
    if magnitude >= 1:
        return 1
    if magnitude >= 0.01:
        return 2
    return 3


def format_category_name(category: str) -> str:
    """'age_group' -> 'Age Group'."""
    return " ".join(word[:1].upper() + word[1:] for word in category.split("_"))


def is_declining_from_baseline(indicator) -> bool:
    """True when current moved away from the target relative to baseline."""
    if is_no_data(indicator.current) or is_no_data(indicator.baseline):
        return False
    return _moved_away_from_target(
        indicator.current, indicator.baseline, Direction.parse(indicator.indicator_type)
    )


def status_display(indicator) -> str:
    """Card label for an indicator, refining the raw status."""
    if len(indicator.time_series_data) <= 1:
        return "Baseline Data Only"

    status = IndicatorStatus(indicator.status)

    if status is IndicatorStatus.TARGET_ACHIEVED and is_declining_from_baseline(indicator):
        return "Target Achieved but Declining"

    if status is IndicatorStatus.IMPROVING:
        progress = calculate_progress(
            indicator.current, indicator.baseline, indicator.target, indicator.indicator_type
        )
        if progress < 25:
            return "Initial Progress"
        if progress < 50:
            return "Making Progress"
        if progress < 75:
            return "Significant Progress"
        return "Near Target"

    return status.value


STATUS_COLORS = {
    IndicatorStatus.TARGET_ACHIEVED: "#22c55e",
    IndicatorStatus.IMPROVING: "#3b82f6",
    IndicatorStatus.GETTING_WORSE: "#ef4444",
    IndicatorStatus.LITTLE_OR_NO_CHANGE: "#eab308",
    IndicatorStatus.NO_DATA: "#9ca3af",
    IndicatorStatus.BASELINE_ONLY: "#d1d5db",
}


def progress_band_color(progress: float, status: Union[IndicatorStatus, str]) -> str:
    """Progress-bar fill colour for a status and progress percentage."""
    status = IndicatorStatus(status)
    if status is IndicatorStatus.IMPROVING:
        if progress < 25:
            return "#eab308"
        if progress < 50:
            return "#facc15"
        if progress < 75:
            return "#60a5fa"
        return "#3b82f6"
    if status is IndicatorStatus.LITTLE_OR_NO_CHANGE:
        return STATUS_COLORS[IndicatorStatus.NO_DATA]
    return STATUS_COLORS[status]
