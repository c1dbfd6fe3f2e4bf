"""Colour scale for the district choropleth.

The map renderer supplies a GeoJSON-like feature collection whose features
carry a district code in ``properties["dcode"]``. Each feature is joined to
the selected year's district values by exact code match; a feature with no
match is left white. Codes in indicator data are already normalized to four
zero-padded characters, so an unpadded geometry code does not join.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sdhe.models import DistrictDataPoint, TimeSeriesDataPoint
from sdhe.units import precision_for_magnitude

UNFILLED_COLOR = "#ffffff"
FEATURE_CODE_PROPERTY = "dcode"

# Five equal-interval steps from light to dark blue
DISCRETE_PALETTE = ("#eff3ff", "#bdd7e7", "#6baed6", "#3182bd", "#08519c")

LINEAR = "linear"
DISCRETE = "discrete"


def year_options(time_series: Sequence[TimeSeriesDataPoint]) -> List[str]:
    """Distinct years in ascending order; the last one is the default."""
    years = {point.year: point.year_number for point in time_series}
    return sorted(years, key=lambda year: (years[year] is None, years[year] or 0, year))


def district_values_for_year(
    time_series: Sequence[TimeSeriesDataPoint], year: str
) -> Dict[str, DistrictDataPoint]:
    """District values of the point for ``year``, keyed by district code."""
    point = next((p for p in time_series if p.year == year), None)
    if point is None:
        return {}
    return {district.district_code: district for district in point.districts}


def value_range(districts: Mapping[str, DistrictDataPoint]) -> Optional[Tuple[float, float]]:
    """(min, max) of the district values, or None when there are none."""
    values = [district.value for district in districts.values()]
    if not values:
        return None
    return min(values), max(values)


def _normalize(value: float, minimum: float, maximum: float) -> float:
    if maximum == minimum:
        return 1.0
    normalized = (value - minimum) / (maximum - minimum)
    return min(1.0, max(0.0, normalized))


def linear_color(value: float, minimum: float, maximum: float) -> str:
    """Interpolate from white (minimum) to blue (maximum) as ``rgb(r, g, b)``."""
    channel = round(255 * (1 - _normalize(value, minimum, maximum)))
    return f"rgb({channel}, {channel}, 255)"


def discrete_color(value: float, minimum: float, maximum: float) -> str:
    """Pick one of five equal-width buckets between minimum and maximum."""
    buckets = len(DISCRETE_PALETTE)
    index = min(int(_normalize(value, minimum, maximum) * buckets), buckets - 1)
    return DISCRETE_PALETTE[index]


def style_features(
    geojson: Mapping[str, Any],
    districts: Mapping[str, DistrictDataPoint],
    strategy: str = LINEAR,
) -> List[Dict[str, Any]]:
    """Fill colour for every feature in the geometry collection.

    :param geojson: Feature collection with ``features[*].properties.dcode``
    :param districts: Output of ``district_values_for_year``
    :param strategy: ``"linear"`` or ``"discrete"``
    :return: One dict per feature with its code, matched district and colour
    """
    if strategy not in (LINEAR, DISCRETE):
        raise ValueError(f"Unknown colour strategy: {strategy}")
    color_for = linear_color if strategy == LINEAR else discrete_color
    bounds = value_range(districts)

    styles = []
    for feature in geojson.get("features") or []:
        code = (feature.get("properties") or {}).get(FEATURE_CODE_PROPERTY)
        district = districts.get(code) if isinstance(code, str) else None
        if district is not None and bounds is not None:
            fill_color = color_for(district.value, *bounds)
        else:
            fill_color = UNFILLED_COLOR
        styles.append({"dcode": code, "district": district, "fillColor": fill_color})
    return styles


def district_popup(district: DistrictDataPoint, unit: str) -> str:
    """Popup text for a joined district."""
    return f"{district.district_name}: {district.value:.2f} {unit}".rstrip()


def legend(minimum: float, maximum: float) -> List[Tuple[str, str]]:
    """(label, colour) pairs for the discrete palette."""
    buckets = len(DISCRETE_PALETTE)
    step = (maximum - minimum) / buckets
    precision = precision_for_magnitude(max(abs(minimum), abs(maximum)))
    entries = []
    for index, color in enumerate(DISCRETE_PALETTE):
        low = minimum + step * index
        high = minimum + step * (index + 1)
        entries.append((f"{low:.{precision}f} - {high:.{precision}f}", color))
    return entries
