"""Merge freshly ingested indicators with their stored counterparts.

A CSV re-import refreshes values and time series but must not wipe the
metadata that editors maintain in the store. Text fields fall back to the
stored value when the CSV leaves them empty, and the list of relevant
policies always comes from the store: policies are only changed through
the single-record edit path.
"""

from typing import Dict, Iterable, List, Optional

from sdhe.logging_config import create_logger
from sdhe.models import Indicator, IndicatorDetails, PolicyReference

logger = create_logger(__name__)


def merge_with_existing(new_indicator: Indicator, existing: Optional[Indicator] = None) -> Indicator:
    """Merge one ingested indicator with its stored version (if any)."""
    merged = new_indicator.copy()
    new_details = new_indicator.details

    if existing is None:
        merged.description = new_indicator.description or ""
        merged.details = IndicatorDetails(
            methodology=new_details.methodology or "",
            data_sources=list(new_details.data_sources or []),
            target_method=new_details.target_method or "",
            relevant_policies=list(new_details.relevant_policies or []),
        )
        return merged

    stored_details = existing.details
    merged.description = new_indicator.description or existing.description or ""
    merged.details = IndicatorDetails(
        methodology=new_details.methodology or stored_details.methodology or "",
        data_sources=list(new_details.data_sources or stored_details.data_sources or []),
        target_method=new_details.target_method or stored_details.target_method or "",
        relevant_policies=[
            PolicyReference(title=policy.title, description=policy.description)
            for policy in stored_details.relevant_policies
        ],
    )
    return merged


def merge_indicator_data(new_indicators: Iterable[Indicator], store) -> List[Indicator]:
    """Merge ingested indicators with the metadata already in the store.

    :param new_indicators: Indicators produced by ``process_csv_data``
    :param store: Indicator store exposing ``read_all()``
    :return: Merged indicators in the input order
    :raises StoreError: If the store cannot be read
    """
    existing_by_id: Dict[str, Indicator] = {
        indicator.id: indicator for indicator in store.read_all()
    }

    merged: List[Indicator] = []
    matched = 0
    for indicator in new_indicators:
        existing = existing_by_id.get(indicator.id)
        if existing is not None:
            matched += 1
        merged.append(merge_with_existing(indicator, existing))

    logger.info(
        f"Merged {len(merged)} indicators ({matched} matched stored records, "
        f"{len(merged) - matched} new)"
    )
    return merged
