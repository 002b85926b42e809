from collections import defaultdict
from typing import Dict, List, Sequence

from .models import PricedComparison, SummaryEntry


def build_summary(prices: Sequence[PricedComparison]) -> List[SummaryEntry]:
    """One entry per origin meter, splitting its other regions into cheaper, equal and costlier.

    Meters without an origin row are skipped. Region lists are sorted so the
    output does not depend on catalog or worker ordering.
    """
    by_meter: Dict[str, List[PricedComparison]] = defaultdict(list)
    for comparison in prices:
        by_meter[comparison.orig_meter_id].append(comparison)

    entries: List[SummaryEntry] = []
    for meter_id, comparisons in by_meter.items():
        origin = next((c for c in comparisons if c.is_origin_region), None)
        if origin is None:
            continue
        lower, same, higher = [], [], []
        for c in comparisons:
            if c.is_origin_region or c.region == origin.region:
                continue
            if c.retail_price < origin.retail_price:
                lower.append(c.region)
            elif c.retail_price > origin.retail_price:
                higher.append(c.region)
            else:
                same.append(c.region)
        entries.append(SummaryEntry(
            orig_meter_id=meter_id,
            meter_name=origin.row.meter_name,
            original_region=origin.region,
            lower_priced=sorted(lower),
            same_priced=sorted(same),
            higher_priced=sorted(higher),
        ))
    return entries
