import logging
from collections import Counter, defaultdict
from typing import Dict, List, Sequence, Set, Tuple

from .errors import AmbiguousMatchError
from .models import MatchedPriceRow


def find_duplicate_matches(rows: Sequence[MatchedPriceRow]) -> List[Tuple[Tuple[str, str], int]]:
    """Returns ((orig_meter_id, region), count) for every ambiguous match.

    A meter is ambiguous when it has more than one origin-flagged row (e.g. the
    catalog lists it under two SKUs, or in two origin regions), or when any
    region holds more than one candidate row for it.
    """
    region_counts = Counter((r.orig_meter_id, r.region) for r in rows)
    origin_regions: Dict[str, Set[str]] = defaultdict(set)
    origin_counts = Counter()
    for r in rows:
        if r.is_origin_region:
            origin_counts[r.orig_meter_id] += 1
            origin_regions[r.orig_meter_id].add(r.region)

    duplicates = {key: count for key, count in region_counts.items() if count > 1}
    for meter_id, count in origin_counts.items():
        if count > 1:
            key = (meter_id, ",".join(sorted(origin_regions[meter_id])))
            duplicates[key] = max(duplicates.get(key, 0), count)
    return sorted(duplicates.items())


def check_integrity(rows: Sequence[MatchedPriceRow]) -> None:
    """Raises AmbiguousMatchError, carrying the unreduced rows, if any meter matched ambiguously."""
    logger = logging.getLogger()
    duplicates = find_duplicate_matches(rows)
    if duplicates:
        logger.error(f"Found {len(duplicates)} ambiguous (meter, region) match(es); aborting before price deltas")
        raise AmbiguousMatchError(duplicates, rows)
    logger.debug(f"Integrity check passed for {len(rows)} matched row(s)")
