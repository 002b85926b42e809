import logging
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from .config import PERCENTAGE_PRECISION
from .errors import MissingOriginPriceError
from .models import MatchedPriceRow, PricedComparison


def _decimal(price: float) -> Decimal:
    # Shortest repr of the catalog float, so 0.1 stays exactly 0.1
    return Decimal(str(price))


def origin_rows_by_meter(rows: Sequence[MatchedPriceRow]) -> Dict[str, MatchedPriceRow]:
    """Maps each origin meter id to its origin-region row. Expects integrity-checked rows."""
    return {r.orig_meter_id: r for r in rows if r.is_origin_region}


def price_diff(price: float, origin_price: float) -> float:
    """Absolute difference to the origin price, exact in decimal terms."""
    return float(_decimal(price) - _decimal(origin_price))


def percentage_diff(price: float, origin_price: float, precision: int = PERCENTAGE_PRECISION) -> Optional[float]:
    """Relative difference to the origin price, or None when the origin price is zero."""
    if origin_price == 0:
        return None
    ratio = (_decimal(price) - _decimal(origin_price)) / _decimal(origin_price)
    return float(round(ratio, precision))


def compute_deltas(rows: Sequence[MatchedPriceRow]) -> List[PricedComparison]:
    """Prices every matched row against the origin-region row of its meter."""
    logger = logging.getLogger()
    origins = origin_rows_by_meter(rows)
    priced: List[PricedComparison] = []
    for row in rows:
        origin = origins.get(row.orig_meter_id)
        if origin is None:
            logger.error(f"Meter {row.orig_meter_id} has a price in {row.region} but none in its origin region")
            raise MissingOriginPriceError(row.orig_meter_id)
        priced.append(PricedComparison(
            row=row,
            price_diff_to_origin=price_diff(row.retail_price, origin.retail_price),
            percentage_diff_to_origin=percentage_diff(row.retail_price, origin.retail_price),
        ))
    logger.debug(f"Computed deltas for {len(priced)} row(s) across {len(origins)} meter(s)")
    return priced
