import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .catalog import CatalogClient, CatalogFilter
from .errors import ResolutionError
from .models import MeterDescriptor, parse_tier
from .utils import normalize_region


def _tier_sort_key(tier: Optional[float]) -> Tuple[bool, float]:
    # No tiering sorts before any numeric tier
    return (tier is not None, tier if tier is not None else 0.0)


def lowest_tier(tiers: Iterable[Optional[float]]) -> Optional[float]:
    """Picks the tier a meter is anchored to: None if any row is untiered, else the smallest."""
    return min(tiers, key=_tier_sort_key)


def resolve_meters(client: CatalogClient, meter_ids: Iterable[str]) -> List[MeterDescriptor]:
    """Resolves each distinct meter id to its canonical descriptor(s).

    Raises ResolutionError naming every id the catalog has no rows for. An id
    the catalog exposes in several regions yields one descriptor per region.
    """
    logger = logging.getLogger()
    distinct_ids = list(dict.fromkeys(m.strip() for m in meter_ids if m and m.strip()))
    if not distinct_ids:
        return []

    logger.info(f"Resolving {len(distinct_ids)} distinct meter id(s) against the catalog")
    items = client.query(CatalogFilter.build(any_of={'meterId': distinct_ids}))

    items_by_meter: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for item in items:
        items_by_meter[item.get('meterId', '')].append(item)

    missing = [m for m in distinct_ids if not items_by_meter.get(m)]
    if missing:
        logger.error(f"Catalog returned no rows for {len(missing)} meter id(s): {missing}")
        raise ResolutionError(missing)

    descriptors: List[MeterDescriptor] = []
    for meter_id in distinct_ids:
        descriptors.extend(_descriptors_for(meter_id, items_by_meter[meter_id]))

    logger.info(f"Resolved {len(distinct_ids)} meter id(s) to {len(descriptors)} descriptor(s)")
    return descriptors


def _descriptors_for(meter_id: str, items: List[Dict[str, Any]]) -> List[MeterDescriptor]:
    # Tier is chosen over the key without the unit, descriptors are keyed with it
    tiers: Dict[Tuple[str, ...], List[Optional[float]]] = defaultdict(list)
    keys: Dict[Tuple[str, ...], None] = {}
    for item in items:
        tier_key = (
            meter_id,
            item.get('meterName', ''),
            item.get('productId', ''),
            item.get('skuName', ''),
            normalize_region(item.get('armRegionName', '')),
        )
        tiers[tier_key].append(parse_tier(item.get('tierMinimumUnits')))
        keys[tier_key + (item.get('unitOfMeasure', ''),)] = None

    if len(keys) > 1:
        logging.getLogger().debug(f"Meter {meter_id} resolved to {len(keys)} distinct catalog identities")

    return [
        MeterDescriptor(
            meter_id=key[0],
            meter_name=key[1],
            product_id=key[2],
            sku_name=key[3],
            arm_region_name=key[4],
            tier_minimum_units=lowest_tier(tiers[key[:5]]),
            unit_of_measure=key[5],
        )
        for key in keys
    ]
