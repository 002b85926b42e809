import concurrent.futures
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn

from .catalog import CatalogClient, CatalogFilter
from .config import MAX_WORKERS
from .models import MatchedPriceRow, MeterDescriptor, UnitOfMeasureMismatch, parse_tier
from .utils import normalize_region

_console = Console()


@dataclass
class MatchResult:
    """Rows matched across regions plus the candidates dropped for a unit mismatch."""

    rows: List[MatchedPriceRow] = field(default_factory=list)
    uom_errors: List[UnitOfMeasureMismatch] = field(default_factory=list)


def candidate_regions(descriptor: MeterDescriptor, target_regions: Iterable[str]) -> List[str]:
    """Target regions plus the descriptor's own origin region, deduplicated and sorted."""
    regions = {normalize_region(r) for r in target_regions if normalize_region(r)}
    regions.add(descriptor.arm_region_name)
    return sorted(regions)


def match_descriptor(client: CatalogClient, descriptor: MeterDescriptor,
                     target_regions: Iterable[str]) -> Tuple[List[MatchedPriceRow], List[UnitOfMeasureMismatch]]:
    """Finds the descriptor's equivalent offering in every candidate region.

    The origin region is queried again rather than trusted from resolution,
    since its current price anchors every delta.
    """
    logger = logging.getLogger()
    regions = candidate_regions(descriptor, target_regions)
    items = client.query(CatalogFilter.build(
        equals={
            'meterName': descriptor.meter_name,
            'productId': descriptor.product_id,
            'skuName': descriptor.sku_name,
        },
        any_of={'armRegionName': regions},
    ))

    rows: List[MatchedPriceRow] = []
    uom_errors: List[UnitOfMeasureMismatch] = []
    rejected_price = 0
    rejected_tier = 0
    for item in items:
        # Zero-priced rows are free or preview offers
        if float(item.get('retailPrice') or 0.0) <= 0:
            rejected_price += 1
            continue
        if parse_tier(item.get('tierMinimumUnits')) != descriptor.tier_minimum_units:
            rejected_tier += 1
            continue
        unit = item.get('unitOfMeasure', '')
        if unit != descriptor.unit_of_measure:
            uom_errors.append(UnitOfMeasureMismatch(
                orig_meter_id=descriptor.meter_id,
                origin_unit=descriptor.unit_of_measure,
                target_meter_id=item.get('meterId', ''),
                target_unit=unit,
                target_region=normalize_region(item.get('armRegionName', '')),
            ))
            continue
        rows.append(MatchedPriceRow.from_catalog_item(descriptor, item))

    found = {row.region for row in rows}
    logger.debug(
        f"Meter {descriptor.meter_id} ({descriptor.meter_name}): {len(rows)} match(es) in {len(found)}/{len(regions)} "
        f"region(s); rejected {rejected_price} (price), {rejected_tier} (tier), {len(uom_errors)} (unit)"
    )
    missing = [r for r in regions if r not in found]
    if missing:
        logger.info(f"Meter {descriptor.meter_id} has no comparable offering in: {', '.join(missing)}")
    return rows, uom_errors


def match_regions(client: CatalogClient, descriptors: Sequence[MeterDescriptor], target_regions: Sequence[str],
                  max_workers: int = MAX_WORKERS, console: Console = _console, show_progress: bool = True) -> MatchResult:
    """Matches every descriptor across the target regions on a bounded worker pool.

    Output order follows the descriptor order, whatever order the workers finish in.
    Any catalog failure propagates; no partial result is returned.
    """
    logger = logging.getLogger()
    if max_workers < 1:
        raise ValueError(f"max_workers must be at least 1, got {max_workers}")

    per_descriptor: List[Optional[Tuple[List[MatchedPriceRow], List[UnitOfMeasureMismatch]]]] = [None] * len(descriptors)
    logger.info(f"Matching {len(descriptors)} descriptor(s) across {len(target_regions)} target region(s) "
                f"with {max_workers} worker(s)")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        transient=True,
        console=console,
        disable=not show_progress,
    ) as progress:
        task = progress.add_task("[cyan]Matching meters across regions...[/]", total=len(descriptors))
        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(match_descriptor, client, descriptor, target_regions): index
                for index, descriptor in enumerate(descriptors)
            }
            try:
                for future in concurrent.futures.as_completed(futures):
                    per_descriptor[futures[future]] = future.result()
                    progress.advance(task)
            except Exception:
                for pending in futures:
                    pending.cancel()
                raise

    result = MatchResult()
    for rows, uom_errors in per_descriptor:
        result.rows.extend(rows)
        result.uom_errors.extend(uom_errors)
    logger.info(f"Matched {len(result.rows)} price row(s); {len(result.uom_errors)} unit-of-measure mismatch(es)")
    return result
