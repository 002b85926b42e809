import logging
from typing import Iterable, Sequence

from rich.console import Console

from .catalog import CatalogClient
from .config import MAX_WORKERS
from .deltas import compute_deltas
from .errors import ConfigurationError, ResolutionError
from .integrity import check_integrity
from .matching import match_regions
from .models import ComparisonResult
from .resolver import resolve_meters
from .summary import build_summary

_console = Console()


def compare_regions(client: CatalogClient, meter_ids: Iterable[str], target_regions: Sequence[str],
                    max_workers: int = MAX_WORKERS, console: Console = _console,
                    show_progress: bool = True) -> ComparisonResult:
    """Runs resolve -> match -> integrity check -> deltas -> summary.

    Every stage either completes or raises; nothing is returned for a run
    that failed part way.
    """
    logger = logging.getLogger()
    meter_ids = list(meter_ids)
    if not meter_ids:
        raise ConfigurationError("No meter ids to compare")
    if not target_regions:
        raise ConfigurationError("No target regions given")

    console.print(f"\n[bold blue]--- Resolving {len(meter_ids)} meter id(s) ---[/]")
    descriptors = resolve_meters(client, meter_ids)
    if not descriptors:
        raise ResolutionError(meter_ids)
    console.print(f":white_check_mark: Resolved {len(descriptors)} meter descriptor(s)")

    console.print(f"\n[bold blue]--- Matching prices in {len(target_regions)} region(s) ---[/]")
    matches = match_regions(client, descriptors, target_regions, max_workers=max_workers,
                            console=console, show_progress=show_progress)
    if matches.uom_errors:
        console.print(f"[yellow]  - {len(matches.uom_errors)} candidate(s) excluded for a unit-of-measure mismatch[/]")

    check_integrity(matches.rows)
    prices = compute_deltas(matches.rows)
    summary = build_summary(prices)
    logger.info(f"Comparison complete: {len(prices)} priced row(s), {len(summary)} summary entr(ies)")

    return ComparisonResult(
        descriptors=descriptors,
        prices=prices,
        summary=summary,
        uom_errors=matches.uom_errors,
    )
