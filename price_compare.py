import argparse
import logging
import sys

from rich.console import Console
from rich.table import Table

from azure_region_pricing import config, reporting, utils
from azure_region_pricing.catalog import CatalogClient, RetryPolicy
from azure_region_pricing.errors import AmbiguousMatchError, ConfigurationError, RegionPricingError
from azure_region_pricing.inputs import load_meter_ids, parse_regions
from azure_region_pricing.pipeline import compare_regions

console = Console()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Compare Azure retail meter prices between an origin region and a set of target regions.")
    parser.add_argument("--resource-file", required=True, help="CSV or Excel cost export with a MeterId column.")
    parser.add_argument("--regions", help="Comma-separated target region codes, e.g. 'westeurope,japaneast'.")
    parser.add_argument("--regions-file", help="File with target region codes, one per line.")
    parser.add_argument("--output-dir", default=config.DEFAULT_OUTPUT_DIR, help="Directory for the output tables.")
    parser.add_argument("--format", choices=["csv", "xlsx"], default="csv", help="Output format (default: %(default)s).")
    parser.add_argument("--batch-size", type=int, default=config.FILTER_BATCH_SIZE, help="Max values per $filter OR-group (default: %(default)s).")
    parser.add_argument("--max-workers", type=int, default=config.MAX_WORKERS, help="Meters matched in parallel (default: %(default)s).")
    parser.add_argument("--retries", type=int, default=config.MAX_RETRY_ATTEMPTS, help="Attempts per catalog request (default: %(default)s).")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def print_summary(summary, console: Console = console):
    if not summary:
        console.print("[yellow]No meter has an origin-region price; nothing to summarize.[/]")
        return
    table = Table(title="Region price comparison")
    table.add_column("Meter", style="cyan")
    table.add_column("Origin")
    table.add_column("Cheaper", style="green")
    table.add_column("Same")
    table.add_column("Costlier", style="red")
    for entry in summary:
        table.add_row(
            f"{entry.meter_name} ({entry.orig_meter_id})",
            entry.original_region,
            ", ".join(entry.lower_priced) or "-",
            ", ".join(entry.same_priced) or "-",
            ", ".join(entry.higher_priced) or "-",
        )
    console.print(table)


def main(argv=None):
    args = parse_args(argv)

    log_level = logging.DEBUG if args.debug else logging.WARNING
    logger = utils.setup_logger(level=log_level, filename=config.LOG_FILENAME)
    logger.info("--- Region price comparison started ---")
    logger.info(f"Arguments: {args}")

    try:
        target_regions = parse_regions(args.regions, args.regions_file)
        meter_ids = load_meter_ids(args.resource_file)
        if args.batch_size < 1 or args.max_workers < 1 or args.retries < 1:
            raise ConfigurationError("--batch-size, --max-workers and --retries must be at least 1")

        client = CatalogClient(batch_size=args.batch_size, retry_policy=RetryPolicy(max_attempts=args.retries))
        result = compare_regions(
            client,
            meter_ids,
            target_regions,
            max_workers=args.max_workers,
            console=console,
            show_progress=not args.no_progress,
        )
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        console.print(f"[bold red]Configuration error:[/] {e}")
        return 2
    except AmbiguousMatchError as e:
        logger.error(str(e))
        dump_path = reporting.write_match_dump(e.rows, args.output_dir)
        console.print(f"[bold red]Ambiguous catalog matches, no prices written:[/] {e}")
        console.print(f"  Full match table for inspection: [cyan]{dump_path}[/]")
        return 1
    except RegionPricingError as e:
        logger.error(f"Comparison failed: {e}", exc_info=args.debug)
        console.print(f"[bold red]Comparison failed:[/] {e}")
        return 1

    print_summary(result.summary)
    written = reporting.write_report(result, args.output_dir, args.format)
    for path in written:
        console.print(f":page_facing_up: Wrote [cyan]{path}[/]")
    if result.uom_errors:
        console.print(f"[yellow]{len(result.uom_errors)} unit-of-measure mismatch(es) reported in 'uomerrors'.[/]")
    logger.info("--- Region price comparison finished ---")
    return 0


if __name__ == "__main__":
    sys.exit(main())
