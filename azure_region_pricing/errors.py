"""Errors raised by the region price comparison pipeline.

Every fatal condition has its own type so the CLI can report it and pick an
exit status. Unit-of-measure mismatches are not errors: they are collected
and reported alongside the results.
"""
from typing import List, Optional, Sequence


class RegionPricingError(Exception):
    """Base class for all fatal comparison errors."""


class ConfigurationError(RegionPricingError):
    """Missing or invalid input; raised before any catalog call is made."""


class CatalogQueryError(RegionPricingError):
    """A catalog request failed, or returned something other than an Items payload."""

    def __init__(self, message: str, filter_string: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.filter_string = filter_string
        self.status_code = status_code


class ResolutionError(RegionPricingError):
    """One or more input meter ids returned no catalog rows."""

    def __init__(self, meter_ids: Sequence[str]):
        self.meter_ids: List[str] = sorted(meter_ids)
        super().__init__(
            f"No catalog pricing found for meter id(s): {', '.join(self.meter_ids)}"
        )


class AmbiguousMatchError(RegionPricingError):
    """More than one candidate row matched the same meter in the same region.

    `rows` holds the full unreduced match table so it can be dumped for
    manual inspection.
    """

    def __init__(self, duplicates, rows):
        self.duplicates = duplicates
        self.rows = list(rows)
        described = "; ".join(
            f"{meter_id} in {region} ({count} rows)" for (meter_id, region), count in duplicates
        )
        super().__init__(f"Ambiguous catalog matches: {described}")


class MissingOriginPriceError(RegionPricingError):
    """A meter has comparison rows but no price in its origin region."""

    def __init__(self, orig_meter_id: str):
        self.orig_meter_id = orig_meter_id
        super().__init__(f"No origin-region price found for meter {orig_meter_id}")
