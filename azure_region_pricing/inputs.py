import logging
import os
from typing import Iterable, List, Optional

import pandas as pd

from .config import METER_ID_COLUMNS
from .errors import ConfigurationError
from .utils import normalize_region


def _find_meter_column(columns: Iterable[str]) -> Optional[str]:
    by_key = {str(c).strip().lower().replace(' ', ''): c for c in columns}
    for candidate in METER_ID_COLUMNS:
        column = by_key.get(candidate.lower().replace(' ', ''))
        if column is not None:
            return column
    return None


def load_meter_ids(path: str) -> List[str]:
    """Reads the distinct meter ids from a cost export (CSV or Excel).

    Other columns (costs, resource ids) are ignored here.
    """
    logger = logging.getLogger()
    if not path:
        raise ConfigurationError("No resource file given")
    if not os.path.isfile(path):
        raise ConfigurationError(f"Resource file '{path}' does not exist")

    suffix = os.path.splitext(path)[1].lower()
    if suffix == '.xls':
        raise ConfigurationError(f"Legacy Excel file '{path}' is not supported; save it as .xlsx or .csv")
    try:
        if suffix == '.xlsx':
            df = pd.read_excel(path, dtype=str)
        else:
            df = pd.read_csv(path, dtype=str)
    except (ValueError, pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise ConfigurationError(f"Could not read resource file '{path}': {e}") from e

    column = _find_meter_column(df.columns)
    if column is None:
        raise ConfigurationError(
            f"Resource file '{path}' has no meter id column (expected one of: {', '.join(METER_ID_COLUMNS)})"
        )

    values = df[column].dropna().astype(str).str.strip()
    meter_ids = list(dict.fromkeys(v for v in values if v))
    if not meter_ids:
        raise ConfigurationError(f"Resource file '{path}' contains no meter ids")

    logger.info(f"Loaded {len(meter_ids)} distinct meter id(s) from '{path}' (column '{column}')")
    return meter_ids


def parse_regions(regions: Optional[str] = None, regions_file: Optional[str] = None) -> List[str]:
    """Target regions from a comma separated list and/or a file with one region per line."""
    raw: List[str] = []
    if regions:
        raw.extend(regions.split(','))
    if regions_file:
        if not os.path.isfile(regions_file):
            raise ConfigurationError(f"Regions file '{regions_file}' does not exist")
        with open(regions_file, 'r') as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#'):
                    raw.extend(line.split(','))

    target_regions = list(dict.fromkeys(normalize_region(r) for r in raw if normalize_region(r)))
    if not target_regions:
        raise ConfigurationError("No target regions given")
    return target_regions
