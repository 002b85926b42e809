import logging
import os
from typing import Dict, List, Sequence

import pandas as pd

from .models import ComparisonResult, MatchedPriceRow

# Column order per output table, also used for empty tables
INPUT_COLUMNS = ['meterId', 'meterName', 'productId', 'skuName', 'armRegionName', 'tierMinimumUnits', 'unitOfMeasure']
MATCH_COLUMNS = ['origMeterId', 'isOriginRegion', 'meterId', 'serviceFamily', 'serviceName', 'meterName',
                 'productId', 'productName', 'skuName', 'unitOfMeasure', 'retailPrice', 'region']
PRICE_COLUMNS = MATCH_COLUMNS + ['priceDiffToOrigin', 'percentageDiffToOrigin']
PRICEMAP_COLUMNS = ['origMeterId', 'meterName', 'originalRegion', 'lowerPricedRegions', 'samePricedRegions',
                    'higherPricedRegions', 'summary']
UOM_COLUMNS = ['origMeterId', 'originUnit', 'targetMeterId', 'targetUnit', 'targetRegion']


def _frame(records: List[Dict], columns: List[str]) -> pd.DataFrame:
    if not records:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(records, columns=columns)


def result_tables(result: ComparisonResult) -> Dict[str, pd.DataFrame]:
    """The named output tables; 'uomerrors' only when there are mismatches."""
    tables = {
        'inputs': _frame([d.to_dict() for d in result.descriptors], INPUT_COLUMNS),
        'prices': _frame([p.to_dict() for p in result.prices], PRICE_COLUMNS),
        'pricemap': _frame([s.to_dict() for s in result.summary], PRICEMAP_COLUMNS),
    }
    if result.uom_errors:
        tables['uomerrors'] = _frame([e.to_dict() for e in result.uom_errors], UOM_COLUMNS)
    return tables


def write_tables(tables: Dict[str, pd.DataFrame], output_dir: str, fmt: str = 'csv') -> List[str]:
    """Writes each table as <name>.csv, or all of them as sheets of one workbook."""
    logger = logging.getLogger()
    os.makedirs(output_dir, exist_ok=True)
    written = []
    if fmt == 'xlsx':
        path = os.path.join(output_dir, 'region_price_comparison.xlsx')
        with pd.ExcelWriter(path) as writer:
            for name, df in tables.items():
                df.to_excel(writer, sheet_name=name, index=False)
        written.append(path)
    elif fmt == 'csv':
        for name, df in tables.items():
            path = os.path.join(output_dir, f"{name}.csv")
            df.to_csv(path, index=False)
            written.append(path)
    else:
        raise ValueError(f"Unsupported output format '{fmt}'")
    logger.info(f"Wrote {len(tables)} table(s) to {output_dir}: {', '.join(tables)}")
    return written


def write_report(result: ComparisonResult, output_dir: str, fmt: str = 'csv') -> List[str]:
    return write_tables(result_tables(result), output_dir, fmt)


def write_match_dump(rows: Sequence[MatchedPriceRow], output_dir: str) -> str:
    """Dumps the unreduced match table for manual inspection of an ambiguous match."""
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, 'ambiguous_matches.csv')
    _frame([r.to_dict() for r in rows], MATCH_COLUMNS).to_csv(path, index=False)
    logging.getLogger().warning(f"Wrote {len(rows)} unreduced match row(s) to {path}")
    return path
