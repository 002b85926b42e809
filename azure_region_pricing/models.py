"""Record types passed between the comparison stages.

All records are frozen: a stage builds them fully, derived fields included,
and later stages only read them.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .utils import normalize_region


def parse_tier(value: Any) -> Optional[float]:
    """Catalog tiers arrive as numbers, numeric strings or null."""
    if value is None or value == '':
        return None
    return float(value)


@dataclass(frozen=True)
class MeterDescriptor:
    """Canonical identity of a billable meter in its origin region."""

    meter_id: str
    meter_name: str
    product_id: str
    sku_name: str
    arm_region_name: str
    tier_minimum_units: Optional[float]
    unit_of_measure: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meterId": self.meter_id,
            "meterName": self.meter_name,
            "productId": self.product_id,
            "skuName": self.sku_name,
            "armRegionName": self.arm_region_name,
            "tierMinimumUnits": self.tier_minimum_units,
            "unitOfMeasure": self.unit_of_measure,
        }


@dataclass(frozen=True)
class MatchedPriceRow:
    """One meter's price as observed in one candidate region."""

    orig_meter_id: str
    is_origin_region: bool
    meter_id: str
    service_family: str
    service_name: str
    meter_name: str
    product_id: str
    product_name: str
    sku_name: str
    unit_of_measure: str
    retail_price: float
    region: str

    @classmethod
    def from_catalog_item(cls, descriptor: MeterDescriptor, item: Dict[str, Any]) -> 'MatchedPriceRow':
        region = normalize_region(item.get('armRegionName', ''))
        return cls(
            orig_meter_id=descriptor.meter_id,
            is_origin_region=region == descriptor.arm_region_name,
            meter_id=item.get('meterId', ''),
            service_family=item.get('serviceFamily', ''),
            service_name=item.get('serviceName', ''),
            meter_name=item.get('meterName', ''),
            product_id=item.get('productId', ''),
            product_name=item.get('productName', ''),
            sku_name=item.get('skuName', ''),
            unit_of_measure=item.get('unitOfMeasure', ''),
            retail_price=float(item.get('retailPrice', 0.0)),
            region=region,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "origMeterId": self.orig_meter_id,
            "isOriginRegion": self.is_origin_region,
            "meterId": self.meter_id,
            "serviceFamily": self.service_family,
            "serviceName": self.service_name,
            "meterName": self.meter_name,
            "productId": self.product_id,
            "productName": self.product_name,
            "skuName": self.sku_name,
            "unitOfMeasure": self.unit_of_measure,
            "retailPrice": self.retail_price,
            "region": self.region,
        }


@dataclass(frozen=True)
class UnitOfMeasureMismatch:
    """A candidate row left out of the comparison because its unit differs from the origin's."""

    orig_meter_id: str
    origin_unit: str
    target_meter_id: str
    target_unit: str
    target_region: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            "origMeterId": self.orig_meter_id,
            "originUnit": self.origin_unit,
            "targetMeterId": self.target_meter_id,
            "targetUnit": self.target_unit,
            "targetRegion": self.target_region,
        }


@dataclass(frozen=True)
class PricedComparison:
    """A matched row together with its difference to the origin-region price."""

    row: MatchedPriceRow
    price_diff_to_origin: float
    percentage_diff_to_origin: Optional[float]

    @property
    def orig_meter_id(self) -> str:
        return self.row.orig_meter_id

    @property
    def region(self) -> str:
        return self.row.region

    @property
    def retail_price(self) -> float:
        return self.row.retail_price

    @property
    def is_origin_region(self) -> bool:
        return self.row.is_origin_region

    def to_dict(self) -> Dict[str, Any]:
        data = self.row.to_dict()
        data["priceDiffToOrigin"] = self.price_diff_to_origin
        data["percentageDiffToOrigin"] = self.percentage_diff_to_origin
        return data


@dataclass(frozen=True)
class SummaryEntry:
    """Target regions of one origin meter, bucketed by price relative to the origin."""

    orig_meter_id: str
    meter_name: str
    original_region: str
    lower_priced: List[str] = field(default_factory=list)
    same_priced: List[str] = field(default_factory=list)
    higher_priced: List[str] = field(default_factory=list)

    @property
    def cheaper_regions_text(self) -> str:
        if not self.lower_priced:
            return f"No region is cheaper than {self.original_region}"
        return f"Cheaper than {self.original_region}: {', '.join(self.lower_priced)}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "origMeterId": self.orig_meter_id,
            "meterName": self.meter_name,
            "originalRegion": self.original_region,
            "lowerPricedRegions": ", ".join(self.lower_priced),
            "samePricedRegions": ", ".join(self.same_priced),
            "higherPricedRegions": ", ".join(self.higher_priced),
            "summary": self.cheaper_regions_text,
        }


@dataclass(frozen=True)
class ComparisonResult:
    """Everything a run produces, as handed to the report writer."""

    descriptors: List[MeterDescriptor]
    prices: List[PricedComparison]
    summary: List[SummaryEntry]
    uom_errors: List[UnitOfMeasureMismatch]
