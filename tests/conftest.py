import pytest

from azure_region_pricing.catalog import CatalogFilter


def catalog_item(meter_id, region, price, unit="1 Hour", meter_name="D2s v3", product_id="DZH318Z0BQ4W",
                 sku_name="D2s v3", tier=0.0, product_name="Virtual Machines Dv3 Series"):
    """A Retail Prices API item with the fields the comparison reads."""
    return {
        "currencyCode": "USD",
        "tierMinimumUnits": tier,
        "retailPrice": price,
        "unitPrice": price,
        "armRegionName": region,
        "location": region,
        "meterId": meter_id,
        "meterName": meter_name,
        "productId": product_id,
        "skuId": f"{product_id}/000A",
        "productName": product_name,
        "skuName": sku_name,
        "serviceName": "Virtual Machines",
        "serviceId": "DZH313Z7MMC8",
        "serviceFamily": "Compute",
        "unitOfMeasure": unit,
        "type": "Consumption",
        "isPrimaryMeterRegion": True,
    }


class FakeCatalogClient:
    """In-memory stand-in for CatalogClient that evaluates filters against a fixed item list."""

    def __init__(self, items):
        self.items = list(items)
        self.filters = []

    def query(self, catalog_filter: CatalogFilter):
        self.filters.append(catalog_filter)
        matches = []
        for item in self.items:
            if any(item.get(name) != value for name, value in catalog_filter.equals):
                continue
            if any(item.get(name) not in values for name, values in catalog_filter.any_of):
                continue
            matches.append(item)
        return matches


@pytest.fixture
def scenario_items():
    """M1 priced 10.00 in eastus, cheaper in westeurope, equal in japaneast, dearer in brazilsouth."""
    return [
        catalog_item("M1", "eastus", 10.0),
        catalog_item("M1-weu", "westeurope", 8.0),
        catalog_item("M1-jpe", "japaneast", 10.0),
        catalog_item("M1-brs", "brazilsouth", 15.0),
    ]


@pytest.fixture
def scenario_client(scenario_items):
    return FakeCatalogClient(scenario_items)
