import io
import pytest
from rich.console import Console

from azure_region_pricing.deltas import compute_deltas, percentage_diff
from azure_region_pricing.errors import AmbiguousMatchError, ConfigurationError, MissingOriginPriceError, ResolutionError
from azure_region_pricing.integrity import check_integrity, find_duplicate_matches
from azure_region_pricing.models import MatchedPriceRow, PricedComparison
from azure_region_pricing.pipeline import compare_regions
from azure_region_pricing.summary import build_summary
from conftest import FakeCatalogClient, catalog_item

TARGETS = ["westeurope", "japaneast", "brazilsouth"]


def run(client, meter_ids=("M1",), targets=TARGETS):
    return compare_regions(client, list(meter_ids), targets, max_workers=2,
                           console=Console(file=io.StringIO()), show_progress=False)

def matched_row(meter_id, region, price, origin=False, sku="D2s v3"):
    return MatchedPriceRow(
        orig_meter_id=meter_id,
        is_origin_region=origin,
        meter_id=f"{meter_id}-{region}",
        service_family="Compute",
        service_name="Virtual Machines",
        meter_name="D2s v3",
        product_id="DZH318Z0BQ4W",
        product_name="Virtual Machines Dv3 Series",
        sku_name=sku,
        unit_of_measure="1 Hour",
        retail_price=price,
        region=region,
    )

# --- End-to-end scenarios ---

def test_compare_regions_prices_targets_against_origin(scenario_client):
    """eastus at 10.00 against westeurope 8.00, japaneast 10.00 and brazilsouth 15.00."""
    result = run(scenario_client)

    by_region = {p.region: p for p in result.prices}
    assert set(by_region) == {"eastus", "westeurope", "japaneast", "brazilsouth"}
    assert by_region["westeurope"].price_diff_to_origin == pytest.approx(-2.0)
    assert by_region["japaneast"].price_diff_to_origin == pytest.approx(0.0)
    assert by_region["brazilsouth"].price_diff_to_origin == pytest.approx(5.0)
    assert by_region["westeurope"].percentage_diff_to_origin == -0.2
    assert by_region["japaneast"].percentage_diff_to_origin == 0.0
    assert by_region["brazilsouth"].percentage_diff_to_origin == 0.5
    assert by_region["eastus"].is_origin_region

    assert len(result.summary) == 1
    entry = result.summary[0]
    assert entry.original_region == "eastus"
    assert entry.lower_priced == ["westeurope"]
    assert entry.same_priced == ["japaneast"]
    assert entry.higher_priced == ["brazilsouth"]
    assert entry.cheaper_regions_text == "Cheaper than eastus: westeurope"
    assert result.uom_errors == []

def test_summary_partitions_every_matched_region(scenario_client):
    result = run(scenario_client)

    entry = result.summary[0]
    buckets = [set(entry.lower_priced), set(entry.same_priced), set(entry.higher_priced), {entry.original_region}]
    assert set().union(*buckets) == {p.region for p in result.prices}
    assert sum(len(b) for b in buckets) == len(result.prices)

def test_compare_regions_reports_unit_mismatch_outside_prices():
    client = FakeCatalogClient([
        catalog_item("M1", "eastus", 10.0, unit="1 Hour"),
        catalog_item("M1-weu", "westeurope", 0.4, unit="1 GB"),
        catalog_item("M1-brs", "brazilsouth", 15.0, unit="1 Hour"),
    ])

    result = run(client)

    assert [(e.orig_meter_id, e.origin_unit, e.target_meter_id, e.target_unit) for e in result.uom_errors] == [
        ("M1", "1 Hour", "M1-weu", "1 GB"),
    ]
    assert "westeurope" not in {p.region for p in result.prices}
    assert all(p.row.unit_of_measure == "1 Hour" for p in result.prices)

def test_compare_regions_aborts_on_duplicate_origin_rows():
    """Two origin rows for one meter must abort, not silently pick one."""
    client = FakeCatalogClient([
        catalog_item("M1", "eastus", 10.0),
        catalog_item("M1", "eastus", 11.0),
        catalog_item("M1-weu", "westeurope", 8.0),
    ])

    with pytest.raises(AmbiguousMatchError) as excinfo:
        run(client)

    assert ("M1", "eastus") in dict(excinfo.value.duplicates)
    assert len(excinfo.value.rows) == 3

def test_compare_regions_aborts_on_unknown_meter(scenario_client):
    with pytest.raises(ResolutionError) as excinfo:
        run(scenario_client, meter_ids=["M1", "unknown-meter"])

    assert "unknown-meter" in str(excinfo.value)
    # Resolution failed before any matching query was issued
    assert len(scenario_client.filters) == 1

def test_compare_regions_requires_inputs(scenario_client):
    with pytest.raises(ConfigurationError):
        run(scenario_client, meter_ids=[])
    with pytest.raises(ConfigurationError):
        run(scenario_client, targets=[])
    assert scenario_client.filters == []

def test_compare_regions_fails_when_origin_price_is_gone():
    """Origin offering discontinued: only target rows come back from matching."""
    class DiscontinuedOrigin(FakeCatalogClient):
        def query(self, catalog_filter):
            items = super().query(catalog_filter)
            if any(name == "armRegionName" for name, _ in catalog_filter.any_of):
                return [i for i in items if i["armRegionName"] != "eastus"]
            return items

    client = DiscontinuedOrigin([
        catalog_item("M1", "eastus", 10.0),
        catalog_item("M1-weu", "westeurope", 8.0),
    ])

    with pytest.raises(MissingOriginPriceError) as excinfo:
        run(client)

    assert excinfo.value.orig_meter_id == "M1"

# --- Integrity checker ---

def test_find_duplicate_matches_detects_two_origin_skus():
    rows = [
        matched_row("M1", "eastus", 10.0, origin=True, sku="D2s v3"),
        matched_row("M1", "eastus", 10.5, origin=True, sku="D2s v3 Low Priority"),
        matched_row("M1", "westeurope", 8.0),
    ]

    duplicates = find_duplicate_matches(rows)

    assert duplicates == [(("M1", "eastus"), 2)]
    with pytest.raises(AmbiguousMatchError) as excinfo:
        check_integrity(rows)
    assert excinfo.value.rows == rows

def test_find_duplicate_matches_detects_target_region_duplicates():
    rows = [
        matched_row("M1", "eastus", 10.0, origin=True),
        matched_row("M1", "westeurope", 8.0),
        matched_row("M1", "westeurope", 8.5),
    ]

    assert find_duplicate_matches(rows) == [(("M1", "westeurope"), 2)]

def test_check_integrity_passes_clean_rows():
    rows = [matched_row("M1", "eastus", 10.0, origin=True), matched_row("M2", "eastus", 3.0, origin=True)]
    check_integrity(rows)

# --- Delta calculator ---

def test_percentage_diff_is_none_only_for_zero_origin_price():
    assert percentage_diff(5.0, 0.0) is None
    assert percentage_diff(0.0, 4.0) == -1.0
    assert percentage_diff(1.0, 3.0) == round(-2.0 / 3.0, 2)

def test_compute_deltas_uses_origin_of_each_meter():
    rows = [
        matched_row("M1", "eastus", 10.0, origin=True),
        matched_row("M2", "westus", 2.0, origin=True),
        matched_row("M1", "westeurope", 12.0),
        matched_row("M2", "westeurope", 1.0),
    ]

    priced = compute_deltas(rows)

    assert [(p.orig_meter_id, p.region, p.price_diff_to_origin, p.percentage_diff_to_origin) for p in priced] == [
        ("M1", "eastus", 0.0, 0.0),
        ("M2", "westus", 0.0, 0.0),
        ("M1", "westeurope", 2.0, 0.2),
        ("M2", "westeurope", -1.0, -0.5),
    ]

def test_compute_deltas_keeps_decimal_prices_exact():
    """0.3 against 0.1 is a difference of 0.2, without binary float residue."""
    rows = [
        matched_row("M1", "eastus", 0.1, origin=True),
        matched_row("M1", "westus", 0.3),
        matched_row("M1", "westeurope", 0.07),
    ]

    priced = compute_deltas(rows)

    assert [p.price_diff_to_origin for p in priced] == [0.0, 0.2, -0.03]
    assert [p.percentage_diff_to_origin for p in priced] == [0.0, 2.0, -0.3]

def test_compute_deltas_without_origin_row_fails():
    with pytest.raises(MissingOriginPriceError):
        compute_deltas([matched_row("M1", "westeurope", 8.0)])

# --- Summary builder ---

def test_build_summary_skips_meters_without_origin_and_handles_empty_input():
    orphan = PricedComparison(row=matched_row("M9", "westeurope", 1.0), price_diff_to_origin=0.0,
                              percentage_diff_to_origin=None)

    assert build_summary([]) == []
    assert build_summary([orphan]) == []

def test_build_summary_sorts_region_names():
    rows = [
        matched_row("M1", "eastus", 10.0, origin=True),
        matched_row("M1", "westus", 5.0),
        matched_row("M1", "centralindia", 6.0),
        matched_row("M1", "uksouth", 10.0),
        matched_row("M1", "australiaeast", 10.0),
    ]

    entry = build_summary(compute_deltas(rows))[0]

    assert entry.lower_priced == ["centralindia", "westus"]
    assert entry.same_priced == ["australiaeast", "uksouth"]
    assert entry.higher_priced == []
