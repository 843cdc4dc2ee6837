import pandas as pd
import pytest

from car_price_service.dataset import (
    VehicleListingRecord,
    build_catalog,
    load_listings,
    records_from_frame,
)
from car_price_service.errors import StartupError


def test_catalog_from_two_maruti_rows():
    records = [
        VehicleListingRecord("Maruti", "Swift", 2015, "Petrol"),
        VehicleListingRecord("Maruti", "Baleno", 2018, "Petrol"),
    ]
    catalog = build_catalog(records)

    assert catalog.companies == ("Maruti",)
    assert catalog.models_by_company == {"Maruti": ("Baleno", "Swift")}
    assert catalog.years == (2015, 2018)
    assert catalog.fuel_types == ("Petrol",)


def test_models_are_restricted_to_their_company(listings_frame):
    catalog = build_catalog(records_from_frame(listings_frame))

    assert catalog.companies == ("Honda", "Hyundai", "Maruti")
    assert catalog.models_by_company["Honda"] == ("Amaze", "City")
    assert catalog.models_by_company["Hyundai"] == ("i20",)
    # Swift appears twice in the data but only once in the catalog
    assert catalog.models_by_company["Maruti"] == ("Baleno", "Swift")


def test_years_strictly_ascending(listings_frame):
    years = build_catalog(records_from_frame(listings_frame)).years

    assert list(years) == sorted(set(years))
    assert all(a < b for a, b in zip(years, years[1:]))


def test_catalog_does_not_depend_on_row_order(listings_frame):
    records = records_from_frame(listings_frame)

    assert build_catalog(records) == build_catalog(tuple(reversed(records)))


def test_load_listings_reads_csv(tmp_path, listings_frame):
    path = tmp_path / "listings.csv"
    listings_frame.to_csv(path, index=False)

    records = load_listings(path)

    assert len(records) == len(listings_frame)
    assert records[0] == VehicleListingRecord("Maruti", "Swift", 2015, "Petrol")


def test_load_listings_missing_file(tmp_path):
    with pytest.raises(StartupError, match="not found"):
        load_listings(tmp_path / "nope.csv")


def test_load_listings_empty_file(tmp_path):
    path = tmp_path / "listings.csv"
    path.write_text("")

    with pytest.raises(StartupError):
        load_listings(path)


def test_missing_column_is_fatal(listings_frame):
    with pytest.raises(StartupError, match="fuel_type"):
        records_from_frame(listings_frame.drop(columns=["fuel_type"]))


def test_non_integer_year_is_fatal(listings_frame):
    frame = listings_frame.astype({"year": object})
    frame.loc[0, "year"] = "twenty-fifteen"

    with pytest.raises(StartupError, match="year"):
        records_from_frame(frame)


def test_empty_cell_is_fatal(listings_frame):
    frame = listings_frame.copy()
    frame.loc[1, "company"] = None

    with pytest.raises(StartupError, match="company"):
        records_from_frame(frame)


def test_records_are_immutable():
    record = VehicleListingRecord("Maruti", "Swift", 2015, "Petrol")

    with pytest.raises(AttributeError):
        record.year = 2020


def test_string_values_are_stripped():
    frame = pd.DataFrame(
        [[" Swift ", "Maruti ", 2015, " Petrol"]],
        columns=["name", "company", "year", "fuel_type"],
    )

    assert records_from_frame(frame) == (
        VehicleListingRecord("Maruti", "Swift", 2015, "Petrol"),
    )
