import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Tuple

import numpy as np
import pandas as pd

from .config import resolve_path
from .errors import StartupError


logger = logging.getLogger(__name__)

# listing columns the catalog is built from; kms_driven and Price may be present but are unused
REQUIRED_COLUMNS = ["name", "company", "year", "fuel_type"]


@dataclass(frozen=True)
class VehicleListingRecord:
    company: str
    model_name: str
    year: int
    fuel_type: str


@dataclass(frozen=True)
class DropdownCatalog:
    companies: Tuple[str, ...]
    models_by_company: Dict[str, Tuple[str, ...]]
    years: Tuple[int, ...]
    fuel_types: Tuple[str, ...]


# ---------- LOADING ----------

def load_raw_listings(data_path: Path) -> pd.DataFrame:
    data_path = resolve_path(Path(data_path))

    if not data_path.exists():
        raise StartupError(f"Reference dataset not found: {data_path}")

    try:
        df = pd.read_csv(data_path)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise StartupError(f"Reference dataset {data_path} could not be parsed: {e}") from e

    return df


def records_from_frame(df: pd.DataFrame) -> Tuple[VehicleListingRecord, ...]:
    """
    Turn the listing table into immutable records.
    Any missing column, empty cell or non-integer year rejects the whole table.
    """
    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise StartupError(f"Reference dataset is missing columns: {', '.join(missing)}")

    df = df[REQUIRED_COLUMNS]

    empty = df.isna().any()
    if empty.any():
        cols = ", ".join(empty[empty].index)
        raise StartupError(f"Reference dataset has empty values in: {cols}")

    years = pd.to_numeric(df["year"], errors="coerce")
    if years.isna().any() or not np.all(np.mod(years, 1) == 0):
        raise StartupError("Reference dataset column 'year' must hold integers")

    return tuple(
        VehicleListingRecord(
            company=str(company).strip(),
            model_name=str(name).strip(),
            year=int(year),
            fuel_type=str(fuel_type).strip(),
        )
        for name, company, year, fuel_type in zip(
            df["name"], df["company"], years, df["fuel_type"]
        )
    )


def load_listings(data_path: Path) -> Tuple[VehicleListingRecord, ...]:
    records = records_from_frame(load_raw_listings(data_path))
    if not records:
        raise StartupError(f"Reference dataset {data_path} has no rows")

    logger.info("Loaded %d reference listings from %s", len(records), data_path)
    return records


# ---------- CATALOG ----------

def build_catalog(records: Iterable[VehicleListingRecord]) -> DropdownCatalog:
    models: Dict[str, set] = {}
    years = set()
    fuel_types = set()

    for record in records:
        models.setdefault(record.company, set()).add(record.model_name)
        years.add(record.year)
        fuel_types.add(record.fuel_type)

    companies = tuple(sorted(models))

    return DropdownCatalog(
        companies=companies,
        models_by_company={company: tuple(sorted(models[company])) for company in companies},
        years=tuple(sorted(years)),
        fuel_types=tuple(sorted(fuel_types)),
    )
