import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .artifacts import load_pipeline
from .config import ServiceConfig, config_path_from_env, load_infer_config
from .dataset import DropdownCatalog, build_catalog, load_listings
from .transforms import PricePipeline


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceContext:
    """
    Everything the request handlers read. Built once at startup, never mutated.
    """
    config: ServiceConfig
    catalog: DropdownCatalog
    pipeline: PricePipeline


def build_context(config: ServiceConfig) -> ServiceContext:
    """
    Startup sequence: dataset -> artifacts (dimensionality check) -> catalog.
    Any StartupError raised here must stop the service.
    """
    records = load_listings(config.data.path)
    pipeline = load_pipeline(config.artifacts, config.features)
    catalog = build_catalog(records)

    logger.info(
        "Catalog ready: %d companies, %d years, %d fuel types",
        len(catalog.companies),
        len(catalog.years),
        len(catalog.fuel_types),
    )
    return ServiceContext(config=config, catalog=catalog, pipeline=pipeline)


def load_context(config_path: Optional[Path] = None) -> ServiceContext:
    if config_path is None:
        config_path = config_path_from_env()
    return build_context(load_infer_config(config_path))
