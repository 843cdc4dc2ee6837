import logging
import os
from pathlib import Path
from typing import List

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import StartupError


DEFAULT_CONFIG_PATH = Path("configs") / "config_infer.yaml"
CONFIG_ENV_VAR = "CAR_PRICE_CONFIG"


def resolve_path(path: Path) -> Path:
    # the service is started from the project root
    if not path.is_absolute():
        path = Path.cwd() / path
    return path


class DataConfig(BaseModel):
    path: Path


class ArtifactsConfig(BaseModel):
    encoder_path: Path
    scaler_path: Path
    model_path: Path


class FeaturesConfig(BaseModel):
    """
    Column names in the order the artifacts were fitted with.
    """
    categorical: List[str] = ["name", "company", "fuel_type"]
    numeric: List[str] = ["year", "kms_driven"]

    @field_validator("categorical")
    @classmethod
    def check_categorical(cls, v):
        if sorted(v) != ["company", "fuel_type", "name"]:
            raise ValueError("categorical features must be exactly name, company, fuel_type")
        return v

    @field_validator("numeric")
    @classmethod
    def check_numeric(cls, v):
        if sorted(v) != ["kms_driven", "year"]:
            raise ValueError("numeric features must be exactly year, kms_driven")
        return v


class ServiceSettings(BaseModel):
    predict_timeout_seconds: float = Field(1.0, gt=0)
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v):
        v = v.upper()
        if not isinstance(logging.getLevelName(v), int):
            raise ValueError(f"unknown log level: {v}")
        return v


class ServiceConfig(BaseModel):
    data: DataConfig
    artifacts: ArtifactsConfig
    features: FeaturesConfig = FeaturesConfig()
    service: ServiceSettings = ServiceSettings()


def config_path_from_env() -> Path:
    return Path(os.getenv(CONFIG_ENV_VAR, str(DEFAULT_CONFIG_PATH)))


def load_infer_config(config_path: Path) -> ServiceConfig:
    config_path = resolve_path(Path(config_path))

    if not config_path.exists():
        raise StartupError(f"Config not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise StartupError(f"Config {config_path} is not valid YAML: {e}") from e

    if not isinstance(raw, dict):
        raise StartupError(f"Config {config_path} must be a mapping")

    try:
        return ServiceConfig.model_validate(raw)
    except ValidationError as e:
        raise StartupError(f"Config {config_path} is invalid: {e}") from e
