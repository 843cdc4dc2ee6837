import logging
import pickle
from pathlib import Path
from typing import Any

import joblib

from .config import ArtifactsConfig, FeaturesConfig, resolve_path
from .errors import StartupError
from .transforms import OneHotFeatureEncoder, PricePipeline, SklearnPriceModel, StandardNumericScaler


logger = logging.getLogger(__name__)


def load_artifact(path: Path, label: str) -> Any:
    path = resolve_path(Path(path))

    if not path.exists():
        raise StartupError(f"{label} artifact not found: {path}")

    try:
        artifact = joblib.load(path)
    except (pickle.UnpicklingError, EOFError, ValueError, ImportError, AttributeError) as e:
        raise StartupError(f"{label} artifact {path} could not be loaded: {e}") from e

    logger.info("Loaded %s artifact from %s (%s)", label, path, type(artifact).__name__)
    return artifact


def build_pipeline(encoder: Any, scaler: Any, model: Any, features: FeaturesConfig) -> PricePipeline:
    """
    Wrap fitted sklearn objects and check they fit together.
    """
    return PricePipeline(
        encoder=OneHotFeatureEncoder(encoder, features.categorical),
        scaler=StandardNumericScaler(scaler, features.numeric),
        model=SklearnPriceModel(model),
    )


def load_pipeline(paths: ArtifactsConfig, features: FeaturesConfig) -> PricePipeline:
    encoder = load_artifact(paths.encoder_path, "Encoder")
    scaler = load_artifact(paths.scaler_path, "Scaler")
    model = load_artifact(paths.model_path, "Model")

    return build_pipeline(encoder, scaler, model, features)
