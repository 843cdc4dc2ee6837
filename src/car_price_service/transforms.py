"""
Feature transforms and model wrapper used on the /predict path.

The encoder, scaler and model are interchangeable: anything matching the
protocols below can be plugged into PricePipeline without touching the API.
"""

import logging
from typing import Any, Dict, List, Protocol

import numpy as np
import pandas as pd

from .errors import InternalError, PricingServiceError, StartupError, UnknownCategoryError
from .schemas import PredictRequest


logger = logging.getLogger(__name__)


class FeatureEncoder(Protocol):
    size: int

    def encode(self, company: str, model_name: str, fuel_type: str) -> np.ndarray:
        ...


class NumericScaler(Protocol):
    size: int

    def scale(self, year: int, kms_driven: int) -> np.ndarray:
        ...


class PriceModel(Protocol):
    input_dim: int

    def predict(self, vector: np.ndarray) -> float:
        ...


def _check_feature_names(artifact: Any, expected: List[str], label: str) -> None:
    # only artifacts fitted on a DataFrame remember their columns
    names = getattr(artifact, "feature_names_in_", None)
    if names is not None and list(names) != list(expected):
        raise StartupError(
            f"{label} was fitted on columns {list(names)}, expected {list(expected)}"
        )


# ---------- ENCODER ----------

class OneHotFeatureEncoder:
    """
    Wraps a fitted sklearn OneHotEncoder.
    Values outside the training vocabulary are rejected instead of zero-filled.
    """

    def __init__(self, encoder: Any, columns: List[str]):
        categories = getattr(encoder, "categories_", None)
        if categories is None or not hasattr(encoder, "transform"):
            raise StartupError("Encoder artifact is not a fitted one-hot encoder")
        if len(categories) != len(columns):
            raise StartupError(
                f"Encoder has {len(categories)} categorical inputs, expected {len(columns)}"
            )
        _check_feature_names(encoder, columns, "Encoder")

        self._encoder = encoder
        self._columns = list(columns)
        self._vocabulary: Dict[str, frozenset] = {
            col: frozenset(str(v) for v in cats) for col, cats in zip(columns, categories)
        }

        try:
            self.size = len(encoder.get_feature_names_out())
        except (AttributeError, ValueError) as e:
            raise StartupError(f"Cannot determine encoder output size: {e}") from e

    def vocabulary(self, column: str) -> frozenset:
        return self._vocabulary[column]

    def encode(self, company: str, model_name: str, fuel_type: str) -> np.ndarray:
        values = {"name": model_name, "company": company, "fuel_type": fuel_type}

        for col in self._columns:
            if values[col] not in self._vocabulary[col]:
                raise UnknownCategoryError(col, values[col])

        row = pd.DataFrame([[values[col] for col in self._columns]], columns=self._columns)
        encoded = self._encoder.transform(row)
        if hasattr(encoded, "toarray"):
            encoded = encoded.toarray()

        return np.asarray(encoded, dtype="float64").ravel()


# ---------- SCALER ----------

class StandardNumericScaler:
    """
    (x - mean) / std with statistics taken from a fitted sklearn StandardScaler.
    """

    size = 2

    def __init__(self, scaler: Any, columns: List[str]):
        _check_feature_names(scaler, columns, "Scaler")

        mean = getattr(scaler, "mean_", None)
        std = getattr(scaler, "scale_", None)
        if mean is None and std is None:
            raise StartupError("Scaler artifact is not a fitted standard scaler")

        if not getattr(scaler, "with_mean", True):
            mean = None

        mean = np.zeros(self.size) if mean is None else np.asarray(mean, dtype="float64")
        std = np.ones(self.size) if std is None else np.asarray(std, dtype="float64")

        if mean.shape != (self.size,) or std.shape != (self.size,):
            raise StartupError(f"Scaler statistics must have length {self.size}")
        if not np.all(np.isfinite(std)) or np.any(std == 0):
            raise StartupError(f"Scaler has a zero or non-finite standard deviation: {std.tolist()}")

        # statistics are stored in year, kms_driven order
        order = [list(columns).index(name) for name in ("year", "kms_driven")]
        self.mean = mean[order]
        self.std = std[order]

    def scale(self, year: int, kms_driven: int) -> np.ndarray:
        values = np.array([year, kms_driven], dtype="float64")
        return (values - self.mean) / self.std


# ---------- MODEL ----------

class SklearnPriceModel:
    def __init__(self, model: Any):
        if not hasattr(model, "predict"):
            raise StartupError("Model artifact has no predict method")

        input_dim = getattr(model, "n_features_in_", None)
        if input_dim is None and getattr(model, "coef_", None) is not None:
            input_dim = np.asarray(model.coef_).shape[-1]
        if input_dim is None:
            raise StartupError("Cannot determine model input dimensionality")

        self._model = model
        self.input_dim = int(input_dim)

    def predict(self, vector: np.ndarray) -> float:
        return float(np.ravel(self._model.predict(vector.reshape(1, -1)))[0])


# ---------- PIPELINE ----------

class PricePipeline:
    """
    encode + scale -> concatenate -> predict.

    The dimensionality check happens here, once, when the pipeline is built.
    """

    def __init__(self, encoder: FeatureEncoder, scaler: NumericScaler, model: PriceModel):
        expected = encoder.size + scaler.size
        if expected != model.input_dim:
            raise StartupError(
                f"Feature vector has {expected} values "
                f"({encoder.size} one-hot + {scaler.size} scaled) "
                f"but the model expects {model.input_dim}"
            )

        self.encoder = encoder
        self.scaler = scaler
        self.model = model
        self.vector_size = expected

        logger.info(
            "Pricing pipeline ready: %d one-hot + %d scaled features",
            encoder.size,
            scaler.size,
        )

    def build_vector(self, request: PredictRequest) -> np.ndarray:
        try:
            categorical = self.encoder.encode(request.company, request.name, request.fuel_type)
            numeric = self.scaler.scale(request.year, request.kms_driven)
            vector = np.concatenate([np.ravel(categorical), np.ravel(numeric)])
        except PricingServiceError:
            raise
        except Exception as e:
            raise InternalError(f"Feature encoding failed: {e}") from e

        if vector.shape != (self.vector_size,):
            raise InternalError(
                f"Encoded vector has shape {vector.shape}, expected ({self.vector_size},)"
            )
        return vector

    def estimate(self, request: PredictRequest) -> float:
        vector = self.build_vector(request)

        try:
            price = self.model.predict(vector)
        except Exception as e:
            raise InternalError(f"Model prediction failed: {e}") from e

        if not np.isfinite(price):
            raise InternalError(f"Model returned a non-finite price: {price}")
        return price
