import joblib
import numpy as np
import pandas as pd
import pytest
import yaml
from fastapi.testclient import TestClient
from sklearn.linear_model import LinearRegression
from sklearn.preprocessing import OneHotEncoder, StandardScaler

from car_price_service.api import create_app
from car_price_service.artifacts import build_pipeline
from car_price_service.config import FeaturesConfig, ServiceConfig
from car_price_service.context import ServiceContext, load_context
from car_price_service.dataset import build_catalog, records_from_frame


CATEGORICAL = ["name", "company", "fuel_type"]
NUMERIC = ["year", "kms_driven"]

LISTINGS = [
    # name, company, year, kms_driven, fuel_type, Price
    ("Swift", "Maruti", 2015, 40000, "Petrol", 350000),
    ("Baleno", "Maruti", 2018, 20000, "Petrol", 550000),
    ("City", "Honda", 2016, 35000, "Diesel", 600000),
    ("Amaze", "Honda", 2019, 15000, "Petrol", 650000),
    ("i20", "Hyundai", 2017, 30000, "Diesel", 480000),
    ("Swift", "Maruti", 2019, 10000, "Diesel", 520000),
]

VALID_REQUEST = {
    "company": "Maruti",
    "name": "Swift",
    "year": 2017,
    "fuel_type": "Petrol",
    "kms_driven": 25000,
}


@pytest.fixture
def listings_frame() -> pd.DataFrame:
    return pd.DataFrame(
        LISTINGS, columns=["name", "company", "year", "kms_driven", "fuel_type", "Price"]
    )


@pytest.fixture
def fitted_artifacts(listings_frame):
    encoder = OneHotEncoder(handle_unknown="ignore")
    encoder.fit(listings_frame[CATEGORICAL])

    scaler = StandardScaler()
    scaler.fit(listings_frame[NUMERIC])

    X = np.hstack(
        (
            encoder.transform(listings_frame[CATEGORICAL]).toarray(),
            scaler.transform(listings_frame[NUMERIC]),
        )
    )
    model = LinearRegression()
    model.fit(X, listings_frame["Price"])

    return encoder, scaler, model


@pytest.fixture
def pipeline(fitted_artifacts):
    encoder, scaler, model = fitted_artifacts
    return build_pipeline(encoder, scaler, model, FeaturesConfig())


def make_config(tmp_path, **service) -> ServiceConfig:
    return ServiceConfig.model_validate(
        {
            "data": {"path": str(tmp_path / "listings.csv")},
            "artifacts": {
                "encoder_path": str(tmp_path / "OneHotEncoder.pkl"),
                "scaler_path": str(tmp_path / "StandardScaler.pkl"),
                "model_path": str(tmp_path / "LinearRegressionModel.pkl"),
            },
            "service": service,
        }
    )


@pytest.fixture
def config_path(tmp_path, listings_frame, fitted_artifacts):
    """
    A complete on-disk setup: CSV, three joblib artifacts and the YAML config.
    """
    encoder, scaler, model = fitted_artifacts
    listings_frame.to_csv(tmp_path / "listings.csv", index=False)
    joblib.dump(encoder, tmp_path / "OneHotEncoder.pkl")
    joblib.dump(scaler, tmp_path / "StandardScaler.pkl")
    joblib.dump(model, tmp_path / "LinearRegressionModel.pkl")

    config = make_config(tmp_path).model_dump(mode="json")
    path = tmp_path / "config_infer.yaml"
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f)
    return path


@pytest.fixture
def context(config_path) -> ServiceContext:
    return load_context(config_path)


@pytest.fixture
def client(context) -> TestClient:
    return TestClient(create_app(context))


def make_context(tmp_path, pipeline, rows=LISTINGS, **service) -> ServiceContext:
    frame = pd.DataFrame(
        rows, columns=["name", "company", "year", "kms_driven", "fuel_type", "Price"]
    )
    return ServiceContext(
        config=make_config(tmp_path, **service),
        catalog=build_catalog(records_from_frame(frame)),
        pipeline=pipeline,
    )
