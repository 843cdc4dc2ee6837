from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List


class PredictRequest(BaseModel):
    """
    One car as the /predict endpoint accepts it.
    Field names match the columns of the reference dataset.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    company: str
    name: str                   # model name, e.g. "Maruti Swift"
    year: int
    fuel_type: str
    kms_driven: int = Field(..., ge=0)


class PredictResponse(BaseModel):
    estimated_price: float


class OptionsResponse(BaseModel):
    """
    Values the client form can offer in its dropdowns.
    """
    companies: List[str]
    models_by_company: Dict[str, List[str]] = Field(..., serialization_alias="modelsByCompany")
    years: List[int]
    fuel_types: List[str] = Field(..., serialization_alias="fuelTypes")


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
    artifacts_loaded: bool
