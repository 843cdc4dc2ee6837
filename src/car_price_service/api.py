import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import ServiceConfig
from .context import ServiceContext, build_context
from .errors import (
    InternalError,
    PredictionTimeoutError,
    PricingServiceError,
    ServiceNotReadyError,
    ValidationError,
)
from .schemas import ErrorResponse, HealthResponse, OptionsResponse, PredictRequest, PredictResponse


logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing or malformed field"},
    422: {"model": ErrorResponse, "description": "Value not seen during training"},
    500: {"model": ErrorResponse, "description": "Internal error"},
    503: {"model": ErrorResponse, "description": "Artifacts not loaded yet"},
    504: {"model": ErrorResponse, "description": "Prediction timed out"},
}


# ---------- HELPERS ----------

def get_context(request: Request) -> ServiceContext:
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise ServiceNotReadyError("Service is starting, artifacts are not loaded yet")
    return context


def validation_error_from(exc: RequestValidationError) -> ValidationError:
    """
    Collapse pydantic's error list into one ValidationError naming every bad field.
    """
    errors = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        errors.setdefault(".".join(loc) or "body", err.get("msg", "invalid value"))

    if len(errors) == 1:
        (field, reason), = errors.items()
        return ValidationError(field, reason)
    return ValidationError(
        ", ".join(errors),
        "; ".join(f"{field}: {reason}" for field, reason in errors.items()),
    )


def to_options_response(context: ServiceContext) -> OptionsResponse:
    catalog = context.catalog
    return OptionsResponse(
        companies=list(catalog.companies),
        models_by_company={
            company: list(models) for company, models in catalog.models_by_company.items()
        },
        years=list(catalog.years),
        fuel_types=list(catalog.fuel_types),
    )


# ---------- APPLICATION ----------

def create_app(
    context: Optional[ServiceContext] = None,
    config: Optional[ServiceConfig] = None,
) -> FastAPI:
    """
    Build the FastAPI app around a ServiceContext.

    Pass a ready context (tests), or a config and let the lifespan build
    the context before the first request is served.
    """
    if context is not None:
        config = context.config
    if config is None:
        raise ValueError("create_app needs either a context or a config")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.context is None:
            # StartupError propagates and aborts the server start
            app.state.context = build_context(config)
            logger.info("Service context loaded, accepting traffic")
        yield

    app = FastAPI(
        title="Used Car Price API",
        description="Estimates the resale price of a used car",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.service.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    register_routes(app)
    return app


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        error = validation_error_from(exc)
        logger.info("Rejected %s %s: %s", request.method, request.url.path, error.message)
        return JSONResponse(status_code=error.status_code, content={"error": error.message})

    @app.exception_handler(PricingServiceError)
    async def pricing_error_handler(request: Request, exc: PricingServiceError):
        if isinstance(exc, InternalError):
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
            message = exc.public_message
        else:
            logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.message)
            message = exc.message
        return JSONResponse(status_code=exc.status_code, content={"error": message})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unexpected error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": InternalError.public_message})


def register_routes(app: FastAPI) -> None:
    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request) -> HealthResponse:
        """
        Liveness check; artifacts_loaded turns true once startup finished.
        """
        loaded = getattr(request.app.state, "context", None) is not None
        return HealthResponse(status="ok" if loaded else "starting", artifacts_loaded=loaded)

    @app.get("/options", response_model=OptionsResponse, responses={500: ERROR_RESPONSES[500]})
    async def options(context: ServiceContext = Depends(get_context)) -> OptionsResponse:
        """
        Dropdown values derived from the reference dataset.
        """
        try:
            return to_options_response(context)
        except Exception as e:
            raise InternalError(f"Could not read the dropdown catalog: {e}") from e

    @app.post("/predict", response_model=PredictResponse, responses=ERROR_RESPONSES)
    async def predict(
        body: PredictRequest,
        context: ServiceContext = Depends(get_context),
    ) -> PredictResponse:
        """
        Estimated price for one car, rounded to 2 decimal places.
        """
        timeout = context.config.service.predict_timeout_seconds

        try:
            loop = asyncio.get_running_loop()
            price = await asyncio.wait_for(
                loop.run_in_executor(None, context.pipeline.estimate, body),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise PredictionTimeoutError(f"Prediction exceeded {timeout}s") from e

        estimated_price = round(price, 2)
        logger.debug("Predicted %.2f for %s", estimated_price, body.model_dump())
        return PredictResponse(estimated_price=estimated_price)
