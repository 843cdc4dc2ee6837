class PricingServiceError(Exception):
    """
    Base class for every error the service reports to a caller.
    status_code is the HTTP status the API layer answers with.
    """

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StartupError(PricingServiceError):
    """
    Dataset, artifacts or config are missing, corrupt or incompatible.
    Raised only while the service context is being built.
    """


class ValidationError(PricingServiceError):
    status_code = 400

    def __init__(self, field: str, reason: str):
        super().__init__(f"Invalid value for '{field}': {reason}")
        self.field = field
        self.reason = reason


class UnknownCategoryError(PricingServiceError):
    status_code = 422

    def __init__(self, field: str, value: str):
        super().__init__(f"Unknown value for '{field}': {value!r} was not seen during training")
        self.field = field
        self.value = value


class InternalError(PricingServiceError):
    """
    Unexpected failure inside encode/scale/predict.
    The message is logged but never sent to the caller.
    """

    public_message = "Internal server error"


class PredictionTimeoutError(InternalError):
    status_code = 504
    public_message = "Prediction timed out"


class ServiceNotReadyError(PricingServiceError):
    status_code = 503
