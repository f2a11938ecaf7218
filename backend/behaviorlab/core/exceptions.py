from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse


class BehaviorLabError(Exception):
    """Base exception for BehaviorLab."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(BehaviorLabError):
    def __init__(self, resource: str, resource_id: str) -> None:
        super().__init__(
            message=f"{resource} with id '{resource_id}' not found",
            status_code=404,
        )


class ValidationError(BehaviorLabError):
    def __init__(self, message: str) -> None:
        super().__init__(message=message, status_code=422)


class ConfigurationError(BehaviorLabError):
    """Invalid agent URL or malformed agent graph. Raised before any work starts."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, status_code=422)


class GenerationError(BehaviorLabError):
    """The generative service returned no usable rubric or personas."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, status_code=502)


class AgentGatewayError(BehaviorLabError):
    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message=message, status_code=502)


class EvaluationError(BehaviorLabError):
    def __init__(self, message: str) -> None:
        super().__init__(message=message, status_code=500)


class SimulationError(BehaviorLabError):
    """Failure inside one persona's simulate-then-score pipeline."""

    def __init__(
        self,
        message: str,
        persona_id: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.persona_id = persona_id
        self.cause = cause
        super().__init__(message=message, status_code=500)


class TrackingError(BehaviorLabError):
    """Failure of an optional tracking or insight call. Never fatal."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, status_code=500)


async def behaviorlab_error_handler(request: Request, exc: BehaviorLabError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "type": type(exc).__name__},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "type": "HTTPException"},
    )
