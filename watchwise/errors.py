from typing import Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class PipelineError(Exception):
    """Base for failures surfaced to the caller as an error envelope."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unauthorized(PipelineError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class MissingCredential(PipelineError):
    """A collaborator credential (API key, OAuth token) is not configured."""


class UpstreamUnavailable(PipelineError):
    """The video platform or the text generator failed or answered non-2xx."""

    def __init__(self, message: str, *, upstream: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.upstream = upstream
        self.status = status


class GeneratorTransportError(UpstreamUnavailable):
    """The text generator could not be reached at all (connection, timeout)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, upstream="llm")


class InsufficientData(PipelineError):
    def __init__(self, message: str = "No watch history found. Please sync your YouTube data first.") -> None:
        super().__init__(message)


class MalformedUpstreamResponse(PipelineError):
    pass


class NotFound(PipelineError):
    status_code = 404


class StoreError(PipelineError):
    """The record store rejected a write."""


class ErrorEnvelope(BaseModel):
    error: str


def error_response(error: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorEnvelope(error=error).model_dump())


async def pipeline_exception_handler(request: Request, exc: PipelineError) -> JSONResponse:
    return error_response(exc.message, status_code=exc.status_code)


async def http_exception_handler(request: Request, exc):  # type: ignore[override]
    # Fallback handler to normalize FastAPI HTTPException.
    detail = getattr(exc, "detail", None)
    error = detail if isinstance(detail, str) else "error"
    return error_response(error, status_code=getattr(exc, "status_code", 400))


async def request_validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(str(exc), status_code=422)
