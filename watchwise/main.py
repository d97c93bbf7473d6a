import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException

from watchwise.deps import get_youtube_client
from watchwise.errors import (
    PipelineError,
    http_exception_handler,
    pipeline_exception_handler,
    request_validation_exception_handler,
)
from watchwise.observability import clear_context, get_logger, set_request_id, set_service, setup_logging
from watchwise.routers import dashboard, functions
from watchwise.settings import cors_origins_list, get_settings

settings = get_settings()
setup_logging(level=settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    if get_youtube_client.cache_info().currsize:
        await get_youtube_client().aclose()


app = FastAPI(title="Watchwise Backend", lifespan=lifespan)
app.add_exception_handler(PipelineError, pipeline_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Register routers
app.include_router(functions.router)
app.include_router(dashboard.router)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins_list(settings),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    start = time.perf_counter()
    request_id = request.headers.get("X-Request-Id") or str(uuid4())
    set_service("web")
    set_request_id(request_id)

    logger.info(
        "http.request",
        extra={
            "event": "http.request",
            "http_method": request.method,
            "path": request.url.path,
            "query": str(request.url.query) if request.url.query else None,
            "user_agent": request.headers.get("User-Agent"),
            "client_info": request.headers.get("X-Client-Info"),
        },
    )

    try:
        response = await call_next(request)
    except Exception:
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.exception(
            "http.exception",
            extra={
                "event": "http.exception",
                "http_method": request.method,
                "path": request.url.path,
                "duration_ms": duration_ms,
            },
        )
        clear_context()
        raise

    duration_ms = int((time.perf_counter() - start) * 1000)
    response.headers["X-Request-Id"] = request_id
    logger.info(
        "http.response",
        extra={
            "event": "http.response",
            "http_method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )
    clear_context()
    return response


@app.get("/health")
async def health() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT)
