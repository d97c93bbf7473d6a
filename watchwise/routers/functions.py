"""Pipeline entry points: history sync, insight generation, habit generation.

Every failure on these routes is reported as ``400 {"error": message}``,
including a missing or invalid session, so auth runs inside the handler.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from watchwise.deps import authenticate, get_db, get_llm_client, get_youtube_client, resolve_time_zone
from watchwise.errors import ErrorEnvelope, MissingCredential, PipelineError, error_response
from watchwise.observability import get_logger
from watchwise.schemas import HabitsGeneratedResponse, InsightsGeneratedResponse, SyncResponse
from watchwise.services.habit_synthesis import generate_habits
from watchwise.services.insight_synthesis import generate_insights
from watchwise.services.llm_client import LLMClient
from watchwise.services.watch_sync import sync_watch_history
from watchwise.services.youtube_client import YouTubeClient
from watchwise.settings import get_settings

router = APIRouter()
settings = get_settings()
logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

_ERROR_RESPONSES = {400: {"model": ErrorEnvelope}}


def _ok(payload: BaseModel) -> JSONResponse:
    return JSONResponse(status_code=200, content=payload.model_dump(by_alias=True), headers=CORS_HEADERS)


def _failed(operation: str, exc: Exception) -> JSONResponse:
    if isinstance(exc, PipelineError):
        message = exc.message
        logger.warning(
            f"{operation}.failed",
            extra={"event": f"{operation}.failed", "error_type": exc.__class__.__name__, "error": message},
        )
    else:
        message = str(exc) or exc.__class__.__name__
        logger.exception(f"{operation}.exception", extra={"event": f"{operation}.exception"})
    resp = error_response(message, status_code=400)
    resp.headers.update(CORS_HEADERS)
    return resp


@router.options("/sync", include_in_schema=False)
@router.options("/generate-insights", include_in_schema=False)
@router.options("/generate-habits", include_in_schema=False)
async def preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/sync", response_model=SyncResponse, responses=_ERROR_RESPONSES, tags=["pipeline"])
async def sync(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: Session = Depends(get_db),
    youtube: YouTubeClient = Depends(get_youtube_client),
):
    """Pull the caller's recent watch history and store new viewing events."""
    try:
        rec = authenticate(db, authorization)
        if not rec.provider_token:
            raise MissingCredential("No YouTube access token found. Please reconnect with Google.")
        result = await sync_watch_history(
            db,
            user_id=rec.app_user_id,
            access_token=rec.provider_token,
            youtube=youtube,
            max_results=settings.youtube_history_max_results,
        )
    except Exception as exc:
        return _failed("sync", exc)
    return _ok(SyncResponse(videos_processed=result.videos_processed))


@router.post(
    "/generate-insights",
    response_model=InsightsGeneratedResponse,
    responses=_ERROR_RESPONSES,
    tags=["pipeline"],
)
async def post_generate_insights(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: Session = Depends(get_db),
    llm: LLMClient = Depends(get_llm_client),
):
    try:
        rec = authenticate(db, authorization)
        rows = await generate_insights(
            db,
            user_id=rec.app_user_id,
            llm=llm,
            tz_name=resolve_time_zone(db, rec),
            window_days=settings.aggregate_window_days,
        )
    except Exception as exc:
        return _failed("insights", exc)
    return _ok(InsightsGeneratedResponse(insights=len(rows)))


@router.post(
    "/generate-habits",
    response_model=HabitsGeneratedResponse,
    responses=_ERROR_RESPONSES,
    tags=["pipeline"],
)
async def post_generate_habits(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: Session = Depends(get_db),
    llm: LLMClient = Depends(get_llm_client),
):
    try:
        rec = authenticate(db, authorization)
        rows = await generate_habits(
            db,
            user_id=rec.app_user_id,
            llm=llm,
            tz_name=resolve_time_zone(db, rec),
            window_days=settings.aggregate_window_days,
        )
    except Exception as exc:
        return _failed("habits", exc)
    return _ok(HabitsGeneratedResponse(habits=len(rows)))
