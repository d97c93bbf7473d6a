"""Shared FastAPI dependencies: database session, auth and upstream clients."""
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from watchwise.db import get_db
from watchwise.models import AppSession
from watchwise.observability import bind_context
from watchwise.services.llm_client import LLMClient
from watchwise.services.session_service import SessionService, user_time_zone
from watchwise.services.youtube_client import YouTubeClient
from watchwise.settings import get_settings

settings = get_settings()
session_service = SessionService(ttl_days=settings.session_ttl_days)


@lru_cache(maxsize=1)
def get_youtube_client() -> YouTubeClient:
    return YouTubeClient(get_settings())


@lru_cache(maxsize=1)
def get_llm_client() -> LLMClient:
    return LLMClient(get_settings())


def authenticate(db: Session, authorization: Optional[str]) -> AppSession:
    rec = session_service.authenticate(db, authorization)
    bind_context(app_user_id=rec.app_user_id, session_id=rec.id)
    return rec


def require_session(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: Session = Depends(get_db),
) -> AppSession:
    return authenticate(db, authorization)


def resolve_time_zone(db: Session, rec: AppSession) -> str:
    return user_time_zone(db, rec.app_user_id, get_settings().default_time_zone)
