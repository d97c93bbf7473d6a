"""Shared fixtures: in-memory database, settings and mock upstream transports."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timezone  # noqa: E402
from typing import Any, Callable, Dict, List, Optional  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import watchwise.models  # noqa: E402,F401
from watchwise.db import Base  # noqa: E402
from watchwise.models import WatchRecord  # noqa: E402
from watchwise.services.llm_client import LLMClient  # noqa: E402
from watchwise.services.youtube_client import YouTubeClient  # noqa: E402
from watchwise.settings import Settings  # noqa: E402

# A Monday.
NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite://",
        YOUTUBE_API_KEY="yt-test-key",
        YOUTUBE_API_BASE_URL="https://youtube.test/v3",
        LLM_API_KEY="llm-test-key",
        LLM_BASE_URL="https://llm.test/v1",
        LLM_MODEL="test-model",
    )


@pytest.fixture
def youtube_factory(settings):
    def _make(handler: Handler, *, overrides: Optional[Dict[str, Any]] = None) -> YouTubeClient:
        cfg = settings.model_copy(update=overrides or {})
        return YouTubeClient(cfg, transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def llm_factory(settings):
    def _make(handler: Handler, *, overrides: Optional[Dict[str, Any]] = None) -> LLMClient:
        cfg = settings.model_copy(update=overrides or {})
        return LLMClient(cfg, transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def chat_reply():
    """Build an OpenAI-style chat-completions response carrying ``content``."""

    def _reply(content: Any, status_code: int = 200) -> httpx.Response:
        if status_code != 200:
            return httpx.Response(status_code, json={"error": {"message": "upstream said no"}})
        return httpx.Response(
            200,
            json={
                "id": "chatcmpl-test",
                "model": "test-model",
                "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
                "usage": {"prompt_tokens": 10, "completion_tokens": 20},
            },
        )

    return _reply


@pytest.fixture
def add_records(db):
    """Insert watch records; each row is (video_id, duration_seconds, watched_at[, channel])."""

    def _add(user_id: str, rows_in: List[tuple]) -> List[WatchRecord]:
        rows = []
        for row in rows_in:
            video_id, seconds, watched_at = row[:3]
            channel = row[3] if len(row) > 3 else "Some Channel"
            rows.append(
                WatchRecord(
                    user_id=user_id,
                    video_id=video_id,
                    title=f"Video {video_id}",
                    channel=channel,
                    duration_seconds=seconds,
                    watched_at=watched_at.astimezone(timezone.utc).replace(tzinfo=None),
                )
            )
        db.add_all(rows)
        db.commit()
        return rows

    return _add
