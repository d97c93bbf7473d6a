from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from watchwise.errors import InsufficientData, StoreError
from watchwise.models import Insight
from watchwise.observability import get_logger
from watchwise.prompts import (
    INSIGHTS_SYSTEM_PROMPT,
    PATTERN_FALLBACK,
    RECOMMENDATION_FALLBACK,
    insights_user_message,
    late_night_description,
)
from watchwise.schemas import AggregateSnapshot
from watchwise.services.aggregation import DEFAULT_WINDOW_DAYS, build_snapshot
from watchwise.services.llm_client import LLMClient

logger = get_logger(__name__)

SLICE_CHARS = 500


def analytics_payload(snapshot: AggregateSnapshot) -> Dict[str, Any]:
    """The statistics shown to the generator and stored with the pattern insight."""
    return {
        "totalVideos": snapshot.video_count,
        "totalWatchTime": snapshot.total_watch_seconds // 60,
        "avgVideoLength": int(snapshot.average_video_seconds // 60),
        "todayWatchTime": snapshot.today_watch_seconds // 60,
        "lateNightViewingPercentage": snapshot.late_night_share,
        "contentLength": snapshot.length_class_shares.model_dump() if snapshot.length_class_shares else None,
        "dailyMinutes": {b.day: b.minutes for b in snapshot.daily_buckets},
        "topChannels": [c.model_dump() for c in snapshot.top_channels],
        "period": f"{(snapshot.window_end - snapshot.window_start).days} days",
    }


def slice_text(text: str, index: int, size: int = SLICE_CHARS) -> str:
    return (text or "")[index * size : (index + 1) * size].strip()


def build_insight_rows(user_id: str, snapshot: AggregateSnapshot, text: str) -> List[Insight]:
    """Pack generator text into exactly three records: pattern, time, recommendation.

    The time insight is derived from ``late_night_share`` alone; the other two
    take consecutive fixed-size slices of the generator text, with a fallback
    sentence when a slice comes out empty.
    """
    analytics = analytics_payload(snapshot)
    return [
        Insight(
            user_id=user_id,
            insight_type="pattern",
            title="Weekly Viewing Pattern",
            description=slice_text(text, 0) or PATTERN_FALLBACK,
            data=analytics,
        ),
        Insight(
            user_id=user_id,
            insight_type="time",
            title="Late-Night Viewing Analysis",
            description=late_night_description(snapshot.late_night_share),
            data={"lateNightPercentage": snapshot.late_night_share},
        ),
        Insight(
            user_id=user_id,
            insight_type="recommendation",
            title="Personalized Recommendations",
            description=slice_text(text, 1) or RECOMMENDATION_FALLBACK,
            data={"topChannels": analytics["topChannels"]},
        ),
    ]


async def generate_insights(
    db: Session,
    *,
    user_id: str,
    llm: LLMClient,
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> List[Insight]:
    llm.require_credentials()
    now = now or datetime.now(timezone.utc)
    snapshot = build_snapshot(db, user_id, now=now, tz_name=tz_name, window_days=window_days)
    if snapshot.is_empty:
        raise InsufficientData()

    text = await llm.complete(INSIGHTS_SYSTEM_PROMPT, insights_user_message(analytics_payload(snapshot)))
    rows = build_insight_rows(user_id, snapshot, text)
    try:
        db.add_all(rows)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("insights.store_failed", extra={"event": "insights.store_failed", "user_id": user_id})
        raise StoreError(f"Failed to store insights: {exc.__class__.__name__}") from exc
    logger.info(
        "insights.generated",
        extra={"event": "insights.generated", "user_id": user_id, "insights": len(rows), "text_len": len(text)},
    )
    return rows


def list_insights(db: Session, user_id: str, *, limit: int = 50) -> List[Insight]:
    return (
        db.query(Insight)
        .filter(Insight.user_id == user_id)
        .order_by(Insight.created_at.desc(), Insight.id.desc())
        .limit(limit)
        .all()
    )
