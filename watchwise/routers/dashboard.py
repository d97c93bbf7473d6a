"""Dashboard reads and habit completion toggles for the signed-in user."""
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from watchwise.deps import get_db, require_session, resolve_time_zone
from watchwise.errors import ErrorEnvelope
from watchwise.models import AppSession
from watchwise.observability import get_logger
from watchwise.schemas import AggregateSnapshot, CompletionResponse, HabitItem, InsightItem, StreakResponse
from watchwise.services.aggregation import build_snapshot, local_today
from watchwise.services.habit_tracking import list_today_habits, mark_completed, unmark_completed, user_streak
from watchwise.services.insight_synthesis import list_insights
from watchwise.settings import get_settings

router = APIRouter(tags=["dashboard"], responses={401: {"model": ErrorEnvelope}})
settings = get_settings()
logger = get_logger(__name__)


@router.get("/stats", response_model=AggregateSnapshot)
async def get_stats(
    rec: AppSession = Depends(require_session),
    db: Session = Depends(get_db),
) -> AggregateSnapshot:
    return build_snapshot(
        db,
        rec.app_user_id,
        tz_name=resolve_time_zone(db, rec),
        window_days=settings.aggregate_window_days,
    )


@router.get("/insights", response_model=List[InsightItem])
async def get_insights(
    limit: int = Query(50, ge=1, le=200),
    rec: AppSession = Depends(require_session),
    db: Session = Depends(get_db),
) -> List[InsightItem]:
    return [InsightItem.model_validate(row) for row in list_insights(db, rec.app_user_id, limit=limit)]


@router.get("/habits", response_model=List[HabitItem])
async def get_habits(
    rec: AppSession = Depends(require_session),
    db: Session = Depends(get_db),
) -> List[HabitItem]:
    """Today's active habits, in the user's local calendar."""
    today = local_today(datetime.now(timezone.utc), resolve_time_zone(db, rec))
    return list_today_habits(db, rec.app_user_id, today=today)


@router.get("/habits/streak", response_model=StreakResponse)
async def get_streak(
    rec: AppSession = Depends(require_session),
    db: Session = Depends(get_db),
) -> StreakResponse:
    tz_name = resolve_time_zone(db, rec)
    streak = user_streak(db, rec.app_user_id, today=local_today(datetime.now(timezone.utc), tz_name), tz_name=tz_name)
    return StreakResponse(current=streak.current, longest=streak.longest, last_completed_on=streak.last_completed_on)


@router.post(
    "/habits/{habit_id}/completion",
    response_model=CompletionResponse,
    responses={404: {"model": ErrorEnvelope}},
)
async def complete_habit(
    habit_id: int,
    rec: AppSession = Depends(require_session),
    db: Session = Depends(get_db),
) -> CompletionResponse:
    mark_completed(db, rec.app_user_id, habit_id)
    logger.info("habit.completed", extra={"event": "habit.completed", "habit_id": habit_id})
    return CompletionResponse(habit_id=habit_id, completed=True)


@router.delete(
    "/habits/{habit_id}/completion",
    response_model=CompletionResponse,
    responses={404: {"model": ErrorEnvelope}},
)
async def uncomplete_habit(
    habit_id: int,
    rec: AppSession = Depends(require_session),
    db: Session = Depends(get_db),
) -> CompletionResponse:
    removed = unmark_completed(db, rec.app_user_id, habit_id)
    logger.info("habit.uncompleted", extra={"event": "habit.uncompleted", "habit_id": habit_id, "removed": removed})
    return CompletionResponse(habit_id=habit_id, completed=False)
