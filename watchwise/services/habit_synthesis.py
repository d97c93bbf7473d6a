import json
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from watchwise.errors import GeneratorTransportError, InsufficientData, MalformedUpstreamResponse, StoreError
from watchwise.models import Habit
from watchwise.observability import get_logger
from watchwise.prompts import DEFAULT_HABITS, HABITS_SYSTEM_PROMPT, habits_user_message
from watchwise.schemas import GeneratedHabit
from watchwise.services.aggregation import (
    DEFAULT_WINDOW_DAYS,
    compute_snapshot,
    load_window_records,
    local_today,
    short_form_percentage,
)
from watchwise.services.llm_client import LLMClient

logger = get_logger(__name__)

MAX_HABITS = 5


@dataclass(frozen=True)
class ParsedHabits:
    habits: List[GeneratedHabit]


@dataclass(frozen=True)
class DefaultHabits:
    habits: List[GeneratedHabit]
    reason: str


HabitBatch = Union[ParsedHabits, DefaultHabits]


def default_habits(reason: str) -> DefaultHabits:
    return DefaultHabits(habits=[GeneratedHabit(**h) for h in DEFAULT_HABITS], reason=reason)


def strip_code_fences(text: str) -> str:
    cleaned = (text or "").strip()
    if "```" not in cleaned:
        return cleaned
    match = re.search(r"```(?:json)?\s*(.*?)\s*```", cleaned, flags=re.IGNORECASE | re.DOTALL)
    if match:
        return (match.group(1) or "").strip()
    return cleaned.replace("```json", "").replace("```", "").strip()


def _decode(text: str) -> Any:
    cleaned = strip_code_fences(text)
    try:
        return json.loads(cleaned)
    except ValueError:
        pass
    # Chatty replies: take the first JSON array embedded in the text.
    start = cleaned.find("[")
    if start < 0:
        return None
    try:
        value, _end = json.JSONDecoder().raw_decode(cleaned[start:])
    except ValueError:
        return None
    return value


def parse_habits(text: Optional[str]) -> HabitBatch:
    """Decode generator output into habits; never raises.

    Items failing validation are dropped; when nothing valid remains the
    fixed default set is returned instead.
    """
    data = _decode(text or "")
    if isinstance(data, dict) and isinstance(data.get("habits"), list):
        data = data["habits"]
    if not isinstance(data, list):
        return default_habits("unparsable_response")

    habits: List[GeneratedHabit] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        try:
            habits.append(GeneratedHabit.model_validate(item))
        except ValidationError:
            continue
    if not habits:
        return default_habits("no_valid_habits")
    return ParsedHabits(habits=habits[:MAX_HABITS])


async def request_habits(llm: LLMClient, *, weekly_hours: int, short_form_pct: int) -> HabitBatch:
    try:
        text = await llm.complete(HABITS_SYSTEM_PROMPT, habits_user_message(weekly_hours, short_form_pct))
    except GeneratorTransportError:
        return default_habits("generator_unreachable")
    except MalformedUpstreamResponse:
        return default_habits("malformed_payload")
    return parse_habits(text)


def replace_daily_habits(db: Session, user_id: str, batch: HabitBatch, *, today: date) -> List[Habit]:
    """Deactivate habits dated before ``today`` and add the new batch, in one commit."""
    rows = [
        Habit(
            user_id=user_id,
            title=h.title,
            description=h.description,
            priority=h.priority,
            category=h.category,
            date=today,
            is_active=True,
        )
        for h in batch.habits
    ]
    try:
        (
            db.query(Habit)
            .filter(Habit.user_id == user_id, Habit.date < today, Habit.is_active.is_(True))
            .update({Habit.is_active: False}, synchronize_session=False)
        )
        db.add_all(rows)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("habits.store_failed", extra={"event": "habits.store_failed", "user_id": user_id})
        raise StoreError(f"Failed to store habits: {exc.__class__.__name__}") from exc
    for row in rows:
        db.refresh(row)
    return rows


async def generate_habits(
    db: Session,
    *,
    user_id: str,
    llm: LLMClient,
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> List[Habit]:
    llm.require_credentials()
    now = now or datetime.now(timezone.utc)
    records = load_window_records(db, user_id, now=now, window_days=window_days)
    if not records:
        raise InsufficientData()

    snapshot = compute_snapshot(records, now=now, tz_name=tz_name, window_days=window_days)
    batch = await request_habits(
        llm,
        weekly_hours=snapshot.total_watch_seconds // 3600,
        short_form_pct=short_form_percentage(records),
    )
    if isinstance(batch, DefaultHabits):
        logger.warning(
            "habits.defaults_used",
            extra={"event": "habits.defaults_used", "user_id": user_id, "reason": batch.reason},
        )

    rows = replace_daily_habits(db, user_id, batch, today=local_today(now, tz_name))
    logger.info(
        "habits.generated",
        extra={
            "event": "habits.generated",
            "user_id": user_id,
            "habits": len(rows),
            "source": "generator" if isinstance(batch, ParsedHabits) else "defaults",
        },
    )
    return rows
