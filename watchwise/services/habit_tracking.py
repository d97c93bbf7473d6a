from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from watchwise.errors import NotFound
from watchwise.models import Habit, HabitCompletion
from watchwise.schemas import HabitItem
from watchwise.services.aggregation import as_utc, safe_zone


@dataclass(frozen=True)
class Streak:
    current: int
    longest: int
    last_completed_on: Optional[date]


def list_today_habits(db: Session, user_id: str, *, today: date) -> List[HabitItem]:
    habits = (
        db.query(Habit)
        .filter(Habit.user_id == user_id, Habit.date == today, Habit.is_active.is_(True))
        .order_by(Habit.id.asc())
        .all()
    )
    done = _completed_habit_ids(db, user_id, [h.id for h in habits])
    return [
        HabitItem(
            id=h.id,
            title=h.title,
            description=h.description or "",
            priority=h.priority,
            category=h.category or "",
            date=h.date,
            is_active=bool(h.is_active),
            completed=h.id in done,
        )
        for h in habits
    ]


def _completed_habit_ids(db: Session, user_id: str, habit_ids: List[int]) -> Set[int]:
    if not habit_ids:
        return set()
    rows = (
        db.query(HabitCompletion.habit_id)
        .filter(HabitCompletion.user_id == user_id, HabitCompletion.habit_id.in_(habit_ids))
        .distinct()
        .all()
    )
    return {row[0] for row in rows}


def _owned_habit(db: Session, user_id: str, habit_id: int) -> Habit:
    habit = db.get(Habit, habit_id)
    if not habit or habit.user_id != user_id:
        raise NotFound("Habit not found")
    return habit


def mark_completed(db: Session, user_id: str, habit_id: int, *, now: Optional[datetime] = None) -> HabitCompletion:
    """Record a completion; a habit already completed keeps its single row."""
    _owned_habit(db, user_id, habit_id)
    existing = (
        db.query(HabitCompletion)
        .filter(HabitCompletion.habit_id == habit_id, HabitCompletion.user_id == user_id)
        .order_by(HabitCompletion.completed_at.asc())
        .first()
    )
    if existing:
        return existing
    completed_at = as_utc(now or datetime.now(timezone.utc)).replace(tzinfo=None)
    completion = HabitCompletion(habit_id=habit_id, user_id=user_id, completed_at=completed_at)
    db.add(completion)
    db.commit()
    db.refresh(completion)
    return completion


def unmark_completed(db: Session, user_id: str, habit_id: int) -> int:
    _owned_habit(db, user_id, habit_id)
    removed = (
        db.query(HabitCompletion)
        .filter(HabitCompletion.habit_id == habit_id, HabitCompletion.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return removed


def compute_streak(completed_at: Iterable[datetime], *, today: date, tz_name: Optional[str]) -> Streak:
    """Consecutive local calendar days with at least one completion.

    ``current`` counts back from today, or from yesterday when today has no
    completion yet (the run is not broken until the day is over).
    """
    zone = safe_zone(tz_name)
    days = sorted({as_utc(ts).astimezone(zone).date() for ts in completed_at})
    if not days:
        return Streak(current=0, longest=0, last_completed_on=None)

    longest = run = 1
    for prev, cur in zip(days, days[1:]):
        run = run + 1 if cur - prev == timedelta(days=1) else 1
        longest = max(longest, run)

    day_set = set(days)
    anchor = today if today in day_set else today - timedelta(days=1)
    current = 0
    while anchor in day_set:
        current += 1
        anchor -= timedelta(days=1)
    return Streak(current=current, longest=longest, last_completed_on=days[-1])


def user_streak(db: Session, user_id: str, *, today: date, tz_name: Optional[str]) -> Streak:
    rows = db.query(HabitCompletion.completed_at).filter(HabitCompletion.user_id == user_id).all()
    return compute_streak((row[0] for row in rows), today=today, tz_name=tz_name)
