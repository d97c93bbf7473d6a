import math
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from watchwise.models import WatchRecord
from watchwise.schemas import AggregateSnapshot, ChannelCount, DailyBucket, LengthClassShares

DEFAULT_WINDOW_DAYS = 7
TOP_CHANNELS_LIMIT = 5
SHORT_MAX_SECONDS = 60  # < 60 short
LONG_MIN_SECONDS = 600  # >= 600 long, otherwise medium
LATE_NIGHT_START_HOUR = 23
LATE_NIGHT_END_HOUR = 6
WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def safe_zone(tz_name: Optional[str]) -> ZoneInfo:
    if not tz_name:
        return ZoneInfo("UTC")
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def as_utc(dt: datetime) -> datetime:
    # Stored timestamps are naive UTC.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def round_half_away(value: float) -> int:
    """Round to nearest int, .5 away from zero (built-in round() is banker's)."""
    if value < 0:
        return -int(math.floor(-value + 0.5))
    return int(math.floor(value + 0.5))


def percent(part: float, whole: float) -> int:
    if whole <= 0:
        return 0
    return round_half_away(part / whole * 100.0)


def length_class(duration_seconds: int) -> str:
    if duration_seconds < SHORT_MAX_SECONDS:
        return "short"
    if duration_seconds < LONG_MIN_SECONDS:
        return "medium"
    return "long"


def is_late_night(local_dt: datetime) -> bool:
    return local_dt.hour >= LATE_NIGHT_START_HOUR or local_dt.hour < LATE_NIGHT_END_HOUR


def local_today(now: datetime, tz_name: Optional[str]) -> date:
    return as_utc(now).astimezone(safe_zone(tz_name)).date()


def _duration(record: WatchRecord) -> int:
    return max(0, int(record.duration_seconds or 0))


def _length_class_shares(records: Sequence[WatchRecord]) -> Optional[LengthClassShares]:
    sums = {"short": 0, "medium": 0, "long": 0}
    for record in records:
        sums[length_class(_duration(record))] += _duration(record)
    total = sum(sums.values())
    if total <= 0:
        return None
    return LengthClassShares(**{name: percent(seconds, total) for name, seconds in sums.items()})


def _top_channels(records: Sequence[WatchRecord], limit: int = TOP_CHANNELS_LIMIT) -> List[ChannelCount]:
    counts: Dict[str, int] = {}
    for record in records:
        name = (record.channel or "").strip()
        if not name:
            # Blank channel names are not ranked.
            continue
        counts[name] = counts.get(name, 0) + 1
    # sorted() is stable and dicts keep first-seen order, so ties stay in that order.
    ranked = sorted(counts.items(), key=lambda kv: -kv[1])
    return [ChannelCount(channel=name, count=count) for name, count in ranked[:limit]]


def _daily_buckets(local_times: Sequence[datetime], durations: Sequence[int], today: date) -> List[DailyBucket]:
    by_weekday = [0] * 7
    for local_dt, seconds in zip(local_times, durations):
        by_weekday[local_dt.weekday()] += seconds
    buckets: List[DailyBucket] = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        seconds = by_weekday[day.weekday()]
        buckets.append(
            DailyBucket(day=WEEKDAY_LABELS[day.weekday()], date=day, seconds=seconds, minutes=round_half_away(seconds / 60))
        )
    return buckets


def compute_snapshot(
    records: Iterable[WatchRecord],
    *,
    now: datetime,
    tz_name: Optional[str],
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> AggregateSnapshot:
    """Aggregate one user's records over the trailing window ending at ``now``.

    Pure: no clock or environment access. Records outside
    ``[now - window_days, now]`` are ignored; an empty window gives a zeroed
    snapshot (``length_class_shares`` is ``None``, never a division by zero).
    """
    zone = safe_zone(tz_name)
    window_end = as_utc(now)
    window_start = window_end - timedelta(days=window_days)
    today = window_end.astimezone(zone).date()

    in_window = [r for r in records if window_start <= as_utc(r.watched_at) <= window_end]
    local_times = [as_utc(r.watched_at).astimezone(zone) for r in in_window]
    durations = [_duration(r) for r in in_window]

    count = len(in_window)
    total = sum(durations)
    today_total = sum(s for local_dt, s in zip(local_times, durations) if local_dt.date() == today)
    late_night = sum(1 for local_dt in local_times if is_late_night(local_dt))

    return AggregateSnapshot(
        window_start=window_start,
        window_end=window_end,
        time_zone=zone.key,
        total_watch_seconds=total,
        today_watch_seconds=today_total,
        average_video_seconds=(total / count) if count else 0.0,
        video_count=count,
        daily_buckets=_daily_buckets(local_times, durations, today),
        length_class_shares=_length_class_shares(in_window),
        late_night_share=percent(late_night, count),
        top_channels=_top_channels(in_window),
    )


def load_window_records(
    db: Session,
    user_id: str,
    *,
    now: datetime,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> List[WatchRecord]:
    window_end = as_utc(now).replace(tzinfo=None)
    window_start = window_end - timedelta(days=window_days)
    return (
        db.query(WatchRecord)
        .filter(
            WatchRecord.user_id == user_id,
            WatchRecord.watched_at >= window_start,
            WatchRecord.watched_at <= window_end,
        )
        .order_by(WatchRecord.watched_at.asc(), WatchRecord.id.asc())
        .all()
    )


def build_snapshot(
    db: Session,
    user_id: str,
    *,
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> AggregateSnapshot:
    now = now or datetime.now(timezone.utc)
    records = load_window_records(db, user_id, now=now, window_days=window_days)
    return compute_snapshot(records, now=now, tz_name=tz_name, window_days=window_days)


def short_form_percentage(records: Iterable[WatchRecord]) -> int:
    """Share of records (by count, not seconds) shorter than a minute."""
    rows = list(records)
    shorts = sum(1 for r in rows if _duration(r) < SHORT_MAX_SECONDS)
    return percent(shorts, len(rows))
