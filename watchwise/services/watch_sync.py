from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import insert as sa_insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from watchwise.errors import StoreError
from watchwise.models import WatchRecord
from watchwise.observability import get_logger
from watchwise.services.duration import parse_duration
from watchwise.services.youtube_client import YouTubeClient

logger = get_logger(__name__)

RecordKey = Tuple[str, str, datetime]


@dataclass(frozen=True)
class SyncResult:
    videos_processed: int
    records_inserted: int
    duplicates_skipped: int
    items_failed: int


def _dig(item: Any, *path: str) -> Any:
    cur = item
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def history_video_id(item: Dict[str, Any]) -> Optional[str]:
    """Video id of a playlistItems entry; either nesting may be missing."""
    vid = _dig(item, "snippet", "resourceId", "videoId") or _dig(item, "contentDetails", "videoId")
    vid = _text(vid)
    return vid or None


def ingestion_stamp(now: Optional[datetime] = None) -> datetime:
    """Naive UTC, truncated to whole seconds; the stored `watched_at` proxy."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=0)


def normalize_items(
    user_id: str,
    history_items: Iterable[Dict[str, Any]],
    detail_items: Iterable[Dict[str, Any]],
    *,
    watched_at: datetime,
) -> Tuple[List[Dict[str, Any]], int]:
    """Map raw API items to canonical record rows.

    Returns ``(rows, failed)`` where ``failed`` counts history items that had
    no usable video id. Details win over the history snippet field by field.
    """
    details: Dict[str, Dict[str, Any]] = {}
    for item in detail_items:
        vid = _text(item.get("id")) if isinstance(item, dict) else ""
        if vid:
            details.setdefault(vid, item)

    rows: List[Dict[str, Any]] = []
    failed = 0
    for item in history_items:
        vid = history_video_id(item) if isinstance(item, dict) else None
        if not vid:
            failed += 1
            logger.warning("sync.item_missing_video_id", extra={"event": "sync.item_missing_video_id", "user_id": user_id})
            continue
        detail = details.get(vid, {})
        snippet = _dig(detail, "snippet") or _dig(item, "snippet") or {}
        category = _text(_dig(detail, "snippet", "categoryId"))
        rows.append(
            {
                "user_id": user_id,
                "video_id": vid,
                "title": _text(snippet.get("title")),
                "channel": _text(snippet.get("channelTitle") or snippet.get("videoOwnerChannelTitle")),
                "duration_seconds": parse_duration(_dig(detail, "contentDetails", "duration")),
                "category_id": category or None,
                "watched_at": watched_at,
            }
        )
    return rows, failed


def _record_key(row: Dict[str, Any]) -> RecordKey:
    return row["user_id"], row["video_id"], row["watched_at"]


def collapse_duplicates(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """First occurrence wins, order preserved."""
    seen: Dict[RecordKey, Dict[str, Any]] = {}
    for row in rows:
        seen.setdefault(_record_key(row), row)
    return list(seen.values())


def _insert_ignore(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(WatchRecord).on_conflict_do_nothing(
            index_elements=["user_id", "video_id", "watched_at"]
        )
    if dialect == "sqlite":
        return sqlite.insert(WatchRecord).on_conflict_do_nothing(
            index_elements=["user_id", "video_id", "watched_at"]
        )
    return None


def upsert_watch_records(db: Session, rows: List[Dict[str, Any]]) -> int:
    """Insert rows, silently skipping ones whose key already exists.

    Commits once; on store failure rolls back and raises ``StoreError`` so
    nothing from the batch is persisted. Returns the number of new rows.
    """
    unique_rows = collapse_duplicates(rows)
    if not unique_rows:
        return 0
    try:
        stmt = _insert_ignore(db)
        if stmt is not None:
            # RETURNING yields only the rows that were actually inserted.
            inserted = len(db.execute(stmt.returning(WatchRecord.id), unique_rows).all())
        else:
            inserted = _insert_missing(db, unique_rows)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("sync.store_failed", extra={"event": "sync.store_failed", "rows": len(unique_rows)})
        raise StoreError(f"Failed to store watch history: {exc.__class__.__name__}") from exc
    return inserted


def _insert_missing(db: Session, rows: List[Dict[str, Any]]) -> int:
    # Dialects without ON CONFLICT: look up existing keys, insert the rest.
    user_ids = {r["user_id"] for r in rows}
    stamps = {r["watched_at"] for r in rows}
    existing = {
        (uid, vid, ts)
        for uid, vid, ts in db.query(WatchRecord.user_id, WatchRecord.video_id, WatchRecord.watched_at)
        .filter(WatchRecord.user_id.in_(user_ids), WatchRecord.watched_at.in_(stamps))
        .all()
    }
    missing = [r for r in rows if _record_key(r) not in existing]
    if missing:
        db.execute(sa_insert(WatchRecord), missing)
    return len(missing)


async def sync_watch_history(
    db: Session,
    *,
    user_id: str,
    access_token: str,
    youtube: YouTubeClient,
    now: Optional[datetime] = None,
    max_results: Optional[int] = None,
) -> SyncResult:
    history = await youtube.fetch_history(access_token, max_results=max_results)
    video_ids: List[str] = []
    for item in history:
        vid = history_video_id(item)
        if vid and vid not in video_ids:
            video_ids.append(vid)
    details = await youtube.fetch_video_details(video_ids) if video_ids else []

    rows, failed = normalize_items(user_id, history, details, watched_at=ingestion_stamp(now))
    inserted = upsert_watch_records(db, rows)
    result = SyncResult(
        videos_processed=len(history),
        records_inserted=inserted,
        duplicates_skipped=len(rows) - inserted,
        items_failed=failed,
    )
    logger.info(
        "sync.completed",
        extra={
            "event": "sync.completed",
            "user_id": user_id,
            "videos_processed": result.videos_processed,
            "records_inserted": result.records_inserted,
            "duplicates_skipped": result.duplicates_skipped,
            "items_failed": result.items_failed,
        },
    )
    return result
