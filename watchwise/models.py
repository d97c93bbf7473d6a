from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, JSON, String, Text, UniqueConstraint

from .db import Base


class AppUser(Base):
    __tablename__ = "app_users"
    app_user_id = Column(String, primary_key=True, index=True)
    time_zone = Column(String, nullable=True)  # IANA name; None means DEFAULT_TIME_ZONE
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AppSession(Base):
    __tablename__ = "app_sessions"
    id = Column(String, primary_key=True)
    app_user_id = Column(String, index=True, nullable=False)
    token_hash = Column(String, index=True, nullable=False)
    provider_token = Column(Text, nullable=True)  # YouTube OAuth access token for history sync
    issued_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)


class WatchRecord(Base):
    """One observed viewing event. Rows are never mutated after insert."""
    __tablename__ = "watch_records"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    video_id = Column(String, nullable=False)
    title = Column(Text, nullable=False, default="")
    channel = Column(String, nullable=False, default="")
    duration_seconds = Column(Integer, nullable=False, default=0)
    category_id = Column(String, nullable=True)
    watched_at = Column(DateTime, nullable=False)  # naive UTC, whole seconds
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "video_id", "watched_at", name="uq_watch_records_user_video_watched"),
        Index("ix_watch_records_user_watched_at", "user_id", "watched_at"),
    )


class Habit(Base):
    __tablename__ = "habits"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    priority = Column(String, nullable=False, default="medium")  # low|medium|high
    category = Column(String, nullable=False, default="")
    date = Column(Date, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (Index("ix_habits_user_date", "user_id", "date"),)


class HabitCompletion(Base):
    __tablename__ = "habit_completions"
    id = Column(Integer, primary_key=True, autoincrement=True)
    habit_id = Column(Integer, ForeignKey("habits.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class Insight(Base):
    """Generated explanation; immutable once created."""
    __tablename__ = "insights"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    insight_type = Column(String, nullable=False)  # pattern|time|recommendation|other
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
