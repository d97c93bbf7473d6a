from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


InsightType = Literal["pattern", "time", "recommendation", "other"]
Priority = Literal["low", "medium", "high"]


# --- Aggregation -----------------------------------------------------------

class DailyBucket(BaseModel):
    day: str  # Mon..Sun
    date: date
    seconds: int
    minutes: int


class LengthClassShares(BaseModel):
    short: int
    medium: int
    long: int


class ChannelCount(BaseModel):
    channel: str
    count: int


class AggregateSnapshot(BaseModel):
    window_start: datetime
    window_end: datetime
    time_zone: str
    total_watch_seconds: int = 0
    today_watch_seconds: int = 0
    average_video_seconds: float = 0.0
    video_count: int = 0
    daily_buckets: List[DailyBucket] = Field(default_factory=list)
    length_class_shares: Optional[LengthClassShares] = None
    late_night_share: int = 0
    top_channels: List[ChannelCount] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.video_count == 0


# --- Generator output --------------------------------------------------------

class GeneratedHabit(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    title: str = Field(..., min_length=1)
    priority: Priority
    category: str = ""
    description: str = ""

    @field_validator("priority", mode="before")
    @classmethod
    def _lower_priority(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


# --- Responses ---------------------------------------------------------------

class SyncResponse(BaseModel):
    success: bool = True
    videos_processed: int = Field(..., serialization_alias="videosProcessed")


class InsightsGeneratedResponse(BaseModel):
    success: bool = True
    insights: int


class HabitsGeneratedResponse(BaseModel):
    success: bool = True
    habits: int


class InsightItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    insight_type: InsightType
    title: str
    description: str
    data: Optional[Dict[str, Any]] = None
    created_at: datetime


class HabitItem(BaseModel):
    id: int
    title: str
    description: str
    priority: Priority
    category: str
    date: date
    is_active: bool
    completed: bool


class CompletionResponse(BaseModel):
    habit_id: int
    completed: bool


class StreakResponse(BaseModel):
    current: int
    longest: int
    last_completed_on: Optional[date] = None
