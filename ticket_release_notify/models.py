"""Data models and types for the Ticket Release Notifier."""
import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Set, Tuple

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator


class Announcement(str, enum.Enum):
    """Lifecycle notifications that have already been sent."""
    NEXT_DATE_ANNOUNCED = "next_date_announced"
    TICKETS_ON_SALE_ANNOUNCED = "tickets_on_sale_announced"
    SOLD_OUT_ANNOUNCED = "sold_out_announced"


class Stage(str, enum.Enum):
    """Lifecycle stages that each map to one notification template."""
    NEXT_DATE = "next_date"
    ON_SALE = "on_sale"
    SOLD_OUT = "sold_out"

    @property
    def announcement(self) -> Announcement:
        return _STAGE_ANNOUNCEMENTS[self]


_STAGE_ANNOUNCEMENTS = {
    Stage.NEXT_DATE: Announcement.NEXT_DATE_ANNOUNCED,
    Stage.ON_SALE: Announcement.TICKETS_ON_SALE_ANNOUNCED,
    Stage.SOLD_OUT: Announcement.SOLD_OUT_ANNOUNCED,
}


class ResetGranularity(str, enum.Enum):
    """How two release dates are compared to detect a new event cycle."""
    DAY_OF_MONTH = "day_of_month"
    DATE = "date"


class EventState(BaseModel):
    """The persisted record of what is known about the event and what was announced."""

    release_date: Optional[datetime] = None
    meet_date: Optional[datetime] = None
    sold_out: bool = False
    last_checked_at: Optional[datetime] = None
    announcements: Set[Announcement] = Field(default_factory=set)

    @field_validator("release_date", "meet_date", "last_checked_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Treat naive timestamps as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def check_announcements_need_release_date(self) -> "EventState":
        if self.release_date is None and self.announcements:
            raise ValueError("announcements recorded without a release date")
        return self

    @field_serializer("announcements")
    def serialize_announcements(self, value: Set[Announcement]):
        return sorted(a.value for a in value)

    def has_announced(self, announcement: Announcement) -> bool:
        return announcement in self.announcements

    def with_announcement(self, announcement: Announcement) -> "EventState":
        """Return a copy of this state with one more announcement flag set."""
        return self.model_copy(update={"announcements": self.announcements | {announcement}})


@dataclass
class Snapshot:
    """A single parsed view of the ticket page."""
    meet_date: datetime
    seconds_until_release: int
    # No signal for this exists on the page yet.
    sold_out: bool = False
    # Countdown as shown on the page, negative once the sale has opened.
    release_offset: Optional[int] = None

    @property
    def signed_offset(self) -> int:
        if self.release_offset is None:
            return self.seconds_until_release
        return self.release_offset


@dataclass
class Notification:
    """Represents a notification to be sent."""
    stage: Stage
    content: str


@dataclass
class FetchConfig:
    """Configuration for fetching the ticket page."""
    backend: str = "http"  # 'http' or 'browser'
    session_cookie_name: str = "session"
    headless: bool = True
    timeout: int = 30
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/124.0.0.0 Safari/537.36"
    )
    viewport: Tuple[int, int] = (1280, 720)
    timezone: str = "UTC"


@dataclass
class NotificationConfig:
    """Configuration for the chat channel."""
    notify_target: Optional[str] = None
    mention_id: Optional[str] = None
    username: Optional[str] = None
    timeout: int = 30


@dataclass
class AppConfig:
    """Main application configuration."""
    root_event_id: str
    event_id: str
    page_url: str
    session_cookie: Optional[str] = None
    check_interval_ms: int = 60 * 60 * 1000
    state_file: str = "event_state.json"
    reset_granularity: ResetGranularity = ResetGranularity.DAY_OF_MONTH
    log_level: str = "INFO"
    log_file: Optional[str] = None
    fetch: FetchConfig = field(default_factory=FetchConfig)
    notification: NotificationConfig = field(default_factory=NotificationConfig)

    @property
    def check_interval(self) -> timedelta:
        return timedelta(milliseconds=self.check_interval_ms)

    @property
    def event_url(self) -> str:
        """The ticket page URL for the configured event."""
        return self.page_url.format(root_event_id=self.root_event_id, event_id=self.event_id)
