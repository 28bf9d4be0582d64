"""
Main application module for the Ticket Release Notifier.

Each invocation runs ``PollController.run`` exactly once:

1. Re-fetch the ticket page when nothing is known yet or the last check is
   older than the configured interval, merge it into the stored state and
   persist that state straight away.
2. Send at most one notification (next date, on sale or sold out), record
   the announcement flag and persist again.

The notification is sent before its flag is persisted, so a crash between
the two repeats that one message on the next run. Nothing is retried within
a run; every error propagates to the caller.
"""
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .errors import ConfigError
from .fetcher import PageSnapshotFetcher, create_fetcher
from .models import (
    Announcement,
    AppConfig,
    EventState,
    FetchConfig,
    NotificationConfig,
    ResetGranularity,
    Snapshot,
    Stage,
)
from .notifications import Notifier, create_notifier
from .parser import parse
from .store import StateStore

logger = logging.getLogger(__name__)


@dataclass
class RunOutcome:
    """What a single invocation did."""
    state: EventState
    stage: Optional[Stage] = None
    fetched: bool = False

    @property
    def notified(self) -> bool:
        return self.stage is not None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_new_event_cycle(
    previous: Optional[datetime],
    current: datetime,
    granularity: ResetGranularity = ResetGranularity.DAY_OF_MONTH,
) -> bool:
    """Decide whether a freshly fetched release date belongs to a new listing.

    With ``DAY_OF_MONTH`` only the day number is compared, so a new listing
    whose release falls on the same day number in another month goes
    unnoticed. ``DATE`` compares the full calendar date.
    """
    if previous is None:
        return True
    if granularity == ResetGranularity.DATE:
        return previous.date() != current.date()
    return previous.day != current.day


class PollController:
    """Decides, once per invocation, whether to re-check the page and what to announce."""

    def __init__(
        self,
        config: AppConfig,
        fetcher: PageSnapshotFetcher,
        store: StateStore,
        notifier: Notifier,
        parser: Callable[[str], Snapshot] = parse,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize with configuration and the injected collaborators."""
        self.config = config
        self.fetcher = fetcher
        self.store = store
        self.notifier = notifier
        self.parser = parser
        self.clock = clock

    async def run(self, now: Optional[datetime] = None) -> RunOutcome:
        """Run one check-and-announce cycle."""
        now = now or self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        state = self.store.load()
        fetched = False

        if self.is_stale(state, now):
            state = await self.refresh(state, now)
            fetched = True

        if not state.has_announced(Announcement.NEXT_DATE_ANNOUNCED):
            return await self._announce(Stage.NEXT_DATE, state, fetched)

        if (
            not state.has_announced(Announcement.TICKETS_ON_SALE_ANNOUNCED)
            and not state.has_announced(Announcement.SOLD_OUT_ANNOUNCED)
            and now >= state.release_date
        ):
            logger.info("⏰ Release time reached, re-checking the ticket page")
            state = await self.refresh(state, now)

            if not state.has_announced(Announcement.NEXT_DATE_ANNOUNCED):
                return await self._announce(Stage.NEXT_DATE, state, fetched=True)

            if now < state.release_date:
                logger.info(f"⏳ Release moved to {state.release_date.isoformat()}, nothing to announce yet")
                return RunOutcome(state=state, fetched=True)

            if state.sold_out:
                return await self._announce(Stage.SOLD_OUT, state, fetched=True)

            return await self._announce(Stage.ON_SALE, state, fetched=True)

        logger.info("✅ Nothing to announce")
        return RunOutcome(state=state, fetched=fetched)

    def is_stale(self, state: EventState, now: datetime) -> bool:
        """Whether the stored state needs a fresh look at the ticket page."""
        if state.release_date is None or state.last_checked_at is None:
            return True
        if now < state.last_checked_at:
            logger.warning(
                f"⚠️ Clock is behind the last check ({state.last_checked_at.isoformat()}), re-checking"
            )
            return True
        return now - state.last_checked_at > self.config.check_interval

    async def refresh(self, state: EventState, now: datetime) -> EventState:
        """Fetch and parse the page, merge it into ``state`` and persist the result.

        Raises:
            FetchError: If the page could not be fetched.
            ParseError: If the page could not be parsed.
            StorageError: If the merged state could not be saved.
        """
        url = self.config.event_url
        async with self.fetcher as fetcher:
            raw_content = await fetcher.fetch(url, self.config.session_cookie)
        snapshot = self.parser(raw_content)

        release_date = now + timedelta(seconds=snapshot.signed_offset)
        if (
            snapshot.signed_offset <= 0
            and state.release_date is not None
            and state.release_date <= now
        ):
            # The sale is already open; the page no longer tells us when it opened.
            release_date = state.release_date

        announcements = set(state.announcements)
        if is_new_event_cycle(state.release_date, release_date, self.config.reset_granularity):
            if state.release_date is not None:
                logger.warning(
                    f"🆕 Release moved from {state.release_date.date()} to {release_date.date()}, "
                    "treating it as a new event"
                )
            announcements = set()

        candidate = EventState(
            release_date=release_date,
            meet_date=snapshot.meet_date,
            sold_out=snapshot.sold_out,
            last_checked_at=now,
            announcements=announcements,
        )
        logger.info(
            f"🎟️ Meet {candidate.meet_date.date()}, tickets on sale at {release_date.isoformat()}"
        )
        self.store.save(candidate)
        return candidate

    async def _announce(self, stage: Stage, state: EventState, fetched: bool) -> RunOutcome:
        logger.info(f"📣 Announcing {stage.value}")
        await self.notifier.send(stage, state)
        state = state.with_announcement(stage.announcement)
        self.store.save(state)
        return RunOutcome(state=state, stage=stage, fetched=fetched)


def create_controller(config: AppConfig) -> PollController:
    """Wire up the default collaborators for ``config``."""
    return PollController(
        config=config,
        fetcher=create_fetcher(config.fetch),
        store=StateStore(config.state_file),
        notifier=create_notifier(config.notification, event_url=config.event_url),
    )


def create_default_config() -> AppConfig:
    """Create a default configuration."""
    return AppConfig(
        root_event_id="",
        event_id="",
        page_url="",
        check_interval_ms=60 * 60 * 1000,
        state_file="event_state.json",
        reset_granularity=ResetGranularity.DAY_OF_MONTH,
        log_level="INFO",
        fetch=FetchConfig(
            backend="http",
            headless=True,
            timeout=30
        ),
        notification=NotificationConfig()
    )


def load_config() -> AppConfig:
    """Load configuration from environment variables.

    Values that are optional fall back to defaults with a warning when they
    cannot be parsed. Call ``validate_config`` before using the result.
    """
    from dotenv import load_dotenv

    # Load environment variables from .env file
    load_dotenv()

    config = create_default_config()

    if os.getenv("ROOT_EVENT_ID"):
        config.root_event_id = os.getenv("ROOT_EVENT_ID").strip()

    if os.getenv("EVENT_ID"):
        config.event_id = os.getenv("EVENT_ID").strip()

    if os.getenv("PAGE_URL"):
        config.page_url = os.getenv("PAGE_URL").strip()

    if os.getenv("SESSION_COOKIE"):
        config.session_cookie = os.getenv("SESSION_COOKIE")

    if os.getenv("SESSION_COOKIE_NAME"):
        config.fetch.session_cookie_name = os.getenv("SESSION_COOKIE_NAME")

    if os.getenv("WEBHOOK_URL"):
        config.notification.notify_target = os.getenv("WEBHOOK_URL").strip()

    if os.getenv("MENTION_ID"):
        config.notification.mention_id = os.getenv("MENTION_ID").strip()

    if os.getenv("WEBHOOK_USERNAME"):
        config.notification.username = os.getenv("WEBHOOK_USERNAME")

    if os.getenv("CHECK_INTERVAL_MS"):
        try:
            config.check_interval_ms = int(os.getenv("CHECK_INTERVAL_MS"))
        except (ValueError, TypeError):
            logger.warning("Invalid CHECK_INTERVAL_MS. Using default.")

    if os.getenv("STATE_FILE"):
        config.state_file = os.getenv("STATE_FILE")

    if os.getenv("RESET_GRANULARITY"):
        value = os.getenv("RESET_GRANULARITY").strip().lower()
        try:
            config.reset_granularity = ResetGranularity(value)
        except ValueError as e:
            raise ConfigError(
                f"RESET_GRANULARITY must be one of "
                f"{[g.value for g in ResetGranularity]}, got {value!r}"
            ) from e

    if os.getenv("FETCHER"):
        config.fetch.backend = os.getenv("FETCHER").strip().lower()

    if os.getenv("HEADLESS"):
        config.fetch.headless = os.getenv("HEADLESS").lower() == "true"

    if os.getenv("FETCH_TIMEOUT"):
        try:
            config.fetch.timeout = int(os.getenv("FETCH_TIMEOUT"))
        except (ValueError, TypeError):
            logger.warning("Invalid FETCH_TIMEOUT. Using default.")

    if os.getenv("LOG_LEVEL"):
        log_level = os.getenv("LOG_LEVEL").upper()
        if log_level in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            config.log_level = log_level

    if os.getenv("LOG_FILE"):
        config.log_file = os.getenv("LOG_FILE")

    return config


def validate_config(config: AppConfig, require_credentials: bool = True) -> None:
    """Raise ConfigError unless ``config`` is complete enough to run.

    Args:
        config: The configuration to check.
        require_credentials: Whether the session cookie and webhook are needed.
            Inspecting stored state needs neither.
    """
    required = {
        "ROOT_EVENT_ID": config.root_event_id,
        "EVENT_ID": config.event_id,
        "PAGE_URL": config.page_url,
    }
    if require_credentials:
        required["SESSION_COOKIE"] = config.session_cookie
        required["WEBHOOK_URL"] = config.notification.notify_target

    missing = [name for name, value in required.items() if not value]
    if missing:
        raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

    try:
        event_url = config.event_url
    except (KeyError, IndexError, ValueError) as e:
        raise ConfigError(
            "PAGE_URL may only use the {root_event_id} and {event_id} placeholders"
        ) from e
    if not event_url.startswith(('http://', 'https://')):
        raise ConfigError('PAGE_URL must start with http:// or https://')

    if require_credentials and not config.notification.notify_target.startswith(('http://', 'https://')):
        raise ConfigError('WEBHOOK_URL must start with http:// or https://')

    if config.check_interval_ms <= 0:
        raise ConfigError('CHECK_INTERVAL_MS must be positive')

    if config.fetch.backend not in ("http", "browser"):
        raise ConfigError(f"FETCHER must be 'http' or 'browser', got {config.fetch.backend!r}")
