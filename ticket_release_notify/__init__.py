"""Ticket Release Notifier package.

This package checks a recurring event's ticket page and announces, at most
once each, when the next sale is scheduled, when it opens and when it sells out.
"""

__version__ = "0.1.0"

# Import key components to make them available at the package level
from .app import PollController, RunOutcome, create_controller, load_config
from .errors import (
    ConfigError,
    FetchError,
    NotifyError,
    ParseError,
    ParseFailure,
    StorageError,
    TicketReleaseError,
)
from .fetcher import HttpPageFetcher, PageSnapshotFetcher
from .models import Announcement, AppConfig, EventState, Snapshot, Stage
from .notifications import DiscordWebhookService, Notifier
from .parser import parse
from .store import StateStore

__all__ = [
    'PollController',
    'RunOutcome',
    'create_controller',
    'load_config',
    'ConfigError',
    'FetchError',
    'NotifyError',
    'ParseError',
    'ParseFailure',
    'StorageError',
    'TicketReleaseError',
    'HttpPageFetcher',
    'PageSnapshotFetcher',
    'Announcement',
    'AppConfig',
    'EventState',
    'Snapshot',
    'Stage',
    'DiscordWebhookService',
    'Notifier',
    'parse',
    'StateStore',
]
