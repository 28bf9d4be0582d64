"""
Error types for the Ticket Release Notifier.

Every failure that ends a run is a ``TicketReleaseError`` carrying the name of
the stage that failed, so the CLI can report it without inspecting the type.
"""
import enum
from typing import Optional


class TicketReleaseError(Exception):
    """Base class for all fatal errors raised during a run."""

    stage = "run"


class ConfigError(TicketReleaseError):
    """Required configuration is missing or invalid."""

    stage = "config"


class FetchError(TicketReleaseError):
    """The ticket page could not be retrieved (transport or auth failure)."""

    stage = "fetch"


class ParseFailure(str, enum.Enum):
    """Why a page snapshot could not be parsed."""
    MISSING_MEET_DATE = "missing_meet_date"
    MISSING_RELEASE_OFFSET = "missing_release_offset"
    NON_NUMERIC_RELEASE_OFFSET = "non_numeric_release_offset"


class ParseError(TicketReleaseError):
    """The page was fetched but its layout no longer matches what we expect."""

    stage = "parse"

    def __init__(self, reason: ParseFailure, raw_content: str, detail: Optional[str] = None):
        self.reason = reason
        self.raw_content = raw_content
        self.detail = detail
        message = reason.value
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class StorageError(TicketReleaseError):
    """The persisted event state could not be read or written."""

    stage = "store"


class NotifyError(TicketReleaseError):
    """A notification was not accepted by the chat channel."""

    stage = "notify"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
