"""
Snapshot parsing for the ticket page.

The page shows the meet date as prose ("Saturday 12 July 2025") and embeds
the time left until sales open as a countdown, either as a script call such
as ``startCountdown(3600)`` or as a ``data-countdown="3600"`` attribute.
"""
import html
import logging
import re
from datetime import datetime, timezone

from .errors import ParseError, ParseFailure
from .models import Snapshot

logger = logging.getLogger(__name__)

MONTHS = {
    "january": 1, "february": 2, "march": 3, "april": 4,
    "may": 5, "june": 6, "july": 7, "august": 8,
    "september": 9, "october": 10, "november": 11, "december": 12,
}

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# Meet dates are anchored at midday UTC so that converting to any local
# timezone keeps the same calendar day.
MEET_DATE_HOUR = 12

MEET_DATE_PATTERN = re.compile(
    r"\b(?P<weekday>" + "|".join(name for d in WEEKDAYS for name in (d, d[:3])) + r")\b\.?,?\s+"
    r"(?P<day>\d{1,2})(?:st|nd|rd|th)?\s+"
    r"(?P<month>" + "|".join(name for m in MONTHS for name in (m, m[:3])) + r")\.?\s+"
    r"(?P<year>\d{4})\b",
    re.IGNORECASE,
)

RELEASE_OFFSET_PATTERN = re.compile(
    r"countdown\w*\s*\(\s*[\"']?(?P<call>[^)\"',\s]*)"
    r"|data-countdown\s*=\s*[\"'](?P<attr>[^\"']*)[\"']",
    re.IGNORECASE,
)

_INTEGER = re.compile(r"[+-]?\d+")


def _month_number(label: str) -> int:
    label = label.lower()
    for name, number in MONTHS.items():
        if name == label or name[:3] == label:
            return number
    raise KeyError(label)


def parse_meet_date(content: str) -> datetime:
    """Extract the meet date from unescaped page content."""
    match = MEET_DATE_PATTERN.search(content)
    if not match:
        raise ParseError(ParseFailure.MISSING_MEET_DATE, content)

    try:
        meet_date = datetime(
            int(match.group("year")),
            _month_number(match.group("month")),
            int(match.group("day")),
            MEET_DATE_HOUR,
            tzinfo=timezone.utc,
        )
    except (KeyError, ValueError) as e:
        raise ParseError(
            ParseFailure.MISSING_MEET_DATE, content, detail=f"invalid date {match.group(0)!r}: {e}"
        ) from e

    weekday = match.group("weekday").lower()
    if WEEKDAYS[meet_date.weekday()][:3] != weekday[:3]:
        logger.warning(
            f"⚠️ Meet date {meet_date.date()} is a {WEEKDAYS[meet_date.weekday()]}, "
            f"but the page says {weekday}"
        )
    return meet_date


def parse_release_offset(content: str) -> int:
    """Extract the countdown to the sale in seconds.

    The value is signed: a negative countdown means the sale opened that many
    seconds ago.
    """
    match = RELEASE_OFFSET_PATTERN.search(content)
    if not match:
        raise ParseError(ParseFailure.MISSING_RELEASE_OFFSET, content)

    value = match.group("call") if match.group("call") is not None else match.group("attr")
    value = value.strip()
    if not _INTEGER.fullmatch(value):
        raise ParseError(
            ParseFailure.NON_NUMERIC_RELEASE_OFFSET, content, detail=f"countdown value {value!r}"
        )

    return int(value)


def parse(raw_content: str) -> Snapshot:
    """Parse a raw ticket page into a Snapshot.

    Args:
        raw_content: The page markup or text as returned by the fetcher.

    Returns:
        The meet date and the seconds left until the sale opens.

    Raises:
        ParseError: If either value cannot be found or the countdown is not an integer.
            The error carries the original ``raw_content``.
    """
    content = html.unescape(raw_content or "")
    try:
        meet_date = parse_meet_date(content)
        release_offset = parse_release_offset(content)
    except ParseError as e:
        # Report the content exactly as it was fetched.
        e.raw_content = raw_content
        raise

    if release_offset < 0:
        logger.debug(f"Countdown is {release_offset}s, sale already open")

    return Snapshot(
        meet_date=meet_date,
        seconds_until_release=max(release_offset, 0),
        release_offset=release_offset,
    )
