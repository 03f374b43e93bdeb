"""
Reporting window resolution.

Turns optional user-supplied start/end values into a validated TimeWindow.
The window is computed once per run from an explicit "now" and passed by
value through the rest of the pipeline.
"""

import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional, Union

from ..config.constants import (
    DAY_END_TIME,
    DAY_START_TIME,
    DEFAULT_WINDOW_SECONDS,
    MIN_WINDOW_SECONDS,
)
from ..exceptions import InvalidRangeError
from ..schemas.models import TimeWindow

logger = logging.getLogger(__name__)

TimeInput = Union[datetime, date, str]

_BARE_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def local_now() -> datetime:
    """Current local time, timezone-aware."""
    return datetime.now().astimezone()


def _is_local_zone(now: datetime) -> bool:
    """True when now carries the fixed offset astimezone() gives for local time."""
    return now.tzinfo is not None and now.tzinfo == now.astimezone().tzinfo


def _localize(naive: datetime, now: datetime) -> datetime:
    """
    Attach a zone to a naive wall-clock time.

    Local clocks resolve the offset for the value's own date, so days on
    the other side of a daylight-saving change keep their local midnight.
    Other zones are attached as-is.
    """
    if now.tzinfo is None:
        return naive
    if _is_local_zone(now):
        return naive.astimezone()
    return naive.replace(tzinfo=now.tzinfo)


def _parse_time_value(
    value: TimeInput, default_clock: tuple[int, int, int], now: datetime
) -> datetime:
    """
    Normalize a user-supplied time value to a datetime.

    Bare dates (date objects or YYYY-MM-DD strings) get default_clock.
    Naive datetimes are placed in the zone of now (see _localize).

    Raises:
        InvalidRangeError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time(*default_clock))
    elif isinstance(value, str):
        text = value.strip()
        try:
            if _BARE_DATE_RE.match(text):
                parsed = datetime.combine(
                    date.fromisoformat(text), time(*default_clock)
                )
            else:
                # fromisoformat only accepts a trailing Z from 3.11 on
                if text.endswith("Z"):
                    text = text[:-1] + "+00:00"
                parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise InvalidRangeError(f"invalid time value {value!r}: {e}") from e
    else:
        raise InvalidRangeError(
            f"unsupported time value {value!r} ({type(value).__name__})"
        )

    if parsed.tzinfo is None:
        parsed = _localize(parsed, now)
    elif now.tzinfo is None:
        # naive clock: compare in local wall time
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


class TimeWindowResolver:
    """
    Computes and validates the reporting window.

    Defaults:
        - no start: yesterday 00:00:00 (local calendar day before now)
        - no end, no start: yesterday 23:59:59
        - no end, explicit start: start + 86399 seconds
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize resolver.

        Args:
            clock: Callable returning the current time (defaults to local_now)
        """
        self._clock = clock or local_now

    def resolve(
        self,
        explicit_start: Optional[TimeInput] = None,
        explicit_end: Optional[TimeInput] = None,
        now: Optional[datetime] = None,
    ) -> TimeWindow:
        """
        Resolve a validated time window.

        Args:
            explicit_start: Optional start (datetime, date or ISO-8601 string)
            explicit_end: Optional end (datetime, date or ISO-8601 string)
            now: Reference time (uses the injected clock if None)

        Returns:
            Immutable TimeWindow

        Raises:
            InvalidRangeError: If start is not in the past or end does not
                follow start by at least one second
        """
        if now is None:
            now = self._clock()

        min_gap = timedelta(seconds=MIN_WINDOW_SECONDS)
        yesterday = now.date() - timedelta(days=1)

        if explicit_start is None:
            start = _localize(datetime.combine(yesterday, time(*DAY_START_TIME)), now)
        else:
            start = _parse_time_value(explicit_start, DAY_START_TIME, now)
            if now - start < min_gap:
                raise InvalidRangeError("start in future")

        if explicit_end is None:
            if explicit_start is None:
                end = _localize(datetime.combine(yesterday, time(*DAY_END_TIME)), now)
            else:
                end = start + timedelta(seconds=DEFAULT_WINDOW_SECONDS)
        else:
            end = _parse_time_value(explicit_end, DAY_END_TIME, now)
            if end - start < min_gap:
                raise InvalidRangeError("end before start")

        window = TimeWindow(start=start, end=end)
        logger.debug(f"Resolved window {window.start.isoformat()} - {window.end.isoformat()}")
        return window


def resolve_time_window(
    explicit_start: Optional[TimeInput] = None,
    explicit_end: Optional[TimeInput] = None,
    now: Optional[datetime] = None,
) -> TimeWindow:
    """Resolve a window with the default local clock."""
    return TimeWindowResolver().resolve(explicit_start, explicit_end, now=now)
