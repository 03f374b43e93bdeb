"""
Peak session concurrency for a delivery group.

Sessions are clipped to the reporting window and swept as +1/-1 events.
At identical instants logoffs are applied before logins, so a session that
ends exactly when another begins is not counted as an overlap.
"""

import logging
from datetime import datetime
from typing import Iterable

import numpy as np

from ..schemas.models import SessionInterval, TimeWindow

logger = logging.getLogger(__name__)

LOGIN = 1
LOGOFF = -1


def _to_micros(dt: datetime) -> int:
    """Epoch microseconds; naive values are taken as local time."""
    return round(dt.timestamp() * 1_000_000)


def clip_intervals(
    intervals: Iterable[SessionInterval],
    group_id: str,
    window: TimeWindow,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Filter intervals to one group and clip them to the window.

    Open sessions (no logoff) extend to the window end. Intervals with no
    positive overlap with the window are dropped.

    Args:
        intervals: Session intervals for a controller
        group_id: Delivery group to keep
        window: Reporting window

    Returns:
        Tuple of (logins, logoffs) arrays in epoch microseconds
    """
    window_start = _to_micros(window.start)
    window_end = _to_micros(window.end)

    logins = []
    logoffs = []
    dropped = 0

    for interval in intervals:
        if interval.delivery_group_id != group_id:
            continue

        login = max(_to_micros(interval.login_time), window_start)
        if interval.logoff_time is None:
            logoff = window_end
        else:
            logoff = min(_to_micros(interval.logoff_time), window_end)

        if logoff <= login:
            dropped += 1
            continue

        logins.append(login)
        logoffs.append(logoff)

    if dropped:
        logger.debug(
            f"Dropped {dropped} session(s) outside the window for group {group_id}"
        )

    return np.asarray(logins, dtype=np.int64), np.asarray(logoffs, dtype=np.int64)


def peak_overlap(logins: np.ndarray, logoffs: np.ndarray) -> int:
    """
    Maximum number of simultaneously open intervals.

    Args:
        logins: Interval starts
        logoffs: Interval ends, same length as logins, each > its start

    Returns:
        Peak concurrency, 0 for no intervals
    """
    if len(logins) == 0:
        return 0

    times = np.concatenate([logins, logoffs])
    deltas = np.concatenate(
        [
            np.full(len(logins), LOGIN, dtype=np.int64),
            np.full(len(logoffs), LOGOFF, dtype=np.int64),
        ]
    )

    # Primary key time, secondary key delta: -1 sorts before +1
    order = np.lexsort((deltas, times))
    running = np.cumsum(deltas[order])
    return int(running.max())


class ConcurrencyCalculator:
    """Computes peak concurrent sessions per delivery group."""

    def max_concurrent(
        self,
        intervals: Iterable[SessionInterval],
        group_id: str,
        window: TimeWindow,
    ) -> int:
        """
        Peak number of overlapping sessions for a group within the window.

        Args:
            intervals: Session intervals (any order, any group)
            group_id: Delivery group to evaluate
            window: Reporting window

        Returns:
            Peak concurrency (0 if no session overlaps the window)
        """
        logins, logoffs = clip_intervals(intervals, group_id, window)
        return peak_overlap(logins, logoffs)


def max_concurrent(
    intervals: Iterable[SessionInterval],
    group_id: str,
    window: TimeWindow,
) -> int:
    """Convenience wrapper around ConcurrencyCalculator.max_concurrent."""
    return ConcurrencyCalculator().max_concurrent(intervals, group_id, window)
