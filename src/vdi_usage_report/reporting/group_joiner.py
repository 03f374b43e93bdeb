"""
Joins delivery groups with their machines and sessions.

Produces one DeliveryGroupSummary per group, in the order the groups were
supplied. Missing machine or session data yields zero counts.
"""

import logging
from collections import Counter, defaultdict
from datetime import datetime
from typing import Optional, Sequence

from ..exceptions import JoinError
from ..schemas.models import (
    DeliveryGroup,
    DeliveryGroupSummary,
    Machine,
    SessionInterval,
    TimeWindow,
)
from .concurrency import ConcurrencyCalculator

logger = logging.getLogger(__name__)


class GroupJoiner:
    """Correlates groups, machines and sessions by delivery group id."""

    def __init__(self, calculator: Optional[ConcurrencyCalculator] = None):
        self._calculator = calculator or ConcurrencyCalculator()

    def join(
        self,
        groups: Sequence[DeliveryGroup],
        machines: Sequence[Machine],
        sessions: Sequence[SessionInterval],
        window: TimeWindow,
        controller: Optional[str] = None,
    ) -> list[DeliveryGroupSummary]:
        """
        Build per-group summaries.

        Args:
            groups: Delivery groups for one controller
            machines: Machines for the same controller
            sessions: Session intervals for the same controller
            window: Reporting window
            controller: Controller address, used in error messages

        Returns:
            List of DeliveryGroupSummary in group order

        Raises:
            JoinError: If a group is missing its identifier or a session
                carries a login or logoff time that is not a datetime
        """
        self._validate_groups(groups, controller)
        self._validate_sessions(sessions, controller)

        machine_counts = Counter(
            m.delivery_group_id for m in machines if m.delivery_group_id is not None
        )

        # Bucket once so each group only sweeps its own sessions
        sessions_by_group: dict[str, list[SessionInterval]] = defaultdict(list)
        for session in sessions:
            if session.delivery_group_id is not None:
                sessions_by_group[session.delivery_group_id].append(session)

        summaries = []
        for group in groups:
            peak = self._calculator.max_concurrent(
                sessions_by_group.get(group.id, []), group.id, window
            )
            summaries.append(
                DeliveryGroupSummary(
                    name=group.name,
                    id=group.id,
                    max_concurrent_sessions=peak,
                    machine_count=machine_counts.get(group.id, 0),
                )
            )

        unmatched = set(machine_counts) - {g.id for g in groups}
        if unmatched:
            logger.debug(
                f"{sum(machine_counts[g] for g in unmatched)} machine(s) reference "
                f"unknown delivery groups on {controller or 'controller'}"
            )

        return summaries

    @staticmethod
    def _validate_groups(
        groups: Sequence[DeliveryGroup], controller: Optional[str]
    ) -> None:
        if groups is None:
            raise JoinError("Delivery group list is missing", controller=controller)

        for group in groups:
            group_id = getattr(group, "id", None)
            if group_id is None or (isinstance(group_id, str) and not group_id.strip()):
                raise JoinError(
                    "Delivery group is missing its identifier",
                    controller=controller,
                    group=group,
                )

    @staticmethod
    def _validate_sessions(
        sessions: Sequence[SessionInterval], controller: Optional[str]
    ) -> None:
        for session in sessions or []:
            login = getattr(session, "login_time", None)
            logoff = getattr(session, "logoff_time", None)
            if not isinstance(login, datetime):
                raise JoinError(
                    f"Session login time is not a datetime: {login!r}",
                    controller=controller,
                )
            if logoff is not None and not isinstance(logoff, datetime):
                raise JoinError(
                    f"Session logoff time is not a datetime: {logoff!r}",
                    controller=controller,
                )


def join_groups(
    groups: Sequence[DeliveryGroup],
    machines: Sequence[Machine],
    sessions: Sequence[SessionInterval],
    window: TimeWindow,
) -> list[DeliveryGroupSummary]:
    """Convenience wrapper around GroupJoiner.join."""
    return GroupJoiner().join(groups, machines, sessions, window)
