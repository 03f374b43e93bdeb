"""
Assembles per-controller results into a single UsageReport.

Assembly is pure: no I/O, and the only clock read is the creation
timestamp, taken once per report.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence

from ..schemas.models import (
    ControllerError,
    ControllerReport,
    DeliveryGroupSummary,
    TimeWindow,
    UsageReport,
)
from .time_window import local_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ControllerResult:
    """Outcome of collecting one reachable controller."""

    address: str
    summaries: Optional[tuple[DeliveryGroupSummary, ...]] = None
    error: Optional[ControllerError] = None


class ReportAssembler:
    """Builds the hierarchical report from ordered controller results."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or local_now

    def assemble(
        self,
        controller_results: Sequence[ControllerResult],
        window: TimeWindow,
        now: Optional[datetime] = None,
    ) -> UsageReport:
        """
        Assemble the usage report.

        Every result becomes one ControllerReport, in input order. A result
        with no summaries (or an empty list) gets delivery_groups omitted.

        Args:
            controller_results: Ordered per-controller results
            window: Reporting window
            now: Creation timestamp (uses the injected clock if None)

        Returns:
            Immutable UsageReport
        """
        creation_timestamp = now if now is not None else self._clock()

        controllers = tuple(self._to_controller_report(r) for r in controller_results)

        report = UsageReport(
            creation_timestamp=creation_timestamp,
            start=window.start,
            end=window.end,
            controllers=controllers,
        )

        logger.debug(
            f"Assembled report with {len(controllers)} controller(s), "
            f"{len(report.errors)} failed"
        )
        return report

    @staticmethod
    def _to_controller_report(result: ControllerResult) -> ControllerReport:
        delivery_groups = tuple(result.summaries) if result.summaries else None
        return ControllerReport(
            address=result.address,
            delivery_groups=delivery_groups,
            error=result.error,
        )
