"""
Usage report orchestration.

Resolves the window once, filters controllers by connectivity, collects
each reachable controller on a bounded worker pool and assembles a single
report in the caller's controller order.

Per-controller lifecycle:
    PENDING -> COLLECTING -> SUMMARIZED | EMPTY_GROUPS | FAILED -> REPORTED

A failing controller never aborts the others; its entry carries an error
marker instead of delivery groups.
"""

import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Sequence

from ..config.constants import (
    DEFAULT_MAX_WORKERS,
    FETCH_STAGES,
    STAGE_DELIVERY_GROUPS,
    STAGE_MACHINES,
    STAGE_SESSIONS,
)
from ..config.settings import Settings, get_settings
from ..exceptions import CollectionError, JoinError, ReportGenerationError
from ..monitor.base import Credential, DataSource
from ..reporting.group_joiner import GroupJoiner
from ..reporting.report_assembler import ControllerResult, ReportAssembler
from ..reporting.time_window import TimeInput, TimeWindowResolver, local_now
from ..schemas.models import (
    ERROR_KIND_COLLECTION,
    ERROR_KIND_JOIN,
    ControllerError,
    TimeWindow,
    UsageReport,
)

logger = logging.getLogger(__name__)


class ControllerState(Enum):
    """Collection lifecycle of a single controller."""

    PENDING = "pending"
    COLLECTING = "collecting"
    SUMMARIZED = "summarized"
    EMPTY_GROUPS = "empty_groups"
    FAILED = "failed"
    REPORTED = "reported"


def setup_logging(level: int = logging.INFO) -> None:
    """Configure root logging for CLI runs."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


class UsageReportGenerator:
    """
    Generates usage reports across controllers.

    All collaborators are injectable so runs are deterministic in tests.
    """

    def __init__(
        self,
        data_source: DataSource,
        clock: Optional[Callable[[], datetime]] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        raise_on_error: bool = False,
        joiner: Optional[GroupJoiner] = None,
    ):
        """
        Initialize the generator.

        Args:
            data_source: Source of controller data (also the connectivity probe)
            clock: Callable returning the current time
            max_workers: Maximum controllers collected in parallel
            raise_on_error: Raise ReportGenerationError after assembly when
                any controller failed
            joiner: GroupJoiner instance (creates default if None)
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self._data_source = data_source
        self._clock = clock or local_now
        self.max_workers = max_workers
        self.raise_on_error = raise_on_error
        self._resolver = TimeWindowResolver(clock=self._clock)
        self._joiner = joiner or GroupJoiner()
        self._assembler = ReportAssembler(clock=self._clock)

    def generate_usage_report(
        self,
        controllers: Sequence[str],
        credential: Optional[Credential] = None,
        explicit_start: Optional[TimeInput] = None,
        explicit_end: Optional[TimeInput] = None,
    ) -> UsageReport:
        """
        Generate the usage report.

        Args:
            controllers: Controller addresses, in the order to report them
            credential: Optional credential for every controller
            explicit_start: Optional window start
            explicit_end: Optional window end

        Returns:
            Assembled UsageReport

        Raises:
            InvalidRangeError: If the window is invalid (before any network call)
            ReportGenerationError: If raise_on_error is set and any
                controller failed
        """
        window = self._resolver.resolve(explicit_start, explicit_end)
        logger.info(
            f"Generating usage report for {len(controllers)} controller(s) "
            f"via {self._data_source.source_type}, "
            f"window {window.start.isoformat()} - {window.end.isoformat()}"
        )

        reachable = self._data_source.check_connectivity(list(controllers), credential)
        results = self._collect_all(reachable, window, credential)
        report = self._assembler.assemble(results, window)

        for address in reachable:
            logger.debug(f"{address}: {ControllerState.REPORTED.value}")

        failures = report.errors
        if failures:
            logger.warning(f"{len(failures)} controller(s) failed during collection")
            if self.raise_on_error:
                raise ReportGenerationError(report, failures)

        logger.info(f"Report complete: {len(report.controllers)} controller(s)")
        return report

    def _collect_all(
        self,
        controllers: list[str],
        window: TimeWindow,
        credential: Optional[Credential],
    ) -> list[ControllerResult]:
        """Collect controllers in parallel; results keep input order."""
        if not controllers:
            return []

        workers = min(self.max_workers, len(controllers))
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="controller"
        ) as pool:
            return list(
                pool.map(
                    lambda c: self._collect_controller(c, window, credential),
                    controllers,
                )
            )

    def _collect_controller(
        self,
        controller: str,
        window: TimeWindow,
        credential: Optional[Credential],
    ) -> ControllerResult:
        logger.debug(f"{controller}: {ControllerState.PENDING.value}")
        logger.debug(f"{controller}: {ControllerState.COLLECTING.value}")

        try:
            groups, machines, sessions = self._fetch_all(controller, window, credential)
        except CollectionError as e:
            logger.warning(f"{controller}: {ControllerState.FAILED.value}: {e}")
            return ControllerResult(
                address=controller,
                error=ControllerError.from_exception(ERROR_KIND_COLLECTION, e),
            )

        try:
            summaries = self._joiner.join(
                groups, machines, sessions, window, controller=controller
            )
        except JoinError as e:
            logger.warning(f"{controller}: {ControllerState.FAILED.value}: {e}")
            return ControllerResult(
                address=controller,
                error=ControllerError.from_exception(ERROR_KIND_JOIN, e),
            )

        if not summaries:
            logger.debug(f"{controller}: {ControllerState.EMPTY_GROUPS.value}")
            return ControllerResult(address=controller)

        logger.debug(
            f"{controller}: {ControllerState.SUMMARIZED.value} "
            f"({len(summaries)} group(s), {len(machines)} machine(s), "
            f"{len(sessions)} session(s))"
        )
        return ControllerResult(address=controller, summaries=tuple(summaries))

    def _fetch_all(
        self,
        controller: str,
        window: TimeWindow,
        credential: Optional[Credential],
    ) -> tuple[list, list, list]:
        """
        Run the three independent fetches concurrently and wait for all.

        Raises:
            CollectionError: For the first failed stage (in stage order)
        """
        source = self._data_source
        calls = {
            STAGE_DELIVERY_GROUPS: (source.fetch_delivery_groups, (controller, credential)),
            STAGE_MACHINES: (source.fetch_machines, (controller, credential)),
            STAGE_SESSIONS: (source.fetch_sessions, (controller, window, credential)),
        }

        with ThreadPoolExecutor(
            max_workers=len(FETCH_STAGES), thread_name_prefix="fetch"
        ) as pool:
            futures = {
                stage: pool.submit(calls[stage][0], *calls[stage][1])
                for stage in FETCH_STAGES
            }

        results = {}
        for stage in FETCH_STAGES:
            future = futures[stage]
            try:
                results[stage] = list(future.result())
            except CollectionError:
                raise
            except Exception as e:
                raise CollectionError(controller, stage=stage, reason=str(e)) from e

        return (
            results[STAGE_DELIVERY_GROUPS],
            results[STAGE_MACHINES],
            results[STAGE_SESSIONS],
        )


def generate_usage_report(
    controllers: Optional[Sequence[str]] = None,
    credential: Optional[Credential] = None,
    explicit_start: Optional[TimeInput] = None,
    explicit_end: Optional[TimeInput] = None,
    data_source: Optional[DataSource] = None,
    settings: Optional[Settings] = None,
    **kwargs,
) -> UsageReport:
    """
    Generate a usage report with settings-derived defaults.

    Args:
        controllers: Controller addresses (uses settings if None)
        credential: Credential (uses settings username/password if None)
        explicit_start: Optional window start
        explicit_end: Optional window end
        data_source: DataSource (creates a MonitorODataClient if None)
        settings: Application settings (uses default if None)
        **kwargs: Passed to UsageReportGenerator

    Returns:
        Assembled UsageReport
    """
    if settings is None:
        settings = get_settings()

    if controllers is None:
        controllers = settings.controllers

    if credential is None and settings.has_credential:
        credential = Credential(settings.username, settings.password)

    kwargs.setdefault("max_workers", settings.max_workers)

    owns_source = data_source is None
    if data_source is None:
        from ..monitor.odata_client import MonitorODataClient

        data_source = MonitorODataClient.from_settings(settings)

    try:
        generator = UsageReportGenerator(data_source, **kwargs)
        return generator.generate_usage_report(
            controllers,
            credential=credential,
            explicit_start=explicit_start,
            explicit_end=explicit_end,
        )
    finally:
        if owns_source:
            data_source.close()
