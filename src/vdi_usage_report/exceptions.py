"""
Custom exceptions for usage report generation.

Window errors are fatal to a run. Connectivity, collection and join errors
are scoped to a single controller and never abort the others.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .schemas.models import ControllerError, UsageReport


class UsageReportError(Exception):
    """
    Base exception for all usage-report errors.

    All other exceptions in this module inherit from this class,
    allowing for broad exception catching when needed.
    """

    pass


class InvalidRangeError(UsageReportError):
    """
    Raised when a time window cannot be resolved.

    Covers a start in the future, an end before the start and
    unparseable time values. No partial report is produced.
    """

    pass


class ConnectivityError(UsageReportError):
    """
    Raised when a controller is unreachable or rejects credentials.

    Attributes:
        controller: Address of the controller
        reason: Detailed explanation of the failure
    """

    def __init__(self, controller: str, reason: str | None = None):
        self.controller = controller
        self.reason = reason
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.reason:
            return f"Controller '{self.controller}' is unreachable: {self.reason}"
        return f"Controller '{self.controller}' is unreachable"


class CollectionError(UsageReportError):
    """
    Raised when a reachable controller fails during data retrieval.

    Attributes:
        controller: Address of the controller
        stage: Which fetch failed ('delivery_groups', 'machines', 'sessions')
        reason: Detailed explanation of the failure
    """

    def __init__(
        self,
        controller: str,
        stage: str | None = None,
        reason: str | None = None,
    ):
        self.controller = controller
        self.stage = stage
        self.reason = reason
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [f"Collection failed for controller '{self.controller}'"]
        if self.stage:
            parts.append(f"stage='{self.stage}'")
        if self.reason:
            parts.append(f"reason: {self.reason}")
        return " - ".join(parts)


class JoinError(UsageReportError):
    """
    Raised when group data is malformed (e.g. a missing identifier).

    Attributes:
        controller: Address of the controller, when known
        group: The offending group record, when known
        message: Detailed error message
    """

    def __init__(
        self,
        message: str,
        controller: str | None = None,
        group: object | None = None,
    ):
        self.message = message
        self.controller = controller
        self.group = group
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.controller and self.group is not None:
            return f"{self.message} (controller='{self.controller}', group={self.group!r})"
        elif self.controller:
            return f"{self.message} (controller='{self.controller}')"
        elif self.group is not None:
            return f"{self.message} (group={self.group!r})"
        return self.message


class ReportGenerationError(UsageReportError):
    """
    Raised after assembly when one or more controllers failed.

    Only raised when the caller opts in; the assembled report is still
    available on the exception.

    Attributes:
        report: The fully assembled UsageReport
        failures: List of (controller address, ControllerError) pairs
    """

    def __init__(
        self,
        report: "UsageReport",
        failures: list[tuple[str, "ControllerError"]],
    ):
        self.report = report
        self.failures = failures
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        details = "; ".join(
            f"{address}: {error.kind} ({error.message})"
            for address, error in self.failures
        )
        return f"{len(self.failures)} controller(s) failed: {details}"
