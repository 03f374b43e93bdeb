"""
Data model for delivery group usage reports.

Raw entities (delivery groups, machines, session intervals) come from a
data source; summaries and reports are derived by the reporting pipeline.
All records are immutable once created.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

# Error kinds attached to a controller entry
ERROR_KIND_COLLECTION = "collection"
ERROR_KIND_JOIN = "join"


@dataclass(frozen=True)
class TimeWindow:
    """Resolved reporting window. Created once per run."""

    start: datetime
    end: datetime

    @property
    def duration_seconds(self) -> float:
        """Length of the window in seconds."""
        return (self.end - self.start).total_seconds()

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(frozen=True)
class SessionInterval:
    """
    A single user session as reported by a controller.

    A logoff_time of None means the session was still open at query time.
    """

    delivery_group_id: Optional[str]
    login_time: datetime
    logoff_time: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.logoff_time is None


@dataclass(frozen=True)
class DeliveryGroup:
    """A delivery group, unique by id within one controller."""

    id: str
    name: str


@dataclass(frozen=True)
class Machine:
    """A machine; delivery_group_id is None when unassigned."""

    id: str
    delivery_group_id: Optional[str] = None


@dataclass(frozen=True)
class DeliveryGroupSummary:
    """Per-group usage figures for one controller."""

    name: str
    id: str
    max_concurrent_sessions: int = 0
    machine_count: int = 0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "id": self.id,
            "maxConcurrentSessions": self.max_concurrent_sessions,
            "machineCount": self.machine_count,
        }


@dataclass(frozen=True)
class ControllerError:
    """Error marker attached to a controller entry that failed."""

    kind: str  # collection | join
    message: str

    @classmethod
    def from_exception(cls, kind: str, error: Exception) -> "ControllerError":
        return cls(kind=kind, message=str(error))

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


@dataclass(frozen=True)
class ControllerReport:
    """
    Report entry for one reachable controller.

    delivery_groups is None when the controller yielded no delivery groups
    (or failed); it is never an empty tuple. Serialization omits the field
    in that case.
    """

    address: str
    delivery_groups: Optional[tuple[DeliveryGroupSummary, ...]] = None
    error: Optional[ControllerError] = None

    @property
    def has_delivery_groups(self) -> bool:
        return self.delivery_groups is not None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"address": self.address}
        if self.delivery_groups is not None:
            result["deliveryGroups"] = [g.to_dict() for g in self.delivery_groups]
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result


@dataclass(frozen=True)
class UsageReport:
    """Root report spanning every reachable controller."""

    creation_timestamp: datetime
    start: datetime
    end: datetime
    controllers: tuple[ControllerReport, ...] = field(default_factory=tuple)

    @property
    def errors(self) -> list[tuple[str, ControllerError]]:
        """All (address, error) pairs for controllers that failed."""
        return [(c.address, c.error) for c in self.controllers if c.error is not None]

    @property
    def has_errors(self) -> bool:
        return any(c.error is not None for c in self.controllers)

    def get_controller(self, address: str) -> Optional[ControllerReport]:
        """Look up a controller entry by address."""
        for controller in self.controllers:
            if controller.address == address:
                return controller
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary using the published field names."""
        return {
            "creationTimestamp": self.creation_timestamp.isoformat(),
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "controllers": [c.to_dict() for c in self.controllers],
        }
