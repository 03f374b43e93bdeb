"""Data model for delivery group usage reports."""

from .models import (
    ERROR_KIND_COLLECTION,
    ERROR_KIND_JOIN,
    ControllerError,
    ControllerReport,
    DeliveryGroup,
    DeliveryGroupSummary,
    Machine,
    SessionInterval,
    TimeWindow,
    UsageReport,
)

__all__ = [
    # Raw entities
    "DeliveryGroup",
    "Machine",
    "SessionInterval",
    # Window
    "TimeWindow",
    # Derived entities
    "DeliveryGroupSummary",
    "ControllerError",
    "ControllerReport",
    "UsageReport",
    # Error kinds
    "ERROR_KIND_COLLECTION",
    "ERROR_KIND_JOIN",
]
