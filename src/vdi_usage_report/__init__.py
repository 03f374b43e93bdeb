"""Delivery group usage reports for virtual desktop controllers."""

from .exceptions import (
    CollectionError,
    ConnectivityError,
    InvalidRangeError,
    JoinError,
    ReportGenerationError,
    UsageReportError,
)
from .monitor import Credential, DataSource, MonitorODataClient
from .pipeline import UsageReportGenerator, generate_usage_report
from .schemas import UsageReport

__version__ = "0.1.0"

__all__ = [
    "generate_usage_report",
    "UsageReportGenerator",
    "UsageReport",
    "DataSource",
    "MonitorODataClient",
    "Credential",
    # Errors
    "UsageReportError",
    "InvalidRangeError",
    "ConnectivityError",
    "CollectionError",
    "JoinError",
    "ReportGenerationError",
]
