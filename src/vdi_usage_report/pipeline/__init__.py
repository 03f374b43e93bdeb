"""Report generation pipeline."""

from .orchestrator import (
    ControllerState,
    UsageReportGenerator,
    generate_usage_report,
    setup_logging,
)

__all__ = [
    "UsageReportGenerator",
    "ControllerState",
    "generate_usage_report",
    "setup_logging",
]
