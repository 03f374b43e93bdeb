"""Reporting core: window, concurrency, join and assembly."""

from .concurrency import ConcurrencyCalculator, max_concurrent
from .export import report_to_dataframe, report_to_json, write_report
from .group_joiner import GroupJoiner, join_groups
from .report_assembler import ControllerResult, ReportAssembler
from .time_window import TimeWindowResolver, local_now, resolve_time_window

__all__ = [
    # Time window
    "TimeWindowResolver",
    "resolve_time_window",
    "local_now",
    # Concurrency
    "ConcurrencyCalculator",
    "max_concurrent",
    # Join
    "GroupJoiner",
    "join_groups",
    # Assembly
    "ReportAssembler",
    "ControllerResult",
    # Export
    "report_to_json",
    "report_to_dataframe",
    "write_report",
]
