"""
Export helpers for usage reports.

JSON keeps the nested report shape; CSV flattens it to one row per
delivery group.
"""

import json
import logging
from pathlib import Path

import pandas as pd

from ..config.constants import EXPORT_FORMATS
from ..schemas.models import UsageReport

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "controller",
    "delivery_group",
    "delivery_group_id",
    "max_concurrent_sessions",
    "machine_count",
    "error",
    "window_start",
    "window_end",
]


def report_to_json(report: UsageReport, indent: int = 2) -> str:
    """Serialize a report using the published field names."""
    return json.dumps(report.to_dict(), indent=indent)


def report_to_dataframe(report: UsageReport) -> pd.DataFrame:
    """
    Flatten a report to a DataFrame.

    Controllers without delivery groups still get one row, with the group
    columns left empty, so every reported controller is visible.

    Args:
        report: Assembled usage report

    Returns:
        DataFrame with CSV_COLUMNS
    """
    rows = []
    start = report.start.isoformat()
    end = report.end.isoformat()

    for controller in report.controllers:
        error = controller.error.message if controller.error else None

        if not controller.delivery_groups:
            rows.append(
                {
                    "controller": controller.address,
                    "delivery_group": None,
                    "delivery_group_id": None,
                    "max_concurrent_sessions": None,
                    "machine_count": None,
                    "error": error,
                    "window_start": start,
                    "window_end": end,
                }
            )
            continue

        for group in controller.delivery_groups:
            rows.append(
                {
                    "controller": controller.address,
                    "delivery_group": group.name,
                    "delivery_group_id": group.id,
                    "max_concurrent_sessions": group.max_concurrent_sessions,
                    "machine_count": group.machine_count,
                    "error": error,
                    "window_start": start,
                    "window_end": end,
                }
            )

    df = pd.DataFrame(rows, columns=CSV_COLUMNS)
    # Keep counts integral even when empty rows introduce missing values
    for col in ("max_concurrent_sessions", "machine_count"):
        df[col] = df[col].astype("Int64")
    return df


def write_report(report: UsageReport, output_path: Path | str, fmt: str = "json") -> Path:
    """
    Write a report to disk.

    Args:
        report: Assembled usage report
        output_path: Destination file
        fmt: 'json' or 'csv'

    Returns:
        Path written

    Raises:
        ValueError: If fmt is not supported
    """
    fmt = fmt.lower()
    if fmt not in EXPORT_FORMATS:
        raise ValueError(
            f"Unsupported format: {fmt}. Use one of: {', '.join(EXPORT_FORMATS)}"
        )

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "json":
        path.write_text(report_to_json(report) + "\n", encoding="utf-8")
    else:
        report_to_dataframe(report).to_csv(path, index=False)

    logger.info(f"Wrote {fmt} report to {path}")
    return path
