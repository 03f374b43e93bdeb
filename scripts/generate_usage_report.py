#!/usr/bin/env python3
"""
CLI script to generate a delivery group usage report.

Usage:
    # Report yesterday for the controllers in config / environment
    python scripts/generate_usage_report.py --output reports/usage.json

    # Explicit controllers and window
    python scripts/generate_usage_report.py \
        --controllers ddc01.corp.local,ddc02.corp.local \
        --start 2024-01-15 --end 2024-01-21 \
        --format csv --output reports/usage.csv
"""

import argparse
import getpass
import logging
import sys
from pathlib import Path
from typing import Optional

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from vdi_usage_report.config import EXPORT_FORMATS, get_settings
from vdi_usage_report.exceptions import InvalidRangeError
from vdi_usage_report.monitor import Credential, MonitorODataClient
from vdi_usage_report.pipeline import UsageReportGenerator, setup_logging
from vdi_usage_report.reporting import report_to_dataframe, report_to_json, write_report

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_CONTROLLER_FAILURES = 2


def parse_controllers(values: Optional[list[str]]) -> list[str]:
    """Flatten repeated and comma-separated --controllers values."""
    controllers = []
    for value in values or []:
        controllers.extend(c.strip() for c in value.split(",") if c.strip())
    return controllers


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a delivery group usage report",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Yesterday, controllers from config
  python scripts/generate_usage_report.py

  # One week, CSV output
  python scripts/generate_usage_report.py --start 2024-01-15 --end 2024-01-21 \\
      --format csv --output reports/usage.csv
        """,
    )

    parser.add_argument(
        "--controllers",
        action="append",
        help="Controller address(es); repeat or comma-separate (default: from config)",
    )
    parser.add_argument(
        "--start",
        help="Window start (YYYY-MM-DD or ISO-8601 datetime; default: yesterday)",
    )
    parser.add_argument(
        "--end",
        help="Window end (YYYY-MM-DD or ISO-8601 datetime)",
    )
    parser.add_argument("--username", help="Monitor Service username")
    parser.add_argument(
        "--password",
        help="Monitor Service password (prompted when --username is given without it)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Write the report to this file (default: print JSON to stdout)",
    )
    parser.add_argument(
        "--format",
        choices=EXPORT_FORMATS,
        default="json",
        help="Output format (default: json)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        help="Controllers collected in parallel (default: from config)",
    )
    parser.add_argument(
        "--config",
        help="Path to YAML config (plain or SOPS-encrypted)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def resolve_credential(args: argparse.Namespace, settings) -> Optional[Credential]:
    """Command-line credentials win over configured ones."""
    if args.username:
        password = args.password
        if password is None:
            password = getpass.getpass(f"Password for {args.username}: ")
        return Credential(args.username, password)
    if settings.has_credential:
        return Credential(settings.username, settings.password)
    return None


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    settings = get_settings(args.config)
    controllers = parse_controllers(args.controllers) or settings.controllers
    if not controllers:
        logger.error("No controllers given (use --controllers or configure them)")
        parser.print_help()
        return EXIT_USAGE

    max_workers = args.workers or settings.max_workers
    if max_workers < 1:
        logger.error(f"--workers must be >= 1, got {max_workers}")
        return EXIT_USAGE

    credential = resolve_credential(args, settings)

    with MonitorODataClient.from_settings(settings) as client:
        generator = UsageReportGenerator(client, max_workers=max_workers)
        try:
            report = generator.generate_usage_report(
                controllers,
                credential=credential,
                explicit_start=args.start,
                explicit_end=args.end,
            )
        except InvalidRangeError as e:
            logger.error(f"Invalid time window: {e}")
            return EXIT_USAGE

    if args.output:
        write_report(report, args.output, fmt=args.format)
    elif args.format == "json":
        print(report_to_json(report))
    else:
        print(report_to_dataframe(report).to_csv(index=False), end="")

    for address, error in report.errors:
        logger.error(f"{address}: {error.kind} error: {error.message}")

    return EXIT_CONTROLLER_FAILURES if report.has_errors else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
