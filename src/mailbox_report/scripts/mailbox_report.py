"""CLI script to export Exchange Online mailbox sizes and a summary report."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from mailbox_report.core.config import ReportSettings, get_settings
from mailbox_report.core.sizes import format_byte_size
from mailbox_report.exchange.client import ExchangeOnlineClient
from mailbox_report.report.progress import LoggingProgressReporter
from mailbox_report.report.runner import ReportAbortedError, generate_report

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def apply_cli_overrides(settings: ReportSettings, args: argparse.Namespace) -> ReportSettings:
    """Return settings with command-line flags applied on top of the environment."""
    overrides: dict = {}
    if args.output_dir is not None:
        overrides["output_dir"] = args.output_dir
    if args.auto_install:
        overrides["auto_install"] = True
    if args.auto_update:
        overrides["auto_update"] = True
    if args.no_disconnect:
        overrides["disconnect_on_exit"] = False
    if args.abort_on_error:
        overrides["abort_on_fetch_error"] = True
    if args.list_timeout is not None:
        overrides["list_timeout"] = args.list_timeout
    return settings.model_copy(update=overrides)


async def run_report(settings: ReportSettings) -> int:
    """Run the mailbox report.

    Args:
        settings: Effective run settings

    Returns:
        Exit code
    """
    try:
        client = ExchangeOnlineClient(
            disconnect_on_exit=settings.disconnect_on_exit,
            list_timeout=settings.list_timeout,
        )
    except ValueError as e:
        logger.error(str(e))
        return 1

    if not await client.ensure_module(
        auto_install=settings.auto_install,
        auto_update=settings.auto_update,
    ):
        return 1

    try:
        outcome = await generate_report(
            client,
            settings.output_dir,
            progress=LoggingProgressReporter(),
            abort_on_fetch_error=settings.abort_on_fetch_error,
            standard_user_type=settings.standard_user_type,
        )
    except ReportAbortedError as e:
        logger.error(f"Report aborted: {e}")
        return 1

    summary = outcome.summary
    if summary is not None:
        print("\n" + "=" * 60)
        print("MAILBOX REPORT")
        print("=" * 60)
        print(f"  Total mailboxes: {summary.total_mailboxes}")
        print(f"  User mailboxes: {summary.user_mailboxes}")
        print(f"  Other mailboxes: {summary.other_mailboxes}")
        print(f"  Total size: {format_byte_size(summary.total_size_bytes)}")
        if outcome.skipped:
            print(f"  Skipped (statistics unavailable): {len(outcome.skipped)}")
        if outcome.warnings:
            print(f"  Warnings: {len(outcome.warnings)}")
            for warning in outcome.warnings:
                print(f"    - {warning}")
        if outcome.detail_path:
            print(f"  Detail export: {outcome.detail_path}")
        if outcome.summary_path:
            print(f"  Summary: {outcome.summary_path}")

    for error in outcome.errors:
        logger.error(error)

    return 0 if outcome.succeeded else 1


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Export Exchange Online mailbox sizes to CSV with a summary report",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        metavar="DIR",
        help="Directory for MailboxReport_*.csv and MailboxSummary_*.txt",
    )
    parser.add_argument(
        "--auto-install",
        action="store_true",
        help="Install the ExchangeOnlineManagement module if it is missing",
    )
    parser.add_argument(
        "--auto-update",
        action="store_true",
        help="Update the ExchangeOnlineManagement module if a newer version exists",
    )
    parser.add_argument(
        "--no-disconnect",
        action="store_true",
        help="Do not run Disconnect-ExchangeOnline at the end of each session",
    )
    parser.add_argument(
        "--abort-on-error",
        action="store_true",
        help="Abort if statistics cannot be fetched for any mailbox (default: skip it)",
    )
    parser.add_argument(
        "--list-timeout",
        type=int,
        metavar="SECONDS",
        help="Time limit for listing mailboxes and collecting their statistics",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    settings = apply_cli_overrides(get_settings(), args)
    exit_code = asyncio.run(run_report(settings))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
