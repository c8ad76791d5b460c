#!/usr/bin/env python3
"""
Cron Runner Script for the New Account Report

This script is designed to be executed by cron (or Task Scheduler) once per reporting
period. It runs the complete pipeline and exits with status 0 on success
(including "no new users") and 1 on any failure.

CRON CONFIGURATION:
-------------------
# Run every Monday at 07:00 server time
0 7 * * 1 /usr/bin/python3 /path/to/project/scripts/run_new_account_report.py --config /path/to/project/config.yaml >> /path/to/project/logs/cron.log 2>&1

ENVIRONMENT VARIABLES:
----------------------
Loaded from the project .env file when present (python-dotenv), otherwise from the
process environment.

REQUIRED:
- LDAP_SERVER
- SMTP_SERVER

OPTIONAL:
- LDAP_USER, LDAP_PASSWORD, LDAP_USE_SSL, LDAP_PAGE_SIZE, LDAP_MAX_WORKERS
- SMTP_PORT (default: 587), SMTP_USER, SMTP_PASSWORD, SMTP_USE_TLS, SMTP_FROM
- ADMIN_EMAILS: admins notified when the config file itself cannot be loaded

LOGGING:
--------
- Cron output: logs/cron.log (stdout/stderr from this script)
- Application logs: logs/new_account_report_<timestamp>.log (one per run)
- Operational events: logs/events.log (JSON lines)
"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Environment must be loaded before the reporting modules read it
load_dotenv(project_root / ".env")

from account_reporting.config import DEFAULT_CONFIG_FILE  # noqa: E402
from account_reporting.logger import set_console_level  # noqa: E402
from account_reporting.orchestrator import run_new_account_report  # noqa: E402


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Email a report of directory accounts created in the last N days."
    )
    parser.add_argument(
        "--config",
        default=str(project_root / DEFAULT_CONFIG_FILE),
        help="Path to the YAML report configuration (default: %(default)s)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Build and export the report but do not send the report email",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level (the log file always records DEBUG)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """
    Main entry point for cron execution.

    This function:
    1. Calls the new account reporting pipeline
    2. Prints minimal status output
    3. Returns the process exit code
    """
    args = parse_args(argv)
    set_console_level(args.log_level)

    print("=" * 70)
    print("CRON: Starting New Account Reporting Pipeline")
    print("=" * 70)
    print()

    success, result = run_new_account_report(
        config_path=args.config,
        dry_run_email=args.dry_run
    )

    print()
    print("=" * 70)
    if success:
        print("CRON: Pipeline completed successfully")
        print(f"Subject: {result.subject}")
        print(f"Spreadsheet: {result.attachment_path or 'None'}")
        print("=" * 70)
        return 0

    print("CRON: Pipeline failed")
    print(f"Error: {result}")
    print("=" * 70)
    return 1


if __name__ == "__main__":
    sys.exit(main())
