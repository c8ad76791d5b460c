"""
Main Orchestrator Module

This module orchestrates the complete new account reporting pipeline:

Setup phase
0. Validate the log and report directories
1. Load and validate the report configuration file

Run phase
2. Query the directory for recently created accounts
3. Build the report (subject, intro, country and detail tables)
4. Export the spreadsheet (only when there are accounts)
5. Send the report email (bcc admins) and keep a copy of the sent HTML

A failure in either phase sends a high-priority notification to the admin
addresses only; no partial report ever reaches the recipients. When the report
was delivered and a later step failed, the notification says it was sent and
the attached spreadsheet is kept. A run-end event
is written to the operational event log on every path.

This is pure orchestration/glue code - no business logic.
All business logic lives in the individual modules.
"""

import html
import os
import tempfile
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

from account_reporting.config import (
    LOGS_DIR,
    REPORTS_DIR,
    DATE_FORMAT_FILENAME,
    SPREADSHEET_FILENAME_PREFIX,
    EMAIL_COPY_FILENAME_PREFIX,
    FAILURE_SUBJECT_TEMPLATE,
    DELIVERED_FAILURE_SUBJECT_TEMPLATE,
    FAILURE_SUBJECT_MAX_ERROR,
    FALLBACK_ADMIN_EMAILS,
)
from account_reporting.directory import DirectoryQuery, LdapDirectory, query_new_accounts
from account_reporting.email_sender import send_email
from account_reporting.input_loader import load_report_config
from account_reporting.models import ReportConfig, RunResult
from account_reporting.report_builder import build_report
from account_reporting.spreadsheet_exporter import export_records
from account_reporting.telemetry import RunTelemetry
from account_reporting.logger import get_logger, log_file_path

logger = get_logger(__name__)


def ensure_writable_directory(path: str) -> Path:
    """
    Create `path` if needed and check that files can be written to it.

    Raises:
        OSError: if the directory cannot be created or written to
    """
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(dir=directory, prefix=".write_check_"):
        pass
    return directory


def report_file_paths(report_date: datetime) -> Tuple[str, str]:
    """Return (spreadsheet path, saved email copy path) for the given report date."""
    stamp = report_date.strftime(DATE_FORMAT_FILENAME)
    spreadsheet = os.path.join(REPORTS_DIR, f"{SPREADSHEET_FILENAME_PREFIX}{stamp}.xlsx")
    email_copy = os.path.join(REPORTS_DIR, f"{EMAIL_COPY_FILENAME_PREFIX}{stamp}.html")
    return spreadsheet, email_copy


def failure_subject(error: str, delivered: bool = False) -> str:
    first_line = error.strip().splitlines()[0] if error.strip() else "unknown error"
    if len(first_line) > FAILURE_SUBJECT_MAX_ERROR:
        first_line = first_line[:FAILURE_SUBJECT_MAX_ERROR - 3] + "..."
    template = DELIVERED_FAILURE_SUBJECT_TEMPLATE if delivered else FAILURE_SUBJECT_TEMPLATE
    return template.format(error=first_line)


def notify_failure(admin_emails: Sequence[str], error: str, stage: str,
                   from_email: Optional[str] = None, delivered: bool = False) -> bool:
    """
    Send the high-priority failure notification to the admin addresses.

    With delivered=True the report email already reached its recipients and
    the notification says so.

    Returns:
        True if the notification was sent, False otherwise (the failure is logged either way)
    """
    if not admin_emails:
        logger.error("No admin addresses available. Failure notification not sent.")
        return False

    html_parts = [
        '<p style="font-family: Arial, sans-serif; font-size: 14px; color: #333;">'
        f'The new account report failed during the <strong>{html.escape(stage)}</strong> phase.</p>',
    ]
    if delivered:
        html_parts.append(
            '<p style="font-family: Arial, sans-serif; font-size: 14px; color: #333;">'
            'The report email was delivered to its recipients before the failure.</p>'
        )
    html_parts += [
        f'<pre style="font-size: 12px; background-color: #f5f5f5; padding: 10px;">{html.escape(error)}</pre>',
        f'<p style="color: #666; font-size: 12px;"><em>Log file: {html.escape(str(log_file_path()))}</em></p>',
    ]

    success, send_error = send_email(
        to_emails=list(admin_emails),
        subject=failure_subject(error, delivered=delivered),
        html_parts=html_parts,
        high_priority=True,
        from_email=from_email
    )
    if not success:
        logger.error(f"Failed to send failure notification to admins: {send_error}")
    return success


def _setup(config_path: str) -> ReportConfig:
    """Setup phase: validate directories and load the report configuration."""
    logger.info("STEP 0: Validating log and report directories...")
    ensure_writable_directory(LOGS_DIR)
    ensure_writable_directory(REPORTS_DIR)
    logger.info("✓ Step 0 completed: Directories are writable")
    logger.info("")

    logger.info("STEP 1: Loading report configuration...")
    config = load_report_config(config_path)
    logger.info("✓ Step 1 completed: Configuration loaded")
    logger.info("")
    return config


def _run(
    config: ReportConfig,
    directory: Optional[DirectoryQuery],
    report_date: datetime,
    dry_run_email: bool
) -> Tuple[bool, Union[RunResult, str], bool]:
    """
    Run phase: query, build, export, send.

    Returns:
        Tuple of (success, RunResult on success or error message on failure,
        delivered). delivered is True once the report email reached the SMTP
        server, even if a later step failed. A spreadsheet written by a failed
        run is removed before returning unless it was already delivered.
    """
    spreadsheet_path, email_copy_path = report_file_paths(report_date)
    written_spreadsheet: Optional[str] = None
    delivered = False

    try:
        # Step 2: Query directory
        logger.info("STEP 2: Querying directory for new accounts...")
        logger.info(f"Scopes: {len(config.scopes)}, day threshold: {config.days}")
        if directory is None:
            directory = LdapDirectory()
        records = query_new_accounts(directory, config.scopes, config.days)
        logger.info(f"✓ Step 2 completed: {len(records)} account(s) found")
        logger.info("")

        # Step 3: Build report
        logger.info("STEP 3: Building report...")
        result = build_report(records, config.days)
        logger.info(f"Subject: {result.subject}")
        for country, count in result.country_table:
            logger.debug(f"  {country}: {count}")
        logger.info("✓ Step 3 completed: Report built")
        logger.info("")

        # Step 4: Export spreadsheet
        logger.info("STEP 4: Exporting spreadsheet...")
        if result.record_count == 0:
            logger.info("No new accounts. Spreadsheet export skipped.")
        else:
            success, path, error = export_records(records, spreadsheet_path)
            if os.path.exists(spreadsheet_path):
                written_spreadsheet = spreadsheet_path
            if not success:
                raise RuntimeError(f"Spreadsheet export failed: {error}")
            result = replace(result, attachment_path=path)
        logger.info("✓ Step 4 completed: Spreadsheet exported (or skipped)")
        logger.info("")

        # Step 5: Send email
        logger.info("STEP 5: Sending report email...")
        attachments = [result.attachment_path] if result.attachment_path else None

        if dry_run_email:
            logger.info("DRY RUN MODE: Email sending skipped (dry_run_email=True)")
            logger.info(f"Would send email to {len(config.mail_to)} recipient(s), "
                        f"bcc {len(config.mail_admin)} admin(s)")
            logger.info(f"Subject: {result.subject}")
            logger.info(f"Attachment: {result.attachment_path or 'None'}")
        else:
            success, error = send_email(
                to_emails=list(config.mail_to),
                subject=result.subject,
                html_parts=list(result.html_parts),
                attachments=attachments,
                bcc_emails=list(config.mail_admin),
                save_path=email_copy_path,
                from_email=config.mail_from
            )
            if not success:
                raise RuntimeError(f"Report email failed: {error}")
            delivered = True
            written_spreadsheet = None
            if error:
                raise RuntimeError(error)
        logger.info("✓ Step 5 completed: Email sent (or skipped in dry run)")
        logger.info("")

        written_spreadsheet = None
        return True, result, delivered

    except Exception as e:
        error_msg = str(e)
        logger.error(f"Run phase failed: {error_msg}", exc_info=True)
        return False, error_msg, delivered

    finally:
        if written_spreadsheet:
            try:
                os.remove(written_spreadsheet)
                logger.info(f"Removed spreadsheet from failed run: {written_spreadsheet}")
            except OSError as e:
                logger.warning(f"Could not remove spreadsheet {written_spreadsheet}: {str(e)}")


def run_new_account_report(
    config_path: str,
    dry_run_email: bool = False,
    report_date: Optional[datetime] = None,
    directory: Optional[DirectoryQuery] = None
) -> Tuple[bool, Union[RunResult, str]]:
    """
    Run the complete new account reporting pipeline end-to-end.

    Args:
        config_path: Path to the YAML report configuration file
        dry_run_email: If True, build and export but only log the email. Failure
                       notifications are still sent.
        report_date: Date used in report filenames. If None, uses current date.
        directory: Directory implementation. If None, an LdapDirectory configured
                   from environment variables is used.

    Returns:
        Tuple of (success: bool, result)
        - success: True if the pipeline completed (including zero new accounts)
        - result: RunResult on success, error message on failure

    Example:
        success, result = run_new_account_report("config.yaml", dry_run_email=True)
    """
    telemetry = RunTelemetry()
    telemetry.start()
    report_date = report_date or datetime.now()

    try:
        logger.info("=" * 70)
        logger.info("Starting New Account Reporting Pipeline")
        logger.info("=" * 70)
        logger.info(f"Run id: {telemetry.run_id}")
        logger.info(f"Config file: {config_path}")
        logger.info(f"Dry run email: {dry_run_email}")
        logger.info(f"Log file: {log_file_path()}")
        logger.info("=" * 70)
        logger.info("")

        # Setup phase
        try:
            config = _setup(config_path)
        except Exception as e:
            error_msg = f"Setup failed: {str(e)}"
            logger.error(error_msg, exc_info=True)
            telemetry.failure(error_msg, stage="setup")
            notify_failure(FALLBACK_ADMIN_EMAILS, error_msg, stage="setup")
            return False, error_msg

        # Run phase
        success, result, delivered = _run(
            config=config,
            directory=directory,
            report_date=report_date,
            dry_run_email=dry_run_email
        )
        if not success:
            error_msg = f"Run failed: {result}"
            telemetry.failure(error_msg, stage="run")
            notify_failure(config.failure_recipients, error_msg, stage="run",
                           from_email=config.mail_from, delivered=delivered)
            return False, error_msg

        # Final summary
        logger.info("=" * 70)
        logger.info("Pipeline completed successfully")
        logger.info("=" * 70)
        logger.info(f"New accounts: {result.record_count}")
        logger.info(f"Spreadsheet: {result.attachment_path or 'None'}")
        logger.info(f"Email sent: {'No (dry run)' if dry_run_email else 'Yes'}")
        logger.info("=" * 70)
        return True, result

    finally:
        telemetry.end()
