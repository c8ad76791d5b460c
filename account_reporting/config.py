"""
Configuration constants for the new account report.

Fixed values (paths, formats, subject wording) live here so logic files carry no
hardcoded values. Per-run report inputs (recipients, directory scopes, day
threshold) are NOT defined here: they come from the YAML file read by
account_reporting.input_loader.

IMPORTANT: Sensitive values (SMTP and LDAP credentials) are read from environment variables.
Set these in your .env file or system environment before running the pipeline.
"""

import os
import logging

# Set up logger for configuration warnings
_logger = logging.getLogger(__name__)

# ============================================================================
# Report Input File
# ============================================================================

# Default YAML file with MailTo, MailAdmin, MailFrom, OrganizationalUnits and Days
# Relative to project root; override with --config on the runner script
DEFAULT_CONFIG_FILE = "config.yaml"

# ============================================================================
# Email Configuration
# ============================================================================

# Subject templates. {count} and {window} are substituted by the report builder,
# {window} is either "day" or "{days} days"
SUBJECT_NONE_TEMPLATE = "No new users created in the last {window}"
SUBJECT_SINGLE_TEMPLATE = "1 new user created in the last {window}"
SUBJECT_PLURAL_TEMPLATE = "{count} new users created in the last {window}"

# Subject used for the admin-only failure notification
FAILURE_SUBJECT_TEMPLATE = "New account report FAILED - {error}"

# Used instead when the report email was delivered and a later step failed
DELIVERED_FAILURE_SUBJECT_TEMPLATE = "New account report sent, follow-up FAILED - {error}"

# Maximum length of the error text carried in the failure subject line
FAILURE_SUBJECT_MAX_ERROR = 120

# Admin addresses used when setup fails before the YAML file could be read
# Expected format in .env: ADMIN_EMAILS=ops@company.com,backup@company.com
_admin_emails_str = os.getenv("ADMIN_EMAILS", "")
FALLBACK_ADMIN_EMAILS = [
    email.strip()
    for email in _admin_emails_str.replace(";", ",").split(",")
    if email.strip()
]

if not FALLBACK_ADMIN_EMAILS:
    _logger.debug(
        "ADMIN_EMAILS environment variable is not set. "
        "Setup failures that happen before the config file is loaded will only be logged."
    )

# ============================================================================
# SMTP Configuration
# ============================================================================

# SMTP settings are read from environment variables for security:
# - SMTP_SERVER: SMTP server address (e.g., 'smtp.company.com')
# - SMTP_PORT: SMTP port (default: 587 for TLS)
# - SMTP_USER / SMTP_PASSWORD: optional, login is skipped for an open relay
# - SMTP_USE_TLS: 'false' disables STARTTLS (default: true)
# - SMTP_FROM: sender address when the config file has no MailFrom

# Default SMTP port (used if SMTP_PORT environment variable is not set)
DEFAULT_SMTP_PORT = 587

# SMTP connection timeout in seconds
SMTP_TIMEOUT_SECONDS = 30

# ============================================================================
# Directory (LDAP) Configuration
# ============================================================================

# LDAP settings are read from environment variables:
# - LDAP_SERVER: directory host or URL (e.g., 'ldaps://dc01.company.com')
# - LDAP_USER / LDAP_PASSWORD: bind account (read-only)
# - LDAP_USE_SSL: 'true' to force LDAPS (default: false)
# - LDAP_PAGE_SIZE: paged search size (default: 500)
# - LDAP_MAX_WORKERS: number of scopes searched in parallel (default: 4)

DEFAULT_LDAP_PAGE_SIZE = 500
DEFAULT_LDAP_MAX_WORKERS = 4

# Directory attributes requested for every account
LDAP_ATTRIBUTES = [
    "displayName",
    "sAMAccountName",
    "mail",
    "manager",
    "company",
    "employeeType",
    "co",
    "accountExpires",
    "whenCreated",
    "telephoneNumber",
    "mobile",
    "homePhone",
    "ipPhone",
    "facsimileTelephoneNumber",
    "pager",
    "employeeID",
]

# ============================================================================
# File Paths and Directories
# ============================================================================

# Directory for generated spreadsheets and saved copies of sent emails
# Relative to project root
REPORTS_DIR = "reports"

# Directory for log files
# Relative to project root
LOGS_DIR = "logs"

# Per-run log file name prefix; the run timestamp is appended
LOG_FILENAME_PREFIX = "new_account_report_"

# Operational event log (JSON lines, appended across runs)
EVENT_LOG_FILENAME = "events.log"

# Spreadsheet and saved email filename prefixes
SPREADSHEET_FILENAME_PREFIX = "new_users_"
EMAIL_COPY_FILENAME_PREFIX = "new_users_"

# Sheet name inside the exported workbook
SPREADSHEET_SHEET_NAME = "New users"

# ============================================================================
# Date Format Configuration
# ============================================================================

# Expiration date in the email detail table and spreadsheet
# Format: DD/MM/YYYY (e.g., "15/01/2024")
DATE_FORMAT_EXPIRATION = "%d/%m/%Y"

# Creation timestamp in the spreadsheet
DATE_FORMAT_CREATED = "%d/%m/%Y %H:%M"

# Date format for report filenames
# Format: YYYY_MM_DD (e.g., "2026_01_03")
DATE_FORMAT_FILENAME = "%Y_%m_%d"

# Timestamp used in per-run log filenames
DATE_FORMAT_LOG_FILENAME = "%Y-%m-%d_%H%M%S"

# Literal shown for accounts that never expire
EXPIRATION_NEVER_LABEL = "Never"

# Label used in the report tables for accounts without a country
COUNTRY_MISSING_LABEL = "(none)"
