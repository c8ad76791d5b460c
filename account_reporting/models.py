"""
Data Models for the New Account Report

Plain frozen dataclasses shared by every stage of the pipeline:
- Expiration: tagged "Never | On(date)" value for account expiry
- AccountRecord: one directory account as seen at query time
- ReportConfig: validated per-run inputs loaded from the YAML file
- RunResult: the rendered report handed to the notification dispatcher

DETAIL_COLUMNS is the static header-to-accessor mapping used for the email
detail table, and TEXT_FIELDS lists the spreadsheet columns written as text.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional, Tuple

from account_reporting.config import (
    COUNTRY_MISSING_LABEL,
    DATE_FORMAT_CREATED,
    DATE_FORMAT_EXPIRATION,
    EXPIRATION_NEVER_LABEL,
)


@dataclass(frozen=True)
class Expiration:
    """
    Account expiry: either never, or on a specific date.

    Build with Expiration.never() or Expiration.on(date) rather than the constructor.
    """

    day: Optional[date] = None

    @classmethod
    def never(cls) -> "Expiration":
        return cls(None)

    @classmethod
    def on(cls, day: date) -> "Expiration":
        if isinstance(day, datetime):
            day = day.date()
        return cls(day)

    @property
    def is_never(self) -> bool:
        return self.day is None

    def render(self) -> str:
        """Return "Never" or the date as DD/MM/YYYY."""
        if self.day is None:
            return EXPIRATION_NEVER_LABEL
        return self.day.strftime(DATE_FORMAT_EXPIRATION)

    def __str__(self) -> str:
        return self.render()


NEVER = Expiration.never()


@dataclass(frozen=True)
class AccountRecord:
    """A directory user entry and its reporting-relevant attributes."""

    display_name: str
    manager: str = ""
    company: str = ""
    account_type: str = ""
    country: str = ""
    expiration: Expiration = NEVER

    # Pass-through attributes, exported to the spreadsheet only
    sam_account_name: str = ""
    mail: str = ""
    created: Optional[datetime] = None

    # Contact fields are opaque text; never interpreted as numbers
    office_phone: str = ""
    mobile_phone: str = ""
    home_phone: str = ""
    ip_phone: str = ""
    fax: str = ""
    pager: str = ""
    employee_id: str = ""


@dataclass(frozen=True)
class ReportConfig:
    """Validated report inputs. Loaded once per run and never mutated."""

    mail_to: Tuple[str, ...]
    scopes: Tuple[str, ...]
    days: int
    mail_admin: Tuple[str, ...] = ()
    mail_from: Optional[str] = None

    @property
    def failure_recipients(self) -> Tuple[str, ...]:
        """Addresses for the admin failure notification (recipients if no admins are set)."""
        return self.mail_admin or self.mail_to


@dataclass(frozen=True)
class RunResult:
    """Rendered report: built once by the report builder, consumed once by the dispatcher."""

    record_count: int
    subject: str
    intro_html: str
    country_table: Tuple[Tuple[str, int], ...] = ()
    detail_rows: Tuple[Tuple[str, ...], ...] = ()
    html_parts: Tuple[str, ...] = ()
    attachment_path: Optional[str] = None


# ============================================================================
# Static field mappings
# ============================================================================

def country_label(record: AccountRecord) -> str:
    """Country shown in the report tables; blank countries share one label."""
    return record.country.strip() or COUNTRY_MISSING_LABEL


# Email detail table: (column header, accessor)
DETAIL_COLUMNS: Tuple[Tuple[str, Callable[[AccountRecord], str]], ...] = (
    ("Name", lambda r: r.display_name),
    ("Manager", lambda r: r.manager),
    ("Company", lambda r: r.company),
    ("Account type", lambda r: r.account_type),
    ("Country", country_label),
    ("Expiration", lambda r: r.expiration.render()),
)


def _created(record: AccountRecord) -> str:
    return record.created.strftime(DATE_FORMAT_CREATED) if record.created else ""


# Spreadsheet export: every attribute, in column order
EXPORT_COLUMNS: Tuple[Tuple[str, Callable[[AccountRecord], str]], ...] = (
    ("Name", lambda r: r.display_name),
    ("Account", lambda r: r.sam_account_name),
    ("Mail", lambda r: r.mail),
    ("Manager", lambda r: r.manager),
    ("Company", lambda r: r.company),
    ("Account type", lambda r: r.account_type),
    ("Country", lambda r: r.country),
    ("Created", _created),
    ("Expiration", lambda r: r.expiration.render()),
    ("Employee ID", lambda r: r.employee_id),
    ("Office phone", lambda r: r.office_phone),
    ("Mobile phone", lambda r: r.mobile_phone),
    ("Home phone", lambda r: r.home_phone),
    ("IP phone", lambda r: r.ip_phone),
    ("Fax", lambda r: r.fax),
    ("Pager", lambda r: r.pager),
)

# Spreadsheet columns written as text so numbers keep leading zeros and full length
TEXT_FIELDS = frozenset({
    "Employee ID",
    "Office phone",
    "Mobile phone",
    "Home phone",
    "IP phone",
    "Fax",
    "Pager",
})
