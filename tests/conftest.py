"""Shared fixtures for the new account report tests."""

from datetime import date, datetime

import pytest

from account_reporting.models import AccountRecord, Expiration, ReportConfig


def make_record(name, country="Belgium", expires=None, **fields) -> AccountRecord:
    """Build an AccountRecord with sensible defaults; `expires` is a date or None (never)."""
    expiration = Expiration.on(expires) if expires else Expiration.never()
    defaults = dict(
        manager="Jane Manager",
        company="Company SA",
        account_type="Employee",
        sam_account_name=name.lower().replace(" ", "."),
        created=datetime(2026, 1, 12, 9, 30),
    )
    defaults.update(fields)
    return AccountRecord(display_name=name, country=country, expiration=expiration, **defaults)


@pytest.fixture
def belgium_france_records():
    """Two accounts in Belgium and one in France."""
    return [
        make_record("Luc Peeters", "Belgium", expires=date(2026, 12, 31)),
        make_record("Marie Dubois", "France"),
        make_record("An Janssens", "Belgium", employee_id="000123", office_phone="+3225551234"),
    ]


@pytest.fixture
def report_config():
    return ReportConfig(
        mail_to=("hr@example.com",),
        scopes=("OU=Users,DC=corp,DC=example,DC=com",),
        days=7,
        mail_admin=("ops@example.com",),
        mail_from="reports@example.com",
    )
