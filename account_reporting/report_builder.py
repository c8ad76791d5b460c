"""
Report Builder Module

Turns the accounts returned by the directory into the email report:
- Subject line and intro sentence, worded for 0, 1 or many accounts
- Country table: accounts per country, highest count first
- Detail table: one row per account, sorted by country then name

This module is pure: no I/O, no logging, no directory or mail dependency.
Calling build_report twice with the same input returns identical HTML.

All HTML is email-client safe (inline styles only).
"""

import html
from typing import List, Sequence, Tuple

import pandas as pd

from account_reporting.config import (
    SUBJECT_NONE_TEMPLATE,
    SUBJECT_SINGLE_TEMPLATE,
    SUBJECT_PLURAL_TEMPLATE,
)
from account_reporting.models import AccountRecord, RunResult, DETAIL_COLUMNS, country_label

_TABLE_STYLE = "border-collapse: collapse; margin-bottom: 20px; border: 1px solid #ddd;"
_HEADER_ROW_STYLE = "background-color: #333; color: white;"
_TH_STYLE = "padding: 8px; border: 1px solid #ddd; text-align: left;"
_TD_STYLE = "padding: 6px 8px; border: 1px solid #ddd;"
_TD_NUMBER_STYLE = "padding: 6px 8px; border: 1px solid #ddd; text-align: right;"
_PARAGRAPH_STYLE = "font-family: Arial, sans-serif; font-size: 14px; color: #333;"


def _window(days: int) -> str:
    return "day" if days == 1 else f"{days} days"


def subject_line(count: int, days: int) -> str:
    """
    Email subject for the given number of new accounts.

    Example: subject_line(3, 7) -> "3 new users created in the last 7 days"
    """
    window = _window(days)
    if count == 0:
        return SUBJECT_NONE_TEMPLATE.format(window=window)
    if count == 1:
        return SUBJECT_SINGLE_TEMPLATE.format(window=window)
    return SUBJECT_PLURAL_TEMPLATE.format(count=count, window=window)


def intro_sentence(count: int, days: int) -> str:
    """Opening paragraph of the email body, as HTML."""
    window = _window(days)
    if count == 0:
        text = f"No new users have been created in the last {window}."
    elif count == 1:
        text = f"The following user has been created in the last {window}:"
    else:
        text = f"The following {count} users have been created in the last {window}:"
    return f'<p style="{_PARAGRAPH_STYLE}">{text}</p>'


def country_counts(records: Sequence[AccountRecord]) -> Tuple[Tuple[str, int], ...]:
    """
    Count accounts per country, highest count first.

    Countries with the same count keep the order in which they first appear in
    the input (stable sort on the count only).
    """
    if not records:
        return ()

    countries = pd.Series(
        [country_label(record) for record in records],
        dtype="object",
    )
    counts = countries.groupby(countries, sort=False).size()
    counts = counts.sort_values(ascending=False, kind="stable")
    return tuple((str(country), int(count)) for country, count in counts.items())


def _detail_sort_key(record: AccountRecord) -> Tuple[str, str]:
    return (country_label(record).casefold(), record.display_name.casefold())


def detail_rows(records: Sequence[AccountRecord]) -> Tuple[Tuple[str, ...], ...]:
    """Project DETAIL_COLUMNS for every account, sorted by (country, display name)."""
    ordered = sorted(records, key=_detail_sort_key)
    return tuple(
        tuple(accessor(record) for _, accessor in DETAIL_COLUMNS)
        for record in ordered
    )


def _render_table(headers: Sequence[str], rows: Sequence[Sequence[object]], numeric_columns=()) -> str:
    header_cells = "".join(
        f'<th style="{_TH_STYLE}">{html.escape(header)}</th>' for header in headers
    )
    body_rows: List[str] = []
    for row in rows:
        cells = []
        for index, value in enumerate(row):
            style = _TD_NUMBER_STYLE if index in numeric_columns else _TD_STYLE
            cells.append(f'<td style="{style}">{html.escape(str(value))}</td>')
        body_rows.append(f"<tr>{''.join(cells)}</tr>")

    return (
        f'<table style="{_TABLE_STYLE}">'
        f'<thead><tr style="{_HEADER_ROW_STYLE}">{header_cells}</tr></thead>'
        f"<tbody>{''.join(body_rows)}</tbody>"
        "</table>"
    )


def build_report(records: Sequence[AccountRecord], days: int) -> RunResult:
    """
    Build the email report for the accounts created in the last `days` days.

    Args:
        records: Accounts returned by the directory query (any order)
        days: Day threshold the query used

    Returns:
        RunResult with subject, intro, tables and the HTML body parts.
        With no accounts the body is the intro sentence alone.
    """
    count = len(records)
    subject = subject_line(count, days)
    intro = intro_sentence(count, days)

    if count == 0:
        return RunResult(record_count=0, subject=subject, intro_html=intro, html_parts=(intro,))

    countries = country_counts(records)
    details = detail_rows(records)

    country_html = _render_table(("Country", "Users"), countries, numeric_columns=(1,))
    detail_html = _render_table([header for header, _ in DETAIL_COLUMNS], details)

    return RunResult(
        record_count=count,
        subject=subject,
        intro_html=intro,
        country_table=countries,
        detail_rows=details,
        html_parts=(intro, country_html, detail_html),
    )
