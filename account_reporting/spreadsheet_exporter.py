"""
Spreadsheet Exporter Module

Writes the full set of new accounts to an .xlsx workbook attached to the report email.
Contact fields (phone numbers, employee ID) are written as text cells so Excel
does not turn them into numbers, drop leading zeros, or use scientific notation.

This is a pure infrastructure module - no report wording or selection logic.
"""

import os
from pathlib import Path
from typing import AbstractSet, Optional, Sequence, Tuple

import pandas as pd
from openpyxl.utils import get_column_letter

from account_reporting.config import SPREADSHEET_SHEET_NAME
from account_reporting.models import AccountRecord, EXPORT_COLUMNS, TEXT_FIELDS
from account_reporting.logger import get_logger

logger = get_logger(__name__)

# openpyxl number format for text cells
TEXT_NUMBER_FORMAT = "@"

# Column width bounds (characters)
_MIN_COLUMN_WIDTH = 8
_MAX_COLUMN_WIDTH = 50


def records_to_dataframe(records: Sequence[AccountRecord]) -> pd.DataFrame:
    """Build the export DataFrame: one row per account, columns in EXPORT_COLUMNS order."""
    headers = [header for header, _ in EXPORT_COLUMNS]
    rows = [[accessor(record) for _, accessor in EXPORT_COLUMNS] for record in records]
    return pd.DataFrame(rows, columns=headers, dtype="object")


def export_records(
    records: Sequence[AccountRecord],
    path: str,
    text_fields: AbstractSet[str] = TEXT_FIELDS
) -> Tuple[bool, Optional[str], Optional[str]]:
    """
    Export accounts to an Excel workbook.

    Args:
        records: Accounts to write (one row each)
        path: Destination .xlsx path; the parent directory is created if needed
        text_fields: Column headers whose cells are stored as text

    Returns:
        Tuple of (success: bool, path: Optional[str], error_msg: Optional[str])
        - success: True if the workbook was written
        - path: Written file path on success, None otherwise
        - error_msg: Error message on failure, None on success

    Example:
        success, xlsx_path, error = export_records(records, "reports/new_users_2026_01_15.xlsx")
    """
    try:
        logger.info(f"Exporting {len(records)} account(s) to {path}")

        unknown = set(text_fields) - {header for header, _ in EXPORT_COLUMNS}
        if unknown:
            error_msg = f"Unknown text field(s) for export: {sorted(unknown)}"
            logger.error(error_msg)
            return False, None, error_msg

        Path(path).parent.mkdir(parents=True, exist_ok=True)

        df = records_to_dataframe(records)
        for column in text_fields:
            df[column] = df[column].astype(str)

        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=SPREADSHEET_SHEET_NAME, index=False)
            worksheet = writer.sheets[SPREADSHEET_SHEET_NAME]

            for col_idx, column in enumerate(df.columns, start=1):
                letter = get_column_letter(col_idx)

                if column in text_fields:
                    for row_idx in range(2, len(df) + 2):
                        worksheet.cell(row=row_idx, column=col_idx).number_format = TEXT_NUMBER_FORMAT

                longest = max([len(str(column))] + [len(str(v)) for v in df[column]])
                worksheet.column_dimensions[letter].width = min(max(longest + 2, _MIN_COLUMN_WIDTH), _MAX_COLUMN_WIDTH)

            worksheet.freeze_panes = "A2"
            if len(df) > 0:
                worksheet.auto_filter.ref = worksheet.dimensions

        file_size = os.path.getsize(path)
        if file_size == 0:
            error_msg = f"Generated spreadsheet is empty (0 bytes): {path}"
            logger.error(error_msg)
            return False, None, error_msg

        logger.info(f"Spreadsheet written: {path} ({file_size} bytes, {len(df)} rows)")
        return True, path, None

    except Exception as e:
        error_msg = f"Failed to export spreadsheet: {str(e)}"
        logger.error(error_msg, exc_info=True)
        return False, None, error_msg
