"""
Excel Exporter Module
---------------------
Writes batch verification results to a formatted reconciliation workbook.
Features:
  • Styled header row
  • Row colour by status (verified / mismatch / failed)
  • Amount columns right-aligned with number format
  • Summary row with status counts and amount totals
  • Append mode for running reconciliation logs
"""

import os

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from slip_verifier.utils.logger import get_logger

logger = get_logger(__name__)

SHEET_NAME = 'Verifications'
SUMMARY_LABEL = 'TOTALS'

# ── Style Constants ──────────────────────────────────────────────────

HEADER_FILL = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
HEADER_FONT = Font(name="Calibri", bold=True, color="FFFFFF", size=11)
HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)

DATA_FONT = Font(name="Calibri", size=10)
DATA_ALIGN = Alignment(horizontal="left", vertical="center", wrap_text=False)
AMOUNT_ALIGN = Alignment(horizontal="right", vertical="center")

STATUS_STYLES = {
    'VERIFIED': (
        PatternFill(start_color="E2EFDA", end_color="E2EFDA", fill_type="solid"),
        Font(name="Calibri", size=10, color="006100"),
    ),
    'MISMATCH': (
        PatternFill(start_color="FCE4EC", end_color="FCE4EC", fill_type="solid"),
        Font(name="Calibri", size=10, color="9C0006"),
    ),
    'FAILED': (
        PatternFill(start_color="EDEDED", end_color="EDEDED", fill_type="solid"),
        Font(name="Calibri", size=10, color="595959"),
    ),
}

SUMMARY_FILL = PatternFill(start_color="D6E4F0", end_color="D6E4F0", fill_type="solid")
SUMMARY_FONT = Font(name="Calibri", bold=True, size=11, color="1F4E79")

THIN_BORDER = Border(
    left=Side(style="thin", color="B0B0B0"),
    right=Side(style="thin", color="B0B0B0"),
    top=Side(style="thin", color="B0B0B0"),
    bottom=Side(style="thin", color="B0B0B0"),
)

AMOUNT_COLUMNS = {'Extracted Amount', 'Required Amount', 'Difference'}
SUMMED_COLUMNS = {'Extracted Amount', 'Required Amount'}


def _to_number(value):
    try:
        return float(str(value).replace(',', ''))
    except (ValueError, TypeError):
        return None


def _auto_fit_columns(ws, df):
    """Adjust column widths to the longest value (first 100 rows)."""
    for col_idx, col_name in enumerate(df.columns, start=1):
        max_width = len(str(col_name)) + 4
        for row in df.head(100).itertuples(index=False):
            value = row[col_idx - 1]
            cell_value = '' if pd.isna(value) else str(value)
            max_width = max(max_width, len(cell_value) + 2)
        ws.column_dimensions[get_column_letter(col_idx)].width = min(max_width, 60)


def _style_header(ws, num_cols):
    ws.row_dimensions[1].height = 30
    for col in range(1, num_cols + 1):
        cell = ws.cell(row=1, column=col)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.alignment = HEADER_ALIGN
        cell.border = THIN_BORDER


def _style_data_rows(ws, df, num_rows):
    """Format cells and colour each row by its status."""
    columns = list(df.columns)
    status_col = columns.index('Status') + 1 if 'Status' in columns else None

    for row in range(2, num_rows + 2):  # header is row 1
        status = ws.cell(row=row, column=status_col).value if status_col else None
        fill, font = STATUS_STYLES.get(status, (None, DATA_FONT))

        for col_idx, col_name in enumerate(columns, start=1):
            cell = ws.cell(row=row, column=col_idx)
            cell.font = font
            cell.border = THIN_BORDER
            if fill is not None:
                cell.fill = fill

            if col_name in AMOUNT_COLUMNS:
                cell.alignment = AMOUNT_ALIGN
                number = _to_number(cell.value)
                if number is not None:
                    cell.value = number
                    cell.number_format = '#,##0.00'
            else:
                cell.alignment = DATA_ALIGN


def _add_summary_row(ws, df, num_rows):
    """Totals row: status counts in the Status column, sums for amount columns."""
    summary_row = num_rows + 2

    for col_idx, col_name in enumerate(df.columns, start=1):
        cell = ws.cell(row=summary_row, column=col_idx)
        cell.fill = SUMMARY_FILL
        cell.border = THIN_BORDER
        cell.font = SUMMARY_FONT

        if col_idx == 1:
            cell.value = SUMMARY_LABEL
            cell.alignment = Alignment(horizontal="center", vertical="center")
        elif col_name == 'Status':
            counts = df['Status'].value_counts()
            cell.value = ", ".join(
                f"{status}: {int(counts.get(status, 0))}" for status in STATUS_STYLES
            )
        elif col_name in SUMMED_COLUMNS:
            values = [_to_number(v) for v in df[col_name].tolist()]
            values = [v for v in values if v is not None]
            if values:
                cell.value = sum(values)
                cell.number_format = '#,##0.00'
                cell.alignment = AMOUNT_ALIGN


def export_to_excel(rows, output_path, append=False):
    """
    Save verification rows to a formatted Excel file.

    Args:
        rows (list[dict]): Report rows from SlipVerifier.verify_batch().
        output_path (str): Destination path; '.xlsx' is added if missing.
        append (bool): Add to an existing workbook instead of overwriting.

    Returns:
        tuple: (success: bool, message: str)
    """
    if not rows:
        return False, "No data to export."

    output_path = str(output_path)
    if not output_path.lower().endswith('.xlsx'):
        output_path += '.xlsx'

    df_new = pd.DataFrame(rows).fillna('')

    if append and os.path.exists(output_path):
        try:
            df_existing = pd.read_excel(output_path, engine='openpyxl', dtype=str).fillna('')
            first_col = df_existing.columns[0]
            # Drop the previous totals row before concatenating
            df_existing = df_existing[df_existing[first_col] != SUMMARY_LABEL]
            df = pd.concat([df_existing, df_new], ignore_index=True).fillna('')
            mode_label = f"Appended {len(df_new)} row(s) to"
        except Exception as e:
            logger.warning("Existing report %s is unreadable, starting a new one: %s", output_path, e)
            df = df_new
            mode_label = "Replaced unreadable report at"
    else:
        df = df_new
        mode_label = "Successfully saved to"

    num_rows = len(df)
    num_cols = len(df.columns)

    try:
        with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name=SHEET_NAME)
            ws = writer.sheets[SHEET_NAME]

            _style_header(ws, num_cols)
            _style_data_rows(ws, df, num_rows)
            _add_summary_row(ws, df, num_rows)
            _auto_fit_columns(ws, df)
            ws.freeze_panes = 'A2'
    except Exception as e:
        logger.error("Could not write report %s: %s", output_path, e)
        return False, f"Error saving Excel: {e}"

    return True, f"{mode_label} {output_path} ({num_rows} total rows)"
