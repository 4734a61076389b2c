"""
vacation_adjustment.py

Builds the on-leave lookup from the optional daily hours summary
("CAN Daily Hours Summary" style export).

- The export often carries a title line above the real header. When the
  second line looks like a header (has an identifier column name) the first
  line is skipped.
- Vacation and Vacation Unpaid hours are parsed as locale-formatted numbers
  ("1,234.50"); anything non-numeric counts as 0.
- A person with Vacation + Vacation Unpaid > 0 is on leave for the day.
"""

import io
import logging
import os
import re

import pandas as pd

from config import normalize_employee_id
from data_processing import clean_frame, read_csv_text, resolve_columns

# Header tokens that identify the real header row of the leave export.
_ID_HEADER_PATTERN = re.compile(r"employee id|person id|person number|badge id", re.IGNORECASE)
_LEADING_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)")


# --------------------------- Helpers ---------------------------

def parse_locale_number(value) -> float:
    """
    Parses "1,234.5", " 8 ", "8.00 hrs" style values. Thousands separators are
    dropped and the leading numeric part is used; no number at all gives 0.0.
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return 0.0 if pd.isna(value) else float(value)
    text = str(value).replace(",", "").strip()
    match = _LEADING_NUMBER.match(text)
    if not match:
        return 0.0
    return float(match.group(0))


def has_title_line(text: str) -> bool:
    """True when the line after the first one carries an identifier-like header."""
    lines = text.split("\n")
    if len(lines) < 2:
        return False
    return bool(_ID_HEADER_PATTERN.search(lines[1]))


class VacationIndex:
    """Identifier -> on-leave lookup. Unknown identifiers are not on leave."""

    def __init__(self, on_leave: set, rows: int):
        self.on_leave = on_leave
        self.rows = rows

    def is_on_leave(self, employee_id: str) -> bool:
        return employee_id in self.on_leave

    def __len__(self) -> int:
        return len(self.on_leave)


# --------------------------- Public API ---------------------------

def load_vacation_file(uploaded_file) -> pd.DataFrame:
    """
    Reads the optional leave file (CSV or Excel), skipping a single leading
    title line when the header sits on the second line.

    Returns an empty DataFrame when no file is given.
    """
    if uploaded_file is None:
        return pd.DataFrame()

    is_excel = uploaded_file.name.lower().endswith(('.xlsx', '.xls'))
    try:
        if is_excel:
            data = uploaded_file.getvalue()
            raw = pd.read_excel(io.BytesIO(data), header=None, nrows=2, dtype=str)
            second = " ".join(raw.iloc[1].fillna("").astype(str)) if len(raw) > 1 else ""
            skip = bool(_ID_HEADER_PATTERN.search(second))
            df = pd.read_excel(io.BytesIO(data), header=1 if skip else 0, dtype=str)
            df = clean_frame(df)
        else:
            text = uploaded_file.getvalue().decode('utf-8-sig', errors='replace')
            skip = has_title_line(text)
            df = read_csv_text(text, skip_first_line=skip)
    except Exception as e:
        raise ValueError(f"Failed to open vacation file '{uploaded_file.name}': {e}")

    if skip:
        logging.info(f"Vacation file '{os.path.basename(uploaded_file.name)}': skipped title line above the header.")
    return df


def build_vacation_index(vacation_df: pd.DataFrame) -> VacationIndex:
    """
    Marks identifiers with Vacation + Vacation Unpaid > 0 as on leave.

    The identifier, Vacation and Vacation Unpaid columns are each optional; a
    file without an identifier column yields an empty index and a warning.
    """
    if vacation_df is None or vacation_df.empty:
        return VacationIndex(set(), 0)

    cols = resolve_columns(vacation_df, "vacation")
    id_col = cols["employee_id"]
    if not id_col:
        logging.warning(
            f"Vacation file has no Employee ID column (columns={list(vacation_df.columns)}); "
            "no vacation exclusions applied."
        )
        return VacationIndex(set(), len(vacation_df))
    if not cols["vacation"] and not cols["vacation_unpaid"]:
        logging.warning("Vacation file has neither 'Vacation' nor 'Vacation Unpaid' column.")

    ids = vacation_df[id_col].map(normalize_employee_id)
    hours = pd.Series(0.0, index=vacation_df.index)
    for field in ("vacation", "vacation_unpaid"):
        col = cols[field]
        if col:
            hours = hours + vacation_df[col].map(parse_locale_number)

    on_leave = set(ids[(ids != "") & (hours > 0)])
    logging.info(f"Vacation index: {len(on_leave)} identifiers on leave from {len(vacation_df)} rows.")
    return VacationIndex(on_leave, len(vacation_df))
