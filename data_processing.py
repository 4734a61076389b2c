import io
import logging
import os
import re
from dataclasses import asdict, dataclass
from typing import Optional

import pandas as pd

# Import configurations and helper functions from config.py
from config import (
    COLUMN_MAPPING,
    Settings,
    canonicalize_header,
    normalize_employee_id,
)
from errors import MissingRequiredColumn

AMZN = "AMZN"
TEMP = "TEMP"
UNKNOWN = "UNKNOWN"

# Direct-employment indicators are checked before agency/temporary ones.
_AMZN_PATTERN = re.compile(r"\b(amzn|amazon|blue badge|bb|fte|full ?time|part ?time|pt)\b")
_TEMP_PATTERN = re.compile(r"\b(temp|temporary|seasonal|agency|vendor|contract|white badge|wb|csg|adecco|randstad)")


# --------------------------- File intake ---------------------------

def clean_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Trims header names, drops 'Unnamed' columns and fully blank rows."""
    df.columns = [str(c).strip() for c in df.columns]
    df = df.loc[:, ~df.columns.str.contains('^Unnamed', na=False)]
    df = df.fillna("")
    if not df.empty:
        blank = df.apply(lambda col: col.astype(str).str.strip() == "").all(axis=1)
        df = df[~blank].reset_index(drop=True)
    return df


def read_csv_text(text: str, skip_first_line: bool = False) -> pd.DataFrame:
    """
    Parses CSV text into a frame of strings. Empty cells stay "" (no NaN).

    Args:
        text (str): Raw file contents.
        skip_first_line (bool): Drop the first physical line (a title/caption row)
            before parsing, so the header is taken from the second line.
    """
    if skip_first_line:
        newline = text.find("\n")
        text = text[newline + 1:] if newline >= 0 else text
    try:
        df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False, skip_blank_lines=True)
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    return clean_frame(df)


def read_uploaded_file(uploaded_file, skip_first_line: bool = False) -> pd.DataFrame:
    """
    Reads a single uploaded file (CSV or Excel) into a string-typed DataFrame.

    Args:
        uploaded_file: Streamlit UploadedFile (or any object with .name and .getvalue()).
        skip_first_line (bool): The real header is on the second physical line.

    Returns:
        pd.DataFrame: One row per data line, columns as found in the file.
    """
    file_extension = os.path.splitext(uploaded_file.name)[1].lower()
    try:
        if file_extension in ['.csv', '.txt', '']:
            text = uploaded_file.getvalue().decode('utf-8-sig', errors='replace')
            return read_csv_text(text, skip_first_line=skip_first_line)
        elif file_extension in ['.xls', '.xlsx']:
            df = pd.read_excel(
                io.BytesIO(uploaded_file.getvalue()),
                header=1 if skip_first_line else 0,
                dtype=str,
            )
            return clean_frame(df)
        else:
            raise ValueError(f"Unsupported file type for '{uploaded_file.name}'. Only .csv, .xls, and .xlsx are supported.")
    except ValueError:
        raise
    except Exception as e:
        raise ValueError(f"Could not read file '{uploaded_file.name}' (format error or corruption): {e}")


# --------------------------- Header resolution ---------------------------

def find_column(row, candidates: list) -> Optional[str]:
    """
    Finds the column matching one of the candidate names.

    `row` may be a sample row (dict or Series), a DataFrame, or a list of
    column names. Columns are tried in their original order; the first one whose
    canonical name is among the candidates wins. A second pass ignores '?' so
    "On Premises?" also matches "On Premises".

    Returns the original column name, or None.
    """
    if isinstance(row, pd.DataFrame):
        columns = list(row.columns)
    elif isinstance(row, pd.Series):
        columns = list(row.index)
    else:
        columns = list(row or [])

    wanted = {canonicalize_header(c) for c in candidates}
    for col in columns:
        if canonicalize_header(col) in wanted:
            return col
    for col in columns:
        if canonicalize_header(col).replace("?", "") in wanted:
            return col
    return None


def resolve_columns(df: pd.DataFrame, source: str) -> dict:
    """Resolves every logical field of COLUMN_MAPPING[source]; missing ones map to None."""
    return {field: find_column(df, names) for field, names in COLUMN_MAPPING[source].items()}


# --------------------------- Classification ---------------------------

def classify_employment_type(value) -> str:
    """
    Maps a free-text employment designation to AMZN, TEMP or UNKNOWN.
    First match wins; AMZN synonyms are checked before TEMP synonyms.
    """
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return UNKNOWN
    text = canonicalize_header(value)
    if not text:
        return UNKNOWN
    if _AMZN_PATTERN.search(text):
        return AMZN
    if _TEMP_PATTERN.search(text):
        return TEMP
    if text == "temp":
        return TEMP
    if text == "amzn":
        return AMZN
    return UNKNOWN


def parse_date_loose(value) -> Optional[pd.Timestamp]:
    """Parses anything pandas understands as a date; unparseable or empty gives None."""
    if value is None or not str(value).strip():
        return None
    try:
        ts = pd.to_datetime(str(value).strip(), errors='coerce')
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts


# --------------------------- Attendance index ---------------------------

class AttendanceIndex:
    """
    Identifier -> present mapping built from the MyTime feed.
    Unknown identifiers are simply absent (False).
    """

    def __init__(self, present: dict, marker_counts: dict, rows: int):
        self.present = present
        self.marker_counts = marker_counts
        self.rows = rows

    def is_present(self, employee_id: str) -> bool:
        return self.present.get(employee_id, False)

    def __contains__(self, employee_id) -> bool:
        return employee_id in self.present

    def __len__(self) -> int:
        return len(self.present)


def build_attendance_index(mytime_df: pd.DataFrame, person_col: str, on_prem_col: str,
                           present_markers) -> AttendanceIndex:
    """
    Builds the presence index. A person sighted with a present marker on any
    row is present; repeated rows are OR-ed together.
    """
    if mytime_df.empty:
        return AttendanceIndex({}, {}, 0)

    ids = mytime_df[person_col].map(normalize_employee_id)
    markers = mytime_df[on_prem_col].astype(str).str.strip().str.upper()
    marker_counts = {str(k): int(v) for k, v in markers.value_counts().items()}

    flags = markers.isin(set(present_markers))
    has_id = ids != ""
    grouped = flags[has_id].groupby(ids[has_id]).any()
    present = {str(k): bool(v) for k, v in grouped.items()}

    return AttendanceIndex(present, marker_counts, len(mytime_df))


def index_attendance_feed(mytime_df: pd.DataFrame, settings: Settings) -> AttendanceIndex:
    """Resolves the MyTime headers and builds the attendance index."""
    cols = resolve_columns(mytime_df, "mytime")
    missing = [label for field, label in (("person_id", "Person ID"), ("on_premises", "On Premises"))
               if not cols[field]]
    if missing:
        raise MissingRequiredColumn("MyTime", missing, mytime_df.columns)
    index = build_attendance_index(mytime_df, cols["person_id"], cols["on_premises"], settings.present_markers)
    logging.info(f"Attendance index: {len(index)} identifiers from {index.rows} MyTime rows.")
    return index


# --------------------------- Roster enrichment ---------------------------

def first_two(value: str) -> str:
    return (value or "")[:2]


def first_and_third(value: str) -> str:
    return value[0] + value[2] if value and len(value) >= 3 else ""


@dataclass(frozen=True)
class EnrichedPerson:
    employee_id: str
    department_id: str
    management_area_id: str
    employment_category: str
    shift_pattern: str
    corner_code: str
    schedule_marker: str
    employment_start_date: Optional[pd.Timestamp]
    is_present: bool
    is_on_leave: bool

    def to_record(self) -> dict:
        return asdict(self)


class RosterProcessor:
    """
    Joins roster rows with the attendance and vacation indexes and derives
    the per-person fields used by filtering and bucketing.
    """

    def __init__(self, settings: Settings):
        """
        Initializes the RosterProcessor.

        Args:
            settings (Settings): Loaded settings value.
        """
        self.settings = settings
        self.columns = {}

    def resolve_columns(self, roster_df: pd.DataFrame) -> dict:
        """
        Resolves roster headers. Employee ID, Department ID and either Shift
        Pattern or Corner are required; the rest degrade to empty values.
        """
        cols = resolve_columns(roster_df, "roster")
        missing = []
        if not cols["employee_id"]:
            missing.append("Employee ID")
        if not cols["department_id"]:
            missing.append("Department ID")
        if not (cols["shift_pattern"] or cols["corner"]):
            missing.append("Shift Pattern/Corner")
        if missing:
            raise MissingRequiredColumn("roster", missing, roster_df.columns)
        self.columns = cols
        return cols

    def enrich(self, roster_df: pd.DataFrame, attendance: AttendanceIndex, vacation=None) -> list:
        """
        Builds one EnrichedPerson per roster row.

        Args:
            roster_df (pd.DataFrame): Raw roster rows.
            attendance (AttendanceIndex): Presence lookup.
            vacation: Optional VacationIndex; without it nobody is on leave.

        Returns:
            list[EnrichedPerson]
        """
        cols = self.resolve_columns(roster_df)

        def cell(row, field):
            col = cols.get(field)
            if not col:
                return ""
            value = row.get(col, "")
            return "" if value is None else str(value)

        people = []
        for row in roster_df.to_dict("records"):
            employee_id = normalize_employee_id(row.get(cols["employee_id"]))
            shift_pattern = cell(row, "shift_pattern").strip()
            corner = cell(row, "corner").strip() if cols["corner"] else first_two(shift_pattern)
            start = parse_date_loose(cell(row, "start_date")) if cols["start_date"] else None
            people.append(EnrichedPerson(
                employee_id=employee_id,
                department_id=cell(row, "department_id").strip(),
                management_area_id=cell(row, "management_area_id").strip(),
                employment_category=classify_employment_type(cell(row, "employment_type")),
                shift_pattern=shift_pattern,
                corner_code=corner,
                schedule_marker=first_and_third(shift_pattern),
                employment_start_date=start,
                is_present=bool(employee_id) and attendance.is_present(employee_id),
                is_on_leave=bool(employee_id) and vacation is not None and vacation.is_on_leave(employee_id),
            ))

        unparsed_dates = sum(1 for p in people if cols["start_date"] and p.employment_start_date is None)
        if unparsed_dates:
            logging.warning(f"{unparsed_dates} roster rows have no parseable start date; new-hire rule skips them.")
        return people


def people_to_frame(people: list) -> pd.DataFrame:
    """Flat DataFrame view of enriched records (for display and debugging)."""
    columns = list(EnrichedPerson.__dataclass_fields__.keys())
    return pd.DataFrame([p.to_record() for p in people], columns=columns)
