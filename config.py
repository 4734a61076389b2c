import json
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

import pandas as pd
import requests

from errors import ConfigUnavailable, NoScheduleForSelection

# --- SETTINGS SOURCE ---
# The settings document holds department-to-code mappings, present markers and
# the shift schedule. It can live next to the app or be served over HTTP.
DEFAULT_SETTINGS_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "settings.json")
SETTINGS_ENV_VAR = "HEADCOUNT_SETTINGS"
SETTINGS_FETCH_TIMEOUT_SECONDS = 10

# --- BUCKETS ---
# Display order of the department buckets. DA is optional and may be switched
# off with "da_enabled": false in the settings document.
BUCKET_ORDER = ["Inbound", "DA", "ICQA", "CRETs"]
OTHER_BUCKET = "Other"

# Used when the settings document has no DA entry. DA carves its ids out of
# Inbound so a person is never counted in both.
DEFAULT_DA_BUCKET = {
    "dept_ids": ["1211030", "1211040", "1299030", "1299040"],
    "carve_from": ["Inbound"],
}

DEFAULT_PRESENT_MARKERS = ["X"]

# --- RULES ---
NEW_HIRE_MIN_DAYS = 3        # Start date must be at least this many days before the selected date
AUDIT_SAMPLE_LIMIT = 200     # Drill-down rows kept per bucket / type / cohort
TOP_VALUES_LIMIT = 10        # Rows shown in each distribution table
DEFAULT_SHIFT = "Day"

# --- Column Name Mapping ---
# Maps internal logical fields to the column names found in the uploaded files.
# The order of each list matters: the first candidate found wins.
COLUMN_MAPPING = {
    "roster": {
        "employee_id": ["Employee ID", "Person Number", "Person ID", "Badge ID"],
        "department_id": ["Department ID", "Home Department ID", "Dept ID"],
        "management_area_id": ["Management Area ID", "Mgmt Area ID", "Area ID", "Area"],
        "employment_type": ["Employment Type", "Associate Type", "Worker Type", "Badge Type", "Company"],
        "shift_pattern": ["Shift Pattern", "Schedule Pattern", "Shift"],
        "corner": ["Corner", "Corner Code"],
        "start_date": ["Employment Start Date", "Hire Date", "Start Date"],
    },
    "mytime": {
        "person_id": ["Person ID", "Employee ID", "Person Number", "ID"],
        "on_premises": ["On Premises", "On Premises?", "OnPremises"],
    },
    "vacation": {
        "employee_id": ["Employee ID", "Person ID", "Person Number", "Badge ID", "ID"],
        "vacation": ["Vacation"],
        "vacation_unpaid": ["Vacation Unpaid"],
    },
}
# --- END Column Mapping ---


# --- Helper Function: canonical employee identifier ---
def normalize_employee_id(value) -> str:
    """
    Canonicalizes a free-text employee identifier.

    Keeps digits only and drops leading zeros, so "007", "7" and " 007 " all
    become "7". Identifiers without any digit fall back to the trimmed text.
    Empty input gives "" which means "no identifier".
    """
    if value is None:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            value = int(value)
    text = str(value).strip()
    digits = re.sub(r"\D", "", text)
    no_lead = digits.lstrip("0")
    return no_lead or text


def canonicalize_header(name) -> str:
    """Lowercase, single-spaced, punctuation-free form of a column name (keeps '?')."""
    text = str(name if name is not None else "").strip().lower()
    text = re.sub(r"\s+", " ", text)
    return re.sub(r"[^\w? ]", "", text)


def day_name_for(selected_date) -> str:
    """English weekday name ("Monday" ...) for a date-like value."""
    if selected_date is None:
        return "Monday"
    return pd.Timestamp(selected_date).day_name()


# Function to safely merge dictionaries, with later dicts overriding earlier ones
def merge_configs(base, override):
    """
    Recursively merges two dictionaries. Values from 'override' overwrite 'base' values.
    If a key exists in both and its value is a dictionary, the dictionaries are merged.
    """
    merged = base.copy()
    if override:
        for k, v in override.items():
            if isinstance(merged.get(k), dict) and isinstance(v, dict):
                merged[k] = merge_configs(merged[k], v)
            else:
                merged[k] = v
    return merged


@dataclass(frozen=True)
class BucketRule:
    """Membership rule for one department bucket."""
    name: str
    dept_ids: frozenset
    management_area_id: Optional[str] = None
    carve_from: Tuple[str, ...] = ()


def _check_bucket_rule(name, rule) -> None:
    """Rejects a department rule that is not an object with list-valued ids."""
    if not isinstance(rule, dict):
        raise ConfigUnavailable(f"Department rule for '{name}' must be an object.")
    for key in ("dept_ids", "carve_from"):
        if key in rule and not isinstance(rule[key], list):
            raise ConfigUnavailable(f"'{key}' of department '{name}' must be a list.")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings value. Loaded once by the caller and passed into
    every pipeline function.
    """
    present_markers: frozenset
    buckets: Tuple[BucketRule, ...]
    shift_schedule: Mapping[str, Mapping[str, Tuple[str, ...]]] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def bucket_names(self) -> list:
        return [b.name for b in self.buckets]

    @property
    def shifts(self) -> list:
        return list(self.shift_schedule.keys())

    def get_corner_codes(self, shift: str, day_name: str) -> Tuple[str, ...]:
        """Corner codes configured for a shift/day, or an empty tuple."""
        return self.shift_schedule.get(shift, {}).get(day_name, ())

    def corner_codes(self, shift: str, day_name: str) -> Tuple[str, ...]:
        """Like get_corner_codes, but an empty selection is an error."""
        codes = self.get_corner_codes(shift, day_name)
        if not codes:
            raise NoScheduleForSelection(shift, day_name)
        return codes

    @classmethod
    def from_dict(cls, raw: dict) -> "Settings":
        """Builds the immutable settings value from a parsed settings document."""
        if not isinstance(raw, dict):
            raise ConfigUnavailable("Settings document must be a JSON object.")

        markers = raw.get("present_markers") or DEFAULT_PRESENT_MARKERS
        present_markers = frozenset(str(m).strip().upper() for m in markers)

        departments = raw.get("departments") or {}
        if not isinstance(departments, dict):
            raise ConfigUnavailable("'departments' must map bucket names to department rules.")
        departments = dict(departments)
        for name, rule in departments.items():
            _check_bucket_rule(name, rule)

        da_enabled = raw.get("da_enabled", True)
        if not isinstance(da_enabled, bool):
            raise ConfigUnavailable(f"'da_enabled' must be true or false, got {da_enabled!r}.")
        if da_enabled:
            departments["DA"] = merge_configs(DEFAULT_DA_BUCKET, departments.get("DA"))
        else:
            departments.pop("DA", None)

        buckets = []
        for name in BUCKET_ORDER:
            if name == "DA" and not da_enabled:
                continue
            spec = departments.get(name)
            if spec is None:
                logging.warning(f"Settings have no '{name}' bucket; it will always count zero.")
                spec = {}
            area = spec.get("management_area_id")
            buckets.append(BucketRule(
                name=name,
                dept_ids=frozenset(str(d).strip() for d in spec.get("dept_ids", [])),
                management_area_id=str(area).strip() if area not in (None, "") else None,
                carve_from=tuple(spec.get("carve_from", [])),
            ))

        schedule: Dict[str, Mapping[str, Tuple[str, ...]]] = {}
        for shift_name, days in (raw.get("shift_schedule") or {}).items():
            if not isinstance(days, dict):
                raise ConfigUnavailable(f"Shift schedule for '{shift_name}' must map day names to code lists.")
            schedule[shift_name] = MappingProxyType(
                {day: tuple(str(c).strip() for c in codes or []) for day, codes in days.items()}
            )

        return cls(
            present_markers=present_markers,
            buckets=tuple(buckets),
            shift_schedule=MappingProxyType(schedule),
        )


def _read_settings_document(source: str) -> dict:
    if source.lower().startswith(("http://", "https://")):
        response = requests.get(source, timeout=SETTINGS_FETCH_TIMEOUT_SECONDS)
        response.raise_for_status()
        return response.json()
    with open(source, encoding="utf-8") as fh:
        return json.load(fh)


def load_settings(source: Optional[str] = None) -> Settings:
    """
    Loads the settings document from a local path or an http(s) URL.

    Falls back to $HEADCOUNT_SETTINGS, then to settings.json next to this module.
    Any failure is reported as ConfigUnavailable; the run cannot proceed without it.
    """
    source = source or os.environ.get(SETTINGS_ENV_VAR) or DEFAULT_SETTINGS_PATH
    try:
        raw = _read_settings_document(source)
    except (OSError, ValueError, requests.RequestException) as e:
        logging.error(f"Error loading settings from {source}: {e}")
        raise ConfigUnavailable(f"Couldn't load settings from '{source}': {e}") from e

    settings = Settings.from_dict(raw)
    logging.info(
        f"Loaded settings from {source}: buckets={settings.bucket_names}, shifts={settings.shifts}"
    )
    return settings


def describe_corner_codes(settings: Settings, selected_date: date, shift: str) -> str:
    """Markdown line previewing the corner codes for a date/shift selection."""
    day_name = day_name_for(selected_date)
    codes = settings.get_corner_codes(shift, day_name)
    rendered = " ".join(f"`{c}`" for c in codes) if codes else "_none configured_"
    return f"Shifts for **{day_name}** / **{shift}**: {rendered}"
