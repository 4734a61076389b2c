import io
from datetime import date

import pandas as pd
import pytest

from config import Settings
from data_processing import AMZN, EnrichedPerson

ALL_DAYS = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

SETTINGS_DOC = {
    "present_markers": ["x"],
    "departments": {
        "Inbound": {"dept_ids": ["1211010", "1211020", "1211030"]},
        "ICQA": {"dept_ids": ["1299070"], "management_area_id": "27"},
        "CRETs": {"dept_ids": ["1299070"], "management_area_id": "22"},
    },
    "shift_schedule": {
        "Day": {day: ["AM", "DA"] for day in ALL_DAYS},
        "Night": {"Monday": ["NA"]},
    },
}

# 2030-01-08 is a Tuesday: no Night codes are configured for it.
TUESDAY = date(2030, 1, 8)


class FakeUpload(io.BytesIO):
    """Stand-in for Streamlit's UploadedFile: bytes plus a file name."""

    def __init__(self, name: str, text: str):
        super().__init__(text.encode("utf-8"))
        self.name = name


@pytest.fixture
def settings() -> Settings:
    return Settings.from_dict(SETTINGS_DOC)


@pytest.fixture
def make_person():
    def _make(**overrides) -> EnrichedPerson:
        fields = dict(
            employee_id="1",
            department_id="1211010",
            management_area_id="",
            employment_category=AMZN,
            shift_pattern="AM1X",
            corner_code="AM",
            schedule_marker="A1",
            employment_start_date=None,
            is_present=False,
            is_on_leave=False,
        )
        fields.update(overrides)
        return EnrichedPerson(**fields)
    return _make


@pytest.fixture
def roster_df() -> pd.DataFrame:
    return pd.DataFrame([
        {"Employee ID": "0042", "Department ID": "1211030", "Shift Pattern": "AM1X",
         "Employment Type": "Seasonal", "Employment Start Date": "2024-01-01", "Management Area ID": ""},
        {"Employee ID": "7", "Department ID": "1211010", "Shift Pattern": "AM2Y",
         "Employment Type": "Full Time", "Employment Start Date": "2020-05-01", "Management Area ID": ""},
        {"Employee ID": "008", "Department ID": "1299070", "Shift Pattern": "DA1Z",
         "Employment Type": "Blue Badge", "Employment Start Date": "", "Management Area ID": "27"},
        {"Employee ID": "9", "Department ID": "1299070", "Shift Pattern": "DA3Z",
         "Employment Type": "Adecco", "Employment Start Date": "not a date", "Management Area ID": "22"},
        {"Employee ID": "10", "Department ID": "1211010", "Shift Pattern": "NA1X",
         "Employment Type": "Full Time", "Employment Start Date": "2020-01-01", "Management Area ID": ""},
        {"Employee ID": "11", "Department ID": "1211020", "Shift Pattern": "AM1X",
         "Employment Type": "xyz123", "Employment Start Date": "2020-01-01", "Management Area ID": ""},
    ])


@pytest.fixture
def mytime_df() -> pd.DataFrame:
    return pd.DataFrame([
        {"Person ID": "7", "On Premises?": "X"},
        {"Person ID": "00008", "On Premises?": ""},
        {"Person ID": "8", "On Premises?": "x"},
        {"Person ID": "9", "On Premises?": ""},
        {"Person ID": "11", "On Premises?": "X"},
    ])


def bucket_rule(settings: Settings, name: str):
    return next(b for b in settings.buckets if b.name == name)
