import io

import openpyxl
import pandas as pd
import pytest

from data_processing import (
    AMZN,
    TEMP,
    UNKNOWN,
    RosterProcessor,
    build_attendance_index,
    classify_employment_type,
    find_column,
    first_and_third,
    index_attendance_feed,
    parse_date_loose,
    people_to_frame,
    read_csv_text,
    read_uploaded_file,
)
from errors import MissingRequiredColumn
from tests.conftest import FakeUpload
from vacation_adjustment import VacationIndex


# --------------------------- Header resolution ---------------------------

def test_find_column_tolerates_case_space_and_question_mark():
    assert find_column(["Person ID", "on premises?"], ["On Premises"]) == "on premises?"
    assert find_column(["Person ID", "ON  PREMISES"], ["On Premises"]) == "ON  PREMISES"
    assert find_column({"Dept. ID": "1", "Name": "x"}, ["Department ID", "Dept ID"]) == "Dept. ID"


def test_find_column_first_actual_column_wins():
    # Columns are scanned in file order, not candidate order.
    assert find_column(["Person Number", "Employee ID"], ["Employee ID", "Person Number"]) == "Person Number"


def test_find_column_accepts_frame_and_series():
    df = pd.DataFrame({"Employee ID": ["1"], "Shift Pattern": ["AM1X"]})
    assert find_column(df, ["Shift Pattern"]) == "Shift Pattern"
    assert find_column(df.iloc[0], ["employee id"]) == "Employee ID"


def test_find_column_no_false_match():
    assert find_column(["Premises Code", "Person"], ["On Premises", "Person ID"]) is None
    assert find_column([], ["Employee ID"]) is None


# --------------------------- Classification ---------------------------

@pytest.mark.parametrize("raw, expected", [
    ("Full Time", AMZN),
    ("Full-Time", AMZN),
    ("Part Time", AMZN),
    ("Blue Badge", AMZN),
    ("FTE", AMZN),
    ("amzn", AMZN),
    ("Amazon Temp", AMZN),
    ("Seasonal", TEMP),
    ("TEMP", TEMP),
    ("Temporary (Agency)", TEMP),
    ("Contractor", TEMP),
    ("White Badge", TEMP),
    ("Adecco", TEMP),
    ("Kelly Temp", TEMP),
    ("Kelly-Temp", UNKNOWN),
    ("xyz123", UNKNOWN),
    ("Script writer", UNKNOWN),
    ("", UNKNOWN),
    ("   ", UNKNOWN),
    (None, UNKNOWN),
])
def test_classify_employment_type(raw, expected):
    assert classify_employment_type(raw) == expected


def test_parse_date_loose():
    assert parse_date_loose("2024-01-01") == pd.Timestamp("2024-01-01")
    assert parse_date_loose("01/15/2024") == pd.Timestamp("2024-01-15")
    assert parse_date_loose("not a date") is None
    assert parse_date_loose("") is None
    assert parse_date_loose(None) is None


def test_first_and_third():
    assert first_and_third("AM1X") == "A1"
    assert first_and_third("AM") == ""
    assert first_and_third("") == ""


# --------------------------- File intake ---------------------------

def test_read_csv_text_keeps_strings():
    df = read_csv_text("Employee ID,Department ID\n0042,1211030\n,\n")
    assert list(df.columns) == ["Employee ID", "Department ID"]
    assert df.loc[0, "Employee ID"] == "0042"
    assert len(df) == 1


def test_read_csv_text_skips_title_line():
    text = "MyTime Report - Today\nPerson ID, On Premises ,Unnamed: 2\n42,X,\n"
    df = read_csv_text(text, skip_first_line=True)
    assert list(df.columns) == ["Person ID", "On Premises"]
    assert df.loc[0, "On Premises"] == "X"


def test_read_csv_text_empty():
    assert read_csv_text("").empty


def test_read_uploaded_file_csv():
    df = read_uploaded_file(FakeUpload("roster.csv", "Employee ID,Shift Pattern\n1,AM1X\n"))
    assert df.to_dict("records") == [{"Employee ID": "1", "Shift Pattern": "AM1X"}]


def _xlsx_upload(name, rows):
    wb = openpyxl.Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    upload = FakeUpload(name, "")
    upload.getvalue = buffer.getvalue
    return upload


def test_read_uploaded_file_xlsx_roster():
    upload = _xlsx_upload("roster.xlsx", [
        ["Employee ID", "Department ID", "Shift Pattern", "Management Area ID"],
        [42, 1211030, "AM1X", None],
        [None, None, None, None],
    ])
    df = read_uploaded_file(upload)
    assert df.to_dict("records") == [
        {"Employee ID": "42", "Department ID": "1211030", "Shift Pattern": "AM1X", "Management Area ID": ""},
    ]


def test_read_uploaded_file_xlsx_mytime_with_title_row(settings):
    upload = _xlsx_upload("mytime.xlsx", [
        ["MyTime Export 2030-01-08"],
        ["Person ID", "On Premises"],
        [7, "X"],
        [9, None],
    ])
    df = read_uploaded_file(upload, skip_first_line=True)
    assert list(df.columns) == ["Person ID", "On Premises"]
    assert list(df["Person ID"]) == ["7", "9"]

    index = index_attendance_feed(df, settings)
    assert index.is_present("7")
    assert not index.is_present("9")


def test_read_uploaded_file_rejects_unknown_type():
    with pytest.raises(ValueError, match="Unsupported file type"):
        read_uploaded_file(FakeUpload("roster.pdf", "x"))


# --------------------------- Attendance index ---------------------------

def test_attendance_index_or_semantics():
    for rows in (
        [{"Person ID": "0042", "On Premises": "X"}, {"Person ID": "42", "On Premises": ""}],
        [{"Person ID": "42", "On Premises": ""}, {"Person ID": "0042", "On Premises": "X"}],
    ):
        index = build_attendance_index(pd.DataFrame(rows), "Person ID", "On Premises", {"X"})
        assert index.is_present("42") is True


def test_attendance_index_defaults_and_markers():
    df = pd.DataFrame([
        {"Person ID": "1", "On Premises": " x "},
        {"Person ID": "2", "On Premises": ""},
        {"Person ID": "", "On Premises": "X"},
    ])
    index = build_attendance_index(df, "Person ID", "On Premises", {"X"})
    assert index.is_present("1") is True
    assert index.is_present("2") is False
    assert index.is_present("999") is False
    assert "" not in index
    assert len(index) == 2
    assert index.rows == 3
    assert index.marker_counts == {"X": 2, "": 1}


def test_index_attendance_feed_requires_columns(settings):
    with pytest.raises(MissingRequiredColumn) as exc:
        index_attendance_feed(pd.DataFrame({"Person ID": ["1"]}), settings)
    assert exc.value.fields == ["On Premises"]
    assert "On Premises" in str(exc.value)


def test_index_attendance_feed(settings, mytime_df):
    index = index_attendance_feed(mytime_df, settings)
    assert index.is_present("7")
    assert index.is_present("8")
    assert not index.is_present("9")


# --------------------------- Roster enrichment ---------------------------

def test_enrich_roster(settings, roster_df, mytime_df):
    attendance = index_attendance_feed(mytime_df, settings)
    people = RosterProcessor(settings).enrich(roster_df, attendance, VacationIndex({"7"}, 1))
    by_id = {p.employee_id: p for p in people}

    assert len(people) == len(roster_df)
    first = by_id["42"]
    assert first.employment_category == TEMP
    assert first.corner_code == "AM"
    assert first.schedule_marker == "A1"
    assert first.employment_start_date == pd.Timestamp("2024-01-01")
    assert first.is_present is False
    assert first.is_on_leave is False

    assert by_id["7"].is_present is True
    assert by_id["7"].is_on_leave is True
    assert by_id["8"].is_present is True
    assert by_id["8"].management_area_id == "27"
    assert by_id["8"].employment_start_date is None
    assert by_id["9"].employment_start_date is None
    assert by_id["11"].employment_category == UNKNOWN


def test_enrich_without_vacation_feed(settings, roster_df, mytime_df):
    attendance = index_attendance_feed(mytime_df, settings)
    people = RosterProcessor(settings).enrich(roster_df, attendance)
    assert not any(p.is_on_leave for p in people)


def test_enrich_prefers_explicit_corner_column(settings):
    roster = pd.DataFrame([{"Badge ID": "5", "Dept ID": "1211010", "Shift Pattern": "AM1X", "Corner Code": " DA "}])
    attendance = build_attendance_index(pd.DataFrame(), "Person ID", "On Premises", {"X"})
    (person,) = RosterProcessor(settings).enrich(roster, attendance)
    assert person.corner_code == "DA"
    assert person.schedule_marker == "A1"
    assert person.employment_category == UNKNOWN
    assert person.management_area_id == ""


def test_enrich_corner_only_roster(settings):
    roster = pd.DataFrame([{"Employee ID": "5", "Department ID": "1211010", "Corner": "AM"}])
    attendance = build_attendance_index(pd.DataFrame(), "Person ID", "On Premises", {"X"})
    (person,) = RosterProcessor(settings).enrich(roster, attendance)
    assert person.corner_code == "AM"
    assert person.shift_pattern == ""


@pytest.mark.parametrize("columns, missing", [
    (["Department ID", "Shift Pattern"], ["Employee ID"]),
    (["Employee ID", "Shift Pattern"], ["Department ID"]),
    (["Employee ID", "Department ID"], ["Shift Pattern/Corner"]),
    (["Name"], ["Employee ID", "Department ID", "Shift Pattern/Corner"]),
])
def test_enrich_missing_required_columns(settings, columns, missing):
    roster = pd.DataFrame([{c: "1" for c in columns}])
    attendance = build_attendance_index(pd.DataFrame(), "Person ID", "On Premises", {"X"})
    with pytest.raises(MissingRequiredColumn) as exc:
        RosterProcessor(settings).enrich(roster, attendance)
    assert exc.value.fields == missing
    assert exc.value.source == "roster"


def test_enriched_person_is_immutable(make_person):
    person = make_person()
    with pytest.raises(AttributeError):
        person.is_present = True


def test_people_to_frame(make_person):
    df = people_to_frame([make_person(employee_id="1"), make_person(employee_id="2")])
    assert list(df["employee_id"]) == ["1", "2"]
    assert "corner_code" in df.columns
    assert people_to_frame([]).empty
