"""
reconciliation.py

Runs one reconciliation: raw frames in, headcount report + audit out.

    raw rows -> attendance/vacation indexes -> enriched roster
             -> corner / new-hire / vacation filters -> buckets -> counts

Every call builds its own indexes and records from the frames it is given;
nothing is cached between runs.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Tuple

import pandas as pd

from analysis_functions import AuditReport, build_audit
from config import Settings
from data_processing import RosterProcessor, index_attendance_feed, read_uploaded_file
from report_generation import HeadcountReport, ReportGenerator, Selection
from vacation_adjustment import build_vacation_index, load_vacation_file


@dataclass
class ReconciliationResult:
    selection: Selection
    corner_codes: Tuple[str, ...]
    report: HeadcountReport
    audit: AuditReport
    export_df: pd.DataFrame
    vacation_supplied: bool

    @property
    def day_name(self) -> str:
        return self.selection.day_name

    @property
    def expected_note(self) -> str:
        return (
            "Expected = (Corner-filtered cohort) - (Vacation exclusions). "
            f"Vacation excluded: {self.report.vacation_excluded}"
        )

    @property
    def export_filename(self) -> str:
        return f"audit_{self.day_name}_{self.selection.shift}.csv"


def read_input_files(roster_file, mytime_file, vacation_file=None) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """
    Reads the uploaded files in parallel. The MyTime export has a title line
    above its header; the vacation file's header position is detected.

    Returns:
        (roster_df, mytime_df, vacation_df); vacation_df is empty when no file is given.
    """
    with ThreadPoolExecutor(max_workers=3) as pool:
        roster_future = pool.submit(read_uploaded_file, roster_file)
        mytime_future = pool.submit(read_uploaded_file, mytime_file, True)
        vacation_future = pool.submit(load_vacation_file, vacation_file) if vacation_file is not None else None

        roster_df = roster_future.result()
        mytime_df = mytime_future.result()
        vacation_df = vacation_future.result() if vacation_future is not None else pd.DataFrame()

    logging.info(
        f"Read roster={len(roster_df)} rows, mytime={len(mytime_df)} rows, vacation={len(vacation_df)} rows."
    )
    return roster_df, mytime_df, vacation_df


def run_reconciliation(roster_df: pd.DataFrame, mytime_df: pd.DataFrame, settings: Settings,
                       selection: Selection, vacation_df: Optional[pd.DataFrame] = None) -> ReconciliationResult:
    """
    Computes expected vs present headcount per department bucket.

    Raises:
        NoScheduleForSelection: no corner codes for the selected day/shift.
        MissingRequiredColumn: roster or MyTime lacks a required column.
    """
    # Selection errors are reported before column errors.
    codes = settings.corner_codes(selection.shift, selection.day_name)

    attendance = index_attendance_feed(mytime_df, settings)

    vacation_supplied = vacation_df is not None and not vacation_df.empty
    vacation = build_vacation_index(vacation_df) if vacation_supplied else None

    people = RosterProcessor(settings).enrich(roster_df, attendance, vacation)

    generator = ReportGenerator(settings)
    stages = generator.filter_cohort(people, selection)
    report = generator.generate_report(stages)

    audit = build_audit(
        roster_rows=len(roster_df),
        attendance=attendance,
        vacation_rows=vacation.rows if vacation is not None else 0,
        stages=stages,
        report=report,
        present_markers=settings.present_markers,
    )

    logging.info(
        f"{selection.day_name} {selection.shift}: expected={report.expected_total.TOTAL}, "
        f"present={report.present_total.TOTAL} ({report.present_percentage}%), "
        f"vacation excluded={report.vacation_excluded}"
    )

    return ReconciliationResult(
        selection=selection,
        corner_codes=codes,
        report=report,
        audit=audit,
        export_df=generator.build_export_table(report),
        vacation_supplied=vacation_supplied,
    )
