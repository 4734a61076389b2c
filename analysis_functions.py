import logging
from dataclasses import dataclass, field
from typing import Dict, List

import pandas as pd

# Import configurations and helper functions from config.py
from config import AUDIT_SAMPLE_LIMIT, TOP_VALUES_LIMIT
from data_processing import AMZN, TEMP, UNKNOWN, AttendanceIndex, EnrichedPerson
from report_generation import CohortStages, HeadcountReport

SAMPLE_KEYS = ["exp-amzn", "exp-temp", "exp-tot", "pre-amzn", "pre-temp", "pre-tot"]


@dataclass
class AuditReport:
    """Read-only summaries of one run, used to check the pipeline's own numbers."""
    funnel: pd.DataFrame
    distributions: Dict[str, pd.DataFrame]
    marker_histogram: pd.DataFrame
    present_markers: List[str]
    unknown_types: int
    id_matches: int
    samples: Dict[str, Dict[str, List[EnrichedPerson]]] = field(default_factory=dict)

    def funnel_value(self, stage: str) -> int:
        match = self.funnel.loc[self.funnel['Stage'] == stage, 'Rows']
        return int(match.iloc[0]) if not match.empty else 0


def top_value_counts(values, limit: int = TOP_VALUES_LIMIT) -> pd.DataFrame:
    """
    Frequency table of the most common values (blank shown as '(blank)').

    Returns:
        pd.DataFrame: columns ['Value', 'Count'], most frequent first.
    """
    series = pd.Series(list(values), dtype=object).fillna("").astype(str)
    series = series.replace("", "(blank)")
    counts = series.value_counts().head(limit)
    return pd.DataFrame({'Value': counts.index.astype(str), 'Count': counts.values.astype(int)})


def build_distributions(people: List[EnrichedPerson], limit: int = TOP_VALUES_LIMIT) -> Dict[str, pd.DataFrame]:
    """Top values of corner, department, management area and employment type."""
    return {
        'Corner': top_value_counts((p.corner_code for p in people), limit),
        'Department ID': top_value_counts((p.department_id for p in people), limit),
        'Management Area ID': top_value_counts((p.management_area_id for p in people), limit),
        'Employment Type': top_value_counts((p.employment_category for p in people), limit),
    }


def build_marker_histogram(marker_counts: dict) -> pd.DataFrame:
    rows = [{'Marker': k if k else '(blank)', 'Rows': v} for k, v in marker_counts.items()]
    df = pd.DataFrame(rows, columns=['Marker', 'Rows'])
    return df.sort_values(by='Rows', ascending=False, kind='stable').reset_index(drop=True)


def build_funnel(roster_rows: int, mytime_rows: int, vacation_rows: int,
                 stages: CohortStages, report: HeadcountReport, id_matches: int) -> pd.DataFrame:
    """Row counts at each stage of the pipeline, in order."""
    bucketed = sum(len(rows) for rows in report.expected_groups.values())
    funnel = [
        ('Roster rows', roster_rows),
        ('MyTime rows', mytime_rows),
        ('Vacation rows', vacation_rows),
        ('Roster rows with ID', sum(1 for p in stages.enriched if p.employee_id)),
        ('After corner filter', len(stages.after_corner)),
        ('After new-hire filter', len(stages.after_new_hire)),
        ('ID matches in MyTime', id_matches),
        ('Vacation excluded', report.vacation_excluded),
        ('Expected cohort', len(stages.expected)),
        ('Expected cohort in a bucket', bucketed),
        ('Present (pre-vacation cohort)', sum(1 for p in stages.pre_vacation if p.is_present)),
    ]
    return pd.DataFrame(funnel, columns=['Stage', 'Rows'])


def sample_groups(report: HeadcountReport, limit: int = AUDIT_SAMPLE_LIMIT) -> Dict[str, Dict[str, List[EnrichedPerson]]]:
    """Up to `limit` drill-down rows per bucket for each expected/present and type combination."""
    samples = {}
    for name in report.bucket_order:
        exp_rows = report.expected_groups[name]
        pre_rows = report.present_groups[name]
        samples[name] = {
            'exp-amzn': [p for p in exp_rows if p.employment_category == AMZN][:limit],
            'exp-temp': [p for p in exp_rows if p.employment_category == TEMP][:limit],
            'exp-tot': exp_rows[:limit],
            'pre-amzn': [p for p in pre_rows if p.employment_category == AMZN][:limit],
            'pre-temp': [p for p in pre_rows if p.employment_category == TEMP][:limit],
            'pre-tot': pre_rows[:limit],
        }
    return samples


def samples_to_frame(rows: List[EnrichedPerson]) -> pd.DataFrame:
    """Drill-down view of sampled people."""
    return pd.DataFrame(
        [{
            'empId': p.employee_id,
            'empType': p.employment_category,
            'deptId': p.department_id,
            'areaId': p.management_area_id,
            'corner': p.corner_code,
            'onPrem': 'YES' if p.is_present else 'NO',
            'vac': 'YES' if p.is_on_leave else 'NO',
        } for p in rows],
        columns=['empId', 'empType', 'deptId', 'areaId', 'corner', 'onPrem', 'vac'],
    )


def build_audit(roster_rows: int, attendance: AttendanceIndex, vacation_rows: int,
                stages: CohortStages, report: HeadcountReport, present_markers) -> AuditReport:
    """
    Derives the audit report from a finished run. Inputs are only read.

    UNKNOWN employment types never reach the headcount tables, so their count
    is reported here and logged as a warning.
    """
    id_matches = sum(1 for p in stages.pre_vacation if p.employee_id and p.employee_id in attendance)
    unknown_types = sum(1 for p in stages.pre_vacation if p.employment_category == UNKNOWN)
    if unknown_types > 0:
        logging.warning(f"Found {unknown_types} UNKNOWN employment types; update the classifier if needed.")

    return AuditReport(
        funnel=build_funnel(roster_rows, attendance.rows, vacation_rows, stages, report, id_matches),
        distributions=build_distributions(stages.after_corner),
        marker_histogram=build_marker_histogram(attendance.marker_counts),
        present_markers=sorted(present_markers),
        unknown_types=unknown_types,
        id_matches=id_matches,
        samples=sample_groups(report),
    )
