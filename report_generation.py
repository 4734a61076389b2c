import io
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

import pandas as pd

# Import helper functions from config.py
from config import (
    NEW_HIRE_MIN_DAYS,
    OTHER_BUCKET,
    BucketRule,
    Settings,
    day_name_for,
)
from data_processing import AMZN, TEMP, EnrichedPerson

EXPORT_COLUMNS = ["empId", "empType", "deptId", "areaId", "corner", "onPrem", "vac", "bucket"]


@dataclass(frozen=True)
class CountBlock:
    """AMZN/TEMP headcount; TOTAL is always AMZN + TEMP (UNKNOWN never counted)."""
    AMZN: int = 0
    TEMP: int = 0

    @property
    def TOTAL(self) -> int:
        return self.AMZN + self.TEMP

    def __add__(self, other: "CountBlock") -> "CountBlock":
        return CountBlock(self.AMZN + other.AMZN, self.TEMP + other.TEMP)

    def as_dict(self) -> dict:
        return {"AMZN": self.AMZN, "TEMP": self.TEMP, "TOTAL": self.TOTAL}


@dataclass(frozen=True)
class Selection:
    """What the user picked for this run."""
    selected_date: date
    shift: str
    exclude_new_hires: bool = False
    exclude_vacation: bool = True

    @property
    def day_name(self) -> str:
        return day_name_for(self.selected_date)


@dataclass(frozen=True)
class TaggedPerson:
    """An enriched person plus the bucket it was assigned to."""
    person: EnrichedPerson
    bucket: str


@dataclass
class CohortStages:
    """Row sets produced by each filter stage, in order."""
    enriched: List[EnrichedPerson]
    after_corner: List[EnrichedPerson]
    after_new_hire: List[EnrichedPerson]
    expected: List[EnrichedPerson]

    @property
    def pre_vacation(self) -> List[EnrichedPerson]:
        return self.after_new_hire


@dataclass
class HeadcountReport:
    """Expected and present counts per bucket for one run."""
    bucket_order: List[str]
    expected: Dict[str, CountBlock]
    present: Dict[str, CountBlock]
    expected_groups: Dict[str, List[EnrichedPerson]]
    present_groups: Dict[str, List[EnrichedPerson]]
    vacation_excluded: int
    vacation_excluded_by_bucket: Dict[str, int] = field(default_factory=dict)
    tagged: List[TaggedPerson] = field(default_factory=list)

    @property
    def expected_total(self) -> CountBlock:
        return sum_blocks(self.expected)

    @property
    def present_total(self) -> CountBlock:
        return sum_blocks(self.present)

    @property
    def present_percentage(self) -> str:
        return format_percentage(self.present_total.TOTAL, self.expected_total.TOTAL)

    @property
    def status(self) -> str:
        return "ok" if self.present_total.TOTAL >= self.expected_total.TOTAL else "warn"


# --------------------------- Helpers ---------------------------

def count_by_type(rows: List[EnrichedPerson], present_only: bool = False) -> CountBlock:
    """Counts AMZN and TEMP rows; with present_only, only people marked present."""
    base = [r for r in rows if r.is_present] if present_only else rows
    amzn = sum(1 for r in base if r.employment_category == AMZN)
    temp = sum(1 for r in base if r.employment_category == TEMP)
    return CountBlock(amzn, temp)


def sum_blocks(blocks: Dict[str, CountBlock]) -> CountBlock:
    total = CountBlock()
    for block in blocks.values():
        total = total + block
    return total


def format_percentage(present_total: int, expected_total: int) -> str:
    """present / expected * 100 with one decimal; "0.0" when nothing is expected."""
    if not expected_total:
        return "0.0"
    return f"{present_total / expected_total * 100:.1f}"


def days_since_start(person: EnrichedPerson, selected_date: date) -> Optional[int]:
    """Whole days between the start date and the selected date (midnight); None without a start date."""
    if person.employment_start_date is None:
        return None
    delta = pd.Timestamp(selected_date).normalize() - person.employment_start_date
    return delta.days


def blocks_to_frame(blocks: Dict[str, CountBlock], bucket_order: List[str]) -> pd.DataFrame:
    """Department table with a trailing Total row (AMZN / TEMP / TOTAL columns)."""
    rows = [{"Department": name, **blocks[name].as_dict()} for name in bucket_order]
    rows.append({"Department": "Total", **sum_blocks(blocks).as_dict()})
    return pd.DataFrame(rows, columns=["Department", "AMZN", "TEMP", "TOTAL"])


class ReportGenerator:
    """
    Applies the corner, new-hire and vacation filters, assigns every person to
    at most one department bucket and counts expected vs present headcount.
    """

    def __init__(self, settings: Settings):
        """
        Initializes the ReportGenerator with the loaded settings.

        Args:
            settings (Settings): Buckets, shift schedule and present markers.
        """
        self.settings = settings
        self._effective_ids = self._build_effective_ids(settings.buckets)
        # Carving buckets (e.g. DA) win over the buckets they carve from.
        carving = [b for b in settings.buckets if b.carve_from]
        self.precedence = carving + [b for b in settings.buckets if not b.carve_from]

    @staticmethod
    def _build_effective_ids(buckets) -> Dict[str, frozenset]:
        effective = {b.name: set(b.dept_ids) for b in buckets}
        for bucket in buckets:
            for target in bucket.carve_from:
                if target in effective:
                    effective[target] -= bucket.dept_ids
        return {name: frozenset(ids) for name, ids in effective.items()}

    def belongs(self, person: EnrichedPerson, bucket: BucketRule) -> bool:
        if person.department_id not in self._effective_ids[bucket.name]:
            return False
        if bucket.management_area_id is not None:
            return person.management_area_id == bucket.management_area_id
        return True

    def assign_bucket(self, person: EnrichedPerson) -> str:
        """Name of the single bucket this person belongs to, or 'Other'."""
        for bucket in self.precedence:
            if self.belongs(person, bucket):
                return bucket.name
        return OTHER_BUCKET

    def filter_cohort(self, people: List[EnrichedPerson], selection: Selection) -> CohortStages:
        """
        Runs the filter stages in their fixed order:
        corner codes -> new-hire exclusion -> vacation exclusion (expected only).

        Raises:
            NoScheduleForSelection: nothing is configured for the day/shift.
        """
        codes = set(self.settings.corner_codes(selection.shift, selection.day_name))
        after_corner = [p for p in people if p.corner_code in codes]

        after_new_hire = after_corner
        if selection.exclude_new_hires:
            after_new_hire = []
            for p in after_corner:
                days = days_since_start(p, selection.selected_date)
                if days is None or days >= NEW_HIRE_MIN_DAYS:
                    after_new_hire.append(p)

        expected = after_new_hire
        if selection.exclude_vacation:
            expected = [p for p in after_new_hire if not p.is_on_leave]

        return CohortStages(people, after_corner, after_new_hire, expected)

    def group(self, rows: List[EnrichedPerson]) -> Dict[str, List[EnrichedPerson]]:
        groups = {name: [] for name in self.settings.bucket_names}
        for person in rows:
            bucket = self.assign_bucket(person)
            if bucket in groups:
                groups[bucket].append(person)
        return groups

    def generate_report(self, stages: CohortStages) -> HeadcountReport:
        """
        Buckets the filtered cohorts and counts them.

        Expected counts come from the vacation-filtered cohort. Present counts
        come from the pre-vacation cohort so someone marked on leave but seen
        on premises still shows up as present.
        """
        bucket_order = self.settings.bucket_names
        pre_groups = self.group(stages.pre_vacation)
        expected_groups = self.group(stages.expected)
        present_groups = {name: [p for p in rows if p.is_present] for name, rows in pre_groups.items()}

        expected = {name: count_by_type(expected_groups[name]) for name in bucket_order}
        present = {name: count_by_type(pre_groups[name], present_only=True) for name in bucket_order}

        vacation_excluded = len(stages.pre_vacation) - len(stages.expected)
        vacation_excluded_by_bucket = {
            name: len(pre_groups[name]) - len(expected_groups[name]) for name in bucket_order
        }

        tagged = [TaggedPerson(p, self.assign_bucket(p)) for p in stages.pre_vacation]

        return HeadcountReport(
            bucket_order=bucket_order,
            expected=expected,
            present=present,
            expected_groups=expected_groups,
            present_groups=present_groups,
            vacation_excluded=vacation_excluded,
            vacation_excluded_by_bucket=vacation_excluded_by_bucket,
            tagged=tagged,
        )

    def build_export_table(self, report: HeadcountReport) -> pd.DataFrame:
        """Per-person bucket / type / presence / leave tags for download."""
        rows = []
        for item in report.tagged:
            p = item.person
            rows.append({
                "empId": p.employee_id,
                "empType": p.employment_category,
                "deptId": p.department_id,
                "areaId": p.management_area_id,
                "corner": p.corner_code,
                "onPrem": "YES" if p.is_present else "NO",
                "vac": "YES" if p.is_on_leave else "NO",
                "bucket": item.bucket,
            })
        return pd.DataFrame(rows, columns=EXPORT_COLUMNS)

    def export_to_csv(self, export_df: pd.DataFrame) -> bytes:
        return export_df.to_csv(index=False).encode("utf-8")

    def export_to_excel(self, report: HeadcountReport, export_df: pd.DataFrame, output_buffer: io.BytesIO):
        """Writes Expected, Present and Audit Rows sheets into the buffer (openpyxl)."""
        with pd.ExcelWriter(output_buffer, engine='openpyxl') as writer:
            blocks_to_frame(report.expected, report.bucket_order).to_excel(writer, sheet_name='Expected', index=False)
            blocks_to_frame(report.present, report.bucket_order).to_excel(writer, sheet_name='Present', index=False)
            export_df.to_excel(writer, sheet_name='Audit Rows', index=False)
        output_buffer.seek(0)
