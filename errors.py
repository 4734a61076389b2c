"""
errors.py

Fatal error kinds for a reconciliation run. All of them derive from
ValueError so callers that already catch ValueError (file reading,
date parsing) keep working.
"""


class ReconciliationError(ValueError):
    """Base class for errors that stop a single reconciliation run."""


class ConfigUnavailable(ReconciliationError):
    """The settings document could not be loaded or is malformed."""


class MissingRequiredColumn(ReconciliationError):
    """An input file lacks a column the pipeline cannot work without."""

    def __init__(self, source: str, fields: list, columns=None):
        self.source = source
        self.fields = list(fields)
        self.columns = list(columns) if columns is not None else []
        message = f"Missing {source} column(s): {', '.join(self.fields)}."
        if self.columns:
            message += f" Found columns: {', '.join(str(c) for c in self.columns)}"
        super().__init__(message)


class NoScheduleForSelection(ReconciliationError):
    """No corner codes are configured for the chosen day and shift."""

    def __init__(self, shift: str, day_name: str):
        self.shift = shift
        self.day_name = day_name
        super().__init__(
            f"No shift codes configured for {day_name} / {shift}. "
            "Pick another date or shift, or update the shift schedule in settings."
        )
