"""
Error taxonomy for the import/aggregation pipeline.

  - FileReadError: the whole file is unusable, nothing gets imported
  - RowParseError: a single row is malformed; the row is skipped and reported
  - EmptyDatasetWarning: zero records is a valid state, not a failure
"""

from typing import Optional


class DashboardError(Exception):
    """Base class for all booking dashboard errors."""


class FileReadError(DashboardError):
    """Unreadable or wrongly formatted CSV file."""

    def __init__(self, reason: str, source_name: Optional[str] = None):
        self.reason = reason
        self.source_name = source_name
        prefix = f"{source_name}: " if source_name else ""
        super().__init__(f"{prefix}{reason}")


class RowParseError(DashboardError):
    """A single row could not be decoded."""

    def __init__(
        self,
        row_index: Optional[int],
        field: str,
        value: str,
        reason: str,
        line: Optional[int] = None,
    ):
        self.row_index = row_index
        self.field = field
        self.value = value
        self.reason = reason
        # physical line in the source file, 1-based, header included
        self.line = line
        where = f"line {line}" if line is not None else "unnumbered line"
        super().__init__(f"{where}, field '{field}': {reason} (value={value!r})")


class EmptyDatasetWarning(UserWarning):
    """The imported file contains no usable booking rows."""
