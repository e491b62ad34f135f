import csv
import io
import logging
import math
import os
import re
import warnings
from dataclasses import dataclass, field
from datetime import date, datetime, time
from functools import cached_property
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd

from .config import (
    DATE_FORMAT,
    DEFAULT_CONFIG,
    HEADER_MAP,
    ISO_DATE_FORMAT,
    REQUIRED_FIELDS,
    TRUE_LITERAL,
    DashboardConfig,
)
from .errors import EmptyDatasetWarning, FileReadError, RowParseError
from .models import BookingRecord, records_to_frame

logger = logging.getLogger(__name__)

CsvSource = Union[str, bytes, os.PathLike, Any]

STRING_FIELDS = (
    "booking_code",
    "service_city",
    "service_name",
    "region",
    "country",
    "postal_code",
    "city",
    "service_country",
)


# --- strict per-column decoders (raise ValueError on bad input) ---


def parse_german_date(value: str) -> Optional[date]:
    """'05.01.2024' -> date(2024, 1, 5). Empty -> None."""
    text = value.strip()
    if not text:
        return None
    for fmt in (DATE_FORMAT, ISO_DATE_FORMAT):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError("expected a DD.MM.YYYY date")


def parse_booking_timestamp(value: str) -> Optional[datetime]:
    """
    '01.01.2024 10:00' -> datetime(2024, 1, 1, 10, 0).
    Split on the first space; the time part is local wall-clock time.
    """
    text = value.strip()
    if not text:
        return None
    date_part, _, time_part = text.partition(" ")
    day = parse_german_date(date_part)
    time_part = time_part.strip()
    if not time_part:
        return datetime.combine(day, time())
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            clock = datetime.strptime(time_part, fmt).time()
        except ValueError:
            continue
        return datetime.combine(day, clock)
    raise ValueError("expected a HH:MM time after the date")


def parse_decimal(value: str) -> float:
    """Comma-decimal money value ('1.234,56', '100,50') -> float."""
    text = re.sub(r"[€\s]", "", value)
    if not text:
        raise ValueError("empty amount")
    if "," in text:
        # dots are thousands separators when a decimal comma is present
        text = text.replace(".", "").replace(",", ".")
    try:
        number = float(text)
    except ValueError:
        raise ValueError("not a number") from None
    if not math.isfinite(number):
        raise ValueError("not a finite number")
    return number


def parse_count(value: str) -> int:
    text = value.strip()
    if not text:
        return 0
    try:
        return int(text)
    except ValueError:
        number = parse_decimal(text)
        if not number.is_integer():
            raise ValueError("expected a whole number") from None
        return int(number)


def parse_flag(value: str) -> bool:
    return value.strip() == TRUE_LITERAL


# --- import result ---


@dataclass(frozen=True)
class ImportResult:
    records: Tuple[BookingRecord, ...] = ()
    errors: Tuple[RowParseError, ...] = ()
    warnings: Tuple[str, ...] = ()
    source_name: str = "upload.csv"
    columns: Tuple[str, ...] = field(default=())
    # canonical column name -> header text as it appeared in the file
    source_headers: Dict[str, str] = field(default_factory=dict)

    @property
    def rows_imported(self) -> int:
        return len(self.records)

    @property
    def rows_rejected(self) -> int:
        return len(self.errors)

    @property
    def is_empty(self) -> bool:
        return not self.records

    @cached_property
    def frame(self) -> pd.DataFrame:
        return records_to_frame(self.records)


class BookingNormalizer:
    """
    Turns the semicolon-separated booking export into BookingRecords.

    Order:
      1) read raw text (fatal FileReadError on failure)
      2) rename headers (known German headers -> canonical, others lower-cased)
      3) check required columns (catches a wrong delimiter)
      4) drop fully empty rows
      5) decode each row with strict per-column decoders
      6) reject malformed rows with a RowParseError, keep going
    """

    def __init__(self, config: Optional[DashboardConfig] = None):
        self.config = config or DEFAULT_CONFIG

    def normalize(self, source: CsvSource, source_name: Optional[str] = None) -> ImportResult:
        name = source_name or _source_name(source)
        text = self._read_text(source, name)
        bad_lines: List[List[str]] = []
        raw = self._parse_table(text, name, bad_lines)
        source_headers = [str(c).replace("\u00A0", " ").strip() for c in raw.columns]
        raw = self._rename_headers(raw)
        self._check_required(raw, name)
        raw = self._drop_empty_rows(raw)
        row_lines, overlong_lines = self._line_numbers(text)

        records: List[BookingRecord] = []
        errors: List[RowParseError] = [
            RowParseError(
                None,
                "*",
                self.config.delimiter.join(fields),
                "more fields than the header row",
                line=overlong_lines[i] if i < len(overlong_lines) else None,
            )
            for i, fields in enumerate(bad_lines)
        ]
        notes: List[str] = []
        for row_index, row in zip(raw.index, raw.to_dict(orient="records")):
            row_index = int(row_index)
            line = row_lines[row_index] if row_index < len(row_lines) else None
            try:
                record, row_notes = self._decode_row(row_index, line, row)
            except RowParseError as e:
                logger.warning("Rejected row: %s", e)
                errors.append(e)
                continue
            records.append(record)
            notes.extend(row_notes)

        logger.info("Imported %s: %d rows imported, %d rejected", name, len(records), len(errors))
        if not records:
            warnings.warn(f"{name} contains no usable booking rows", EmptyDatasetWarning, stacklevel=2)

        return ImportResult(
            records=tuple(records),
            errors=tuple(errors),
            warnings=tuple(notes),
            source_name=name,
            columns=tuple(raw.columns),
            source_headers=dict(zip(raw.columns, source_headers)),
        )

    def _read_text(self, source: CsvSource, name: str) -> str:
        try:
            if isinstance(source, str):
                return source.lstrip("\ufeff")
            if isinstance(source, (bytes, bytearray)):
                data = bytes(source)
            elif isinstance(source, os.PathLike):
                data = Path(source).read_bytes()
            elif hasattr(source, "read"):
                if hasattr(source, "seek"):
                    source.seek(0)
                data = source.read()
                if isinstance(data, str):
                    return data.lstrip("\ufeff")
            else:
                raise FileReadError(f"unsupported source type {type(source).__name__}", name)
            return data.decode(self.config.encoding)
        except UnicodeDecodeError as e:
            raise FileReadError(f"file is not {self.config.encoding} encoded ({e.reason})", name) from e
        except OSError as e:
            raise FileReadError(f"file could not be read ({e})", name) from e

    def _parse_table(self, text: str, name: str, bad_lines: List[List[str]]) -> pd.DataFrame:
        if not text.strip():
            raise FileReadError("file is empty", name)

        def collect_bad_line(line: List[str]) -> None:
            bad_lines.append(line)
            return None

        try:
            return pd.read_csv(
                io.StringIO(text),
                sep=self.config.delimiter,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                engine="python",
                on_bad_lines=collect_bad_line,
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise FileReadError(f"file is not a valid CSV export ({e})", name) from e

    def _line_numbers(self, text: str) -> Tuple[List[int], List[int]]:
        """
        Source line of every record the table read keeps, in DataFrame index
        order, plus the lines of records rejected for having too many fields.
        Blank lines are skipped the same way read_csv skips them; quoted cells
        spanning several lines count from the line the record starts on.
        """
        reader = csv.reader(io.StringIO(text), delimiter=self.config.delimiter)
        width: Optional[int] = None
        kept: List[int] = []
        overlong: List[int] = []
        start = 1
        for fields in reader:
            line, start = start, reader.line_num + 1
            if not fields or (len(fields) == 1 and not fields[0].strip()):
                continue
            if width is None:
                width = len(fields)
            elif len(fields) > width:
                overlong.append(line)
            else:
                kept.append(line)
        return kept, overlong

    def _rename_headers(self, df: pd.DataFrame) -> pd.DataFrame:
        def canonical(header: str) -> str:
            text = str(header).replace("\u00A0", " ").strip()
            return HEADER_MAP.get(text, text.lower())

        df = df.copy()
        df.columns = [canonical(c) for c in df.columns]
        return df

    def _check_required(self, df: pd.DataFrame, name: str) -> None:
        missing = [col for col in REQUIRED_FIELDS if col not in df.columns]
        if missing:
            raise FileReadError(
                f"missing required columns {missing}; expected a '{self.config.delimiter}'-separated booking export",
                name,
            )

    def _drop_empty_rows(self, df: pd.DataFrame) -> pd.DataFrame:
        if df.empty:
            return df
        blank = df.apply(lambda col: col.fillna("").astype(str).str.strip() == "").all(axis=1)
        if blank.any():
            logger.debug("Dropping %d empty rows", int(blank.sum()))
        return df.loc[~blank]

    def _decode_row(
        self, row_index: int, line: Optional[int], row: Dict[str, str]
    ) -> Tuple[BookingRecord, List[str]]:
        notes: List[str] = []
        where = f"line {line}" if line is not None else f"row {row_index + 1}"

        def cell(name: str) -> str:
            value = row.get(name, "")
            # short rows come back as NaN for the missing trailing cells
            return "" if pd.isna(value) else str(value)

        def decode(name: str, parser, default=None):
            if name not in row:
                return default
            value = cell(name)
            try:
                return parser(value)
            except ValueError as e:
                raise RowParseError(row_index, name, value, str(e), line=line) from None

        values: Dict[str, Any] = {name: cell(name).strip() for name in STRING_FIELDS}
        if not values["booking_code"]:
            raise RowParseError(row_index, "booking_code", "", "missing booking code", line=line)

        values["booking_date"] = decode("booking_date", parse_booking_timestamp)
        values["arrival_date"] = decode("arrival_date", parse_german_date)
        values["departure_date"] = decode("departure_date", parse_german_date)
        values["total_price"] = decode("total_price", parse_decimal, 0.0)
        values["commission"] = decode("commission", parse_decimal, 0.0)
        values["adults"] = decode("adults", parse_count, 0)
        values["children"] = decode("children", parse_count, 0)
        values["persons"] = decode("persons", parse_count, 0)
        values["cancelled"] = decode("cancelled", parse_flag, False)

        cancellation = decode("cancellation_date", parse_german_date)
        if cancellation is not None and not values["cancelled"]:
            notes.append(f"{where}: cancellation date on a booking that is not cancelled, ignored")
            cancellation = None
        values["cancellation_date"] = cancellation

        arrival, departure = values["arrival_date"], values["departure_date"]
        if arrival is not None and departure is not None and departure < arrival:
            notes.append(f"{where}: departure before arrival, nights set to 0")
            logger.warning("Booking %s departs before it arrives", values["booking_code"])

        values["extra"] = {
            name: cell(name) for name in row if name not in BookingRecord.model_fields
        }
        return BookingRecord(**values), notes


def _source_name(source: CsvSource) -> str:
    if isinstance(source, os.PathLike):
        return Path(source).name
    name = getattr(source, "name", None)
    return os.path.basename(name) if isinstance(name, str) else "upload.csv"


normalizer = BookingNormalizer()


def read_bookings_csv(
    source: CsvSource,
    config: Optional[DashboardConfig] = None,
    source_name: Optional[str] = None,
) -> ImportResult:
    """Convenience wrapper around BookingNormalizer.normalize."""
    active = normalizer if config is None else BookingNormalizer(config)
    return active.normalize(source, source_name=source_name)
