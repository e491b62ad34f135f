from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field


class BookingRecord(BaseModel):
    """One normalized row of the booking export."""

    model_config = ConfigDict(frozen=True)

    booking_code: str
    booking_date: Optional[datetime] = None
    arrival_date: Optional[date] = None
    departure_date: Optional[date] = None
    service_city: str = ""
    service_name: str = ""
    region: str = ""
    total_price: float = 0.0
    adults: int = 0
    children: int = 0
    persons: int = 0
    country: str = ""
    postal_code: str = ""
    city: str = ""
    service_country: str = ""
    cancelled: bool = False
    cancellation_date: Optional[date] = None
    commission: float = 0.0
    extra: Dict[str, str] = Field(default_factory=dict)

    @property
    def nights(self) -> int:
        if self.arrival_date is None or self.departure_date is None:
            return 0
        return max(0, (self.departure_date - self.arrival_date).days)


class GroupStats(BaseModel):
    """Aggregated figures for one accommodation, city or month."""

    model_config = ConfigDict(frozen=True)

    key: str
    city: Optional[str] = None
    revenue: float = 0.0
    commission: float = 0.0
    bookings: int = 0
    cancelled_bookings: int = 0
    nights: int = 0

    comparison_revenue: Optional[float] = None
    comparison_commission: Optional[float] = None
    comparison_bookings: Optional[int] = None
    comparison_cancelled_bookings: Optional[int] = None
    comparison_nights: Optional[int] = None

    revenue_change: Optional[float] = None
    commission_change: Optional[float] = None
    bookings_change: Optional[float] = None
    nights_change: Optional[float] = None
    cancellation_rate_change: Optional[float] = None

    @property
    def cancellation_rate(self) -> float:
        return self.cancelled_bookings / self.bookings if self.bookings else 0.0

    @property
    def comparison_cancellation_rate(self) -> Optional[float]:
        if not self.comparison_bookings:
            return None
        return (self.comparison_cancelled_bookings or 0) / self.comparison_bookings

    @property
    def average_booking_value(self) -> float:
        return self.revenue / self.bookings if self.bookings else 0.0

    @property
    def has_comparison(self) -> bool:
        return self.comparison_bookings is not None


class KpiSummary(BaseModel):
    """Headline numbers for a record set."""

    model_config = ConfigDict(frozen=True)

    total_revenue: float = 0.0
    total_commission: float = 0.0
    total_bookings: int = 0
    cancelled_bookings: int = 0
    cancellation_rate: float = 0.0       # percent
    average_commission: float = 0.0      # per non-cancelled booking
    cancelled_commission: float = 0.0
    commission_loss_rate: Optional[float] = None  # percent


# Canonical column order of the bookings DataFrame
FRAME_COLUMNS: List[str] = [
    "booking_code",
    "booking_date",
    "arrival_date",
    "departure_date",
    "service_city",
    "service_name",
    "region",
    "total_price",
    "adults",
    "children",
    "persons",
    "country",
    "postal_code",
    "city",
    "service_country",
    "cancelled",
    "cancellation_date",
    "commission",
]

DATE_COLUMNS = ("booking_date", "arrival_date", "departure_date", "cancellation_date")
COUNT_COLUMNS = ("adults", "children", "persons")
MONEY_COLUMNS = ("total_price", "commission")


def records_to_frame(records: Iterable[BookingRecord]) -> pd.DataFrame:
    """
    Tabular view of the records, used by filters, aggregation and export.
    Date columns become datetime64 (NaT where absent). Pass-through columns
    from `extra` follow FRAME_COLUMNS in first-seen order.
    """
    records = list(records)
    extras: List[str] = []
    for record in records:
        extras += [k for k in record.extra if k not in extras]

    rows = []
    for record in records:
        row = record.model_dump(exclude={"extra"})
        row.update({k: record.extra.get(k, "") for k in extras})
        rows.append(row)
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS + extras)
    for col in DATE_COLUMNS:
        df[col] = pd.to_datetime(df[col], errors="coerce")
    for col in MONEY_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0.0).astype(float)
    for col in COUNT_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0).astype(int)
    df["cancelled"] = df["cancelled"].fillna(False).astype(bool)
    return df


def extra_columns(df: pd.DataFrame) -> List[str]:
    return [col for col in df.columns if col not in FRAME_COLUMNS]


def empty_frame() -> pd.DataFrame:
    return records_to_frame([])
