"""
View-layer helpers over the pure aggregate lists and the bookings frame:
sorting, top-N truncation, pagination, the bookings search box and the
formatted group tables.
"""

import math
from typing import List, Optional, Sequence, Tuple, TypeVar

import pandas as pd

from .aggregation import groups_to_frame
from .config import TOP_N
from .formatters import format_change, format_currency, format_percentage
from .models import GroupStats

T = TypeVar("T")

GROUP_SORT_KEYS = ("revenue", "commission", "bookings", "cancelled_bookings", "nights", "cancellation_rate", "key")

SEARCH_COLUMNS = (
    "booking_code",
    "service_name",
    "service_city",
    "region",
    "country",
    "city",
    "postal_code",
    "service_country",
)


def sort_groups(groups: Sequence[GroupStats], key: str = "revenue", descending: bool = True) -> List[GroupStats]:
    """Stable sort; ties keep their aggregation order."""
    if key not in GROUP_SORT_KEYS:
        raise ValueError(f"cannot sort groups by {key!r}")
    return sorted(groups, key=lambda g: getattr(g, key), reverse=descending)


def top_n(groups: Sequence[GroupStats], n: int = TOP_N, key: str = "revenue") -> List[GroupStats]:
    return sort_groups(groups, key=key)[:n]


def page_count(total: int, page_size: int) -> int:
    return max(1, math.ceil(total / page_size))


def paginate(items: Sequence[T], page: int, page_size: int) -> Tuple[Sequence[T], int]:
    """
    Slice one page (1-based) out of items. Out-of-range pages are clamped.
    Returns (page_items, page_count). Works for lists and DataFrames.
    """
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    pages = page_count(len(items), page_size)
    page = min(max(page, 1), pages)
    start = (page - 1) * page_size
    if isinstance(items, pd.DataFrame):
        return items.iloc[start : start + page_size], pages
    return items[start : start + page_size], pages


def search_bookings(df: pd.DataFrame, term: Optional[str]) -> pd.DataFrame:
    """Case-insensitive substring match over the text columns of the bookings frame."""
    if df is None:
        raise ValueError("DataFrame is None")
    needle = (term or "").strip().lower()
    if not needle or df.empty:
        return df
    mask = pd.Series(False, index=df.index)
    for col in SEARCH_COLUMNS:
        if col in df.columns:
            mask |= df[col].fillna("").astype(str).str.lower().str.contains(needle, regex=False)
    return df.loc[mask]


def sort_bookings(df: pd.DataFrame, column: str = "booking_date", descending: bool = True) -> pd.DataFrame:
    if column not in df.columns:
        raise ValueError(f"unknown column {column!r}")
    return df.sort_values(column, ascending=not descending, kind="stable", na_position="last")


def display_groups(groups: Sequence[GroupStats], by: str, with_comparison: bool) -> pd.DataFrame:
    """Groups as a German-formatted table for st.dataframe."""
    frame = groups_to_frame(list(groups))
    table = pd.DataFrame(index=frame.index)
    table["Rang"] = range(1, len(frame) + 1)
    table["Monat" if by == "month" else ("Stadt" if by == "city" else "Unterkunft")] = frame["key"]
    if by == "accommodation":
        table["Stadt"] = frame["city"].fillna("")
    table["Umsatz"] = frame["revenue"].map(format_currency)
    table["Buchungen"] = frame["bookings"]
    table["Provision"] = frame["commission"].map(format_currency)
    table["Nächte"] = frame["nights"]
    table["Stornoquote"] = frame["cancellation_rate"].map(format_percentage)
    if with_comparison:
        table["Umsatz Vergleich"] = frame["comparison_revenue"].map(lambda v: format_currency(v) if pd.notna(v) else "-")
        for header, column in (
            ("Umsatz Δ", "revenue_change"),
            ("Buchungen Δ", "bookings_change"),
            ("Provision Δ", "commission_change"),
            ("Nächte Δ", "nights_change"),
            ("Stornoquote Δ", "cancellation_rate_change"),
        ):
            table[header] = frame[column].map(lambda v: format_change(v) or "-")
    return table
