import logging
import math
from typing import Dict, List, Literal, Optional

import pandas as pd

from .config import DEFAULT_CONFIG, GERMAN_MONTHS, DashboardConfig
from .models import GroupStats, KpiSummary

logger = logging.getLogger(__name__)

Grouping = Literal["accommodation", "city", "month", "year_month"]
GROUPINGS = ("accommodation", "city", "month", "year_month")


def percent_change(current: Optional[float], previous: Optional[float]) -> Optional[float]:
    """(current - previous) / previous * 100, or None when previous is 0 or missing."""
    if current is None or previous is None:
        return None
    if isinstance(previous, float) and math.isnan(previous):
        return None
    if previous == 0:
        return None
    return (current - previous) / previous * 100


def cancellation_severity(rate: float, config: Optional[DashboardConfig] = None) -> str:
    """Classify a cancellation rate (fraction) as 'high', 'medium' or 'low'."""
    cfg = config or DEFAULT_CONFIG
    if rate >= cfg.high_cancellation:
        return "high"
    if rate >= cfg.medium_cancellation:
        return "medium"
    return "low"


def booking_nights(df: pd.DataFrame) -> pd.Series:
    """Nights per booking: departure - arrival in whole days, clamped at 0."""
    arrival = pd.to_datetime(df["arrival_date"], errors="coerce").dt.normalize()
    departure = pd.to_datetime(df["departure_date"], errors="coerce").dt.normalize()
    nights = (departure - arrival).dt.days
    return nights.clip(lower=0).fillna(0).astype(int)


def _group_keys(df: pd.DataFrame, by: str) -> pd.Series:
    if by == "accommodation":
        keys = df["service_name"]
    elif by == "city":
        keys = df["service_city"]
    elif by in ("month", "year_month"):
        arrivals = pd.to_datetime(df["arrival_date"], errors="coerce")
        keys = arrivals.dt.strftime("%m" if by == "month" else "%Y-%m")
    else:
        raise ValueError(f"by must be one of {GROUPINGS}")
    return keys.fillna("").astype(str).str.strip()


def _fold(df: pd.DataFrame, by: str) -> Dict[str, Dict]:
    """
    Single pass over the bookings:
      - every booking counts, cancelled ones also in cancelled_bookings
      - money only from bookings that were not cancelled
      - nights regardless of cancellation
    Keys keep the order in which they first appear.
    """
    if df is None or df.empty:
        return {}

    cancelled = df["cancelled"].astype(bool)
    data = pd.DataFrame(
        {
            "key": _group_keys(df, by),
            "revenue": pd.to_numeric(df["total_price"], errors="coerce").fillna(0.0).where(~cancelled, 0.0),
            "commission": pd.to_numeric(df["commission"], errors="coerce").fillna(0.0).where(~cancelled, 0.0),
            "bookings": 1,
            "cancelled_bookings": cancelled.astype(int),
            "nights": booking_nights(df),
            "city": df["service_city"].fillna("").astype(str),
        },
        index=df.index,
    )
    # bookings without a key do not belong to any group
    data = data.loc[data["key"] != ""]

    grouped = data.groupby("key", sort=False).agg(
        revenue=("revenue", "sum"),
        commission=("commission", "sum"),
        bookings=("bookings", "sum"),
        cancelled_bookings=("cancelled_bookings", "sum"),
        nights=("nights", "sum"),
        city=("city", "first"),
    )
    return grouped.to_dict(orient="index")


def _to_group(key: str, acc: Optional[Dict], by: str) -> GroupStats:
    if acc is None:
        return GroupStats(key=key)
    city = (str(acc["city"]) or None) if by == "accommodation" else None
    return GroupStats(
        key=key,
        city=city,
        revenue=float(acc["revenue"]),
        commission=float(acc["commission"]),
        bookings=int(acc["bookings"]),
        cancelled_bookings=int(acc["cancelled_bookings"]),
        nights=int(acc["nights"]),
    )


def with_comparison(group: GroupStats, previous: Optional[GroupStats]) -> GroupStats:
    """Attach comparison-period figures and percent changes to a group."""
    if previous is None:
        return group
    return group.model_copy(
        update={
            "comparison_revenue": previous.revenue,
            "comparison_commission": previous.commission,
            "comparison_bookings": previous.bookings,
            "comparison_cancelled_bookings": previous.cancelled_bookings,
            "comparison_nights": previous.nights,
            "revenue_change": percent_change(group.revenue, previous.revenue),
            "commission_change": percent_change(group.commission, previous.commission),
            "bookings_change": percent_change(group.bookings, previous.bookings),
            "nights_change": percent_change(group.nights, previous.nights),
            "cancellation_rate_change": percent_change(
                group.cancellation_rate,
                previous.cancellation_rate if previous.bookings else None,
            ),
        }
    )


def aggregate(
    current: pd.DataFrame,
    comparison: Optional[pd.DataFrame] = None,
    by: Grouping = "accommodation",
) -> List[GroupStats]:
    """
    Group bookings by accommodation, city, month ('MM') or year_month ('YYYY-MM').

    Every key of the current set yields one GroupStats; when a comparison set
    is given, matching keys get comparison_* figures and *_change percentages.
    Output order is first appearance; sorting and top-N belong to the view.
    """
    if by not in GROUPINGS:
        raise ValueError(f"by must be one of {GROUPINGS}")

    current_acc = _fold(current, by)
    previous_acc = _fold(comparison, by) if comparison is not None else {}

    groups: List[GroupStats] = []
    for key, acc in current_acc.items():
        group = _to_group(key, acc, by)
        previous = previous_acc.get(key)
        groups.append(with_comparison(group, _to_group(key, previous, by) if previous is not None else None))
    logger.debug("Aggregated %d groups by %s", len(groups), by)
    return groups


def compute_kpis(df: pd.DataFrame) -> KpiSummary:
    """Headline numbers: totals, cancellation rate, commission per booking and lost commission."""
    if df is None or df.empty:
        return KpiSummary()

    cancelled = df["cancelled"].astype(bool)
    price = pd.to_numeric(df["total_price"], errors="coerce").fillna(0.0)
    commission = pd.to_numeric(df["commission"], errors="coerce").fillna(0.0)

    total_bookings = int(len(df))
    cancelled_bookings = int(cancelled.sum())
    active_bookings = total_bookings - cancelled_bookings
    total_commission = float(commission[~cancelled].sum())
    cancelled_commission = float(commission[cancelled].sum())
    commission_base = total_commission + cancelled_commission

    return KpiSummary(
        total_revenue=float(price[~cancelled].sum()),
        total_commission=total_commission,
        total_bookings=total_bookings,
        cancelled_bookings=cancelled_bookings,
        cancellation_rate=cancelled_bookings / total_bookings * 100,
        average_commission=total_commission / active_bookings if active_bookings else 0.0,
        cancelled_commission=cancelled_commission,
        commission_loss_rate=cancelled_commission / commission_base * 100 if commission_base else None,
    )


def kpi_changes(current: KpiSummary, previous: Optional[KpiSummary]) -> Dict[str, Optional[float]]:
    """Percent change per KPI; every value is None without a comparison period."""
    fields = [
        "total_revenue",
        "total_commission",
        "total_bookings",
        "average_commission",
        "cancelled_bookings",
        "cancellation_rate",
        "commission_loss_rate",
    ]
    if previous is None:
        return {name: None for name in fields}
    return {name: percent_change(getattr(current, name), getattr(previous, name)) for name in fields}


def german_month_label(year_month: str) -> str:
    year, month = year_month.split("-")
    return f"{GERMAN_MONTHS[int(month) - 1][:3]} {year}"


def monthly_series(df: pd.DataFrame) -> pd.DataFrame:
    """
    Per arrival month ('YYYY-MM', chronological): arrivals, revenue,
    commission and cancellation rate in percent. Feeds the monthly charts.
    """
    columns = ["year_month", "label", "arrivals", "revenue", "commission", "cancelled", "cancellation_rate"]
    groups = aggregate(df, by="year_month")
    if not groups:
        return pd.DataFrame(columns=columns)

    rows = [
        {
            "year_month": g.key,
            "label": german_month_label(g.key),
            "arrivals": g.bookings,
            "revenue": g.revenue,
            "commission": g.commission,
            "cancelled": g.cancelled_bookings,
            "cancellation_rate": g.cancellation_rate * 100,
        }
        for g in groups
    ]
    return pd.DataFrame(rows, columns=columns).sort_values("year_month").reset_index(drop=True)


def monthly_comparison(current: pd.DataFrame, comparison: Optional[pd.DataFrame]) -> List[GroupStats]:
    """
    Twelve rows (January..December) for the year-over-year table. Months
    without bookings are zero-filled; their changes stay None.
    """
    current_groups = {g.key: g for g in aggregate(current, by="month")}
    previous_groups = {g.key: g for g in aggregate(comparison, by="month")} if comparison is not None else {}

    rows: List[GroupStats] = []
    for number, name in enumerate(GERMAN_MONTHS, start=1):
        key = f"{number:02d}"
        group = current_groups.get(key, GroupStats(key=key)).model_copy(update={"key": name})
        previous = previous_groups.get(key, GroupStats(key=key)) if comparison is not None else None
        rows.append(with_comparison(group, previous))
    return rows


def daily_trends(df: pd.DataFrame) -> pd.DataFrame:
    """Revenue, bookings and commission per booking day, with empty days filled by zeros."""
    columns = ["day", "revenue", "bookings", "commission"]
    if df is None or df.empty:
        return pd.DataFrame(columns=columns)

    cancelled = df["cancelled"].astype(bool)
    data = pd.DataFrame(
        {
            "day": pd.to_datetime(df["booking_date"], errors="coerce").dt.normalize(),
            "revenue": df["total_price"].where(~cancelled, 0.0),
            "bookings": 1,
            "commission": df["commission"].where(~cancelled, 0.0),
        },
        index=df.index,
    ).dropna(subset=["day"])
    if data.empty:
        return pd.DataFrame(columns=columns)

    daily = data.groupby("day")[["revenue", "bookings", "commission"]].sum()
    full_range = pd.date_range(daily.index.min(), daily.index.max(), freq="D")
    daily = daily.reindex(full_range, fill_value=0)
    daily.index.name = "day"
    return daily.reset_index()[columns]


def groups_to_frame(groups: List[GroupStats]) -> pd.DataFrame:
    """Flatten GroupStats (including derived rates) into a DataFrame for st.dataframe and charts."""
    columns = list(GroupStats.model_fields) + ["cancellation_rate", "average_booking_value"]
    rows = []
    for g in groups:
        row = g.model_dump()
        row["cancellation_rate"] = g.cancellation_rate
        row["average_booking_value"] = g.average_booking_value
        rows.append(row)
    return pd.DataFrame(rows, columns=columns)
