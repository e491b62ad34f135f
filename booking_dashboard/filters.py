import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Literal, Optional, Tuple

import pandas as pd
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class FilterSpec(BaseModel):
    """
    Active dashboard filter.

    mode="range": arrival between start and end (both inclusive, whole days);
                  without both bounds every arrival date matches.
    mode="year_comparison": current = arrivals in year1, comparison = arrivals in year2.
    region/city: exact match, applied to both subsets; None or "" means all.
    """

    model_config = ConfigDict(frozen=True)

    mode: Literal["range", "year_comparison"] = "range"
    start: Optional[date] = None
    end: Optional[date] = None
    year1: Optional[int] = None
    year2: Optional[int] = None
    region: Optional[str] = None
    city: Optional[str] = None

    @property
    def is_year_comparison(self) -> bool:
        return self.mode == "year_comparison"


@dataclass(frozen=True)
class FilterResult:
    current: pd.DataFrame
    comparison: Optional[pd.DataFrame] = None
    excluded_rows: int = 0

    @property
    def has_comparison(self) -> bool:
        return self.comparison is not None


def _arrivals(df: pd.DataFrame) -> pd.Series:
    return pd.to_datetime(df["arrival_date"], errors="coerce")


def _attribute_mask(df: pd.DataFrame, spec: FilterSpec) -> pd.Series:
    mask = pd.Series(True, index=df.index)
    if spec.region:
        mask &= df["region"] == spec.region
    if spec.city:
        mask &= df["service_city"] == spec.city
    return mask


def _year_mask(arrivals: pd.Series, year: Optional[int]) -> pd.Series:
    if year is None:
        return pd.Series(False, index=arrivals.index)
    return arrivals.dt.year == year


def _range_mask(arrivals: pd.Series, start: Optional[date], end: Optional[date]) -> pd.Series:
    if start is None or end is None:
        return pd.Series(True, index=arrivals.index)
    lower = pd.Timestamp(start).normalize()
    upper = pd.Timestamp(end).normalize() + pd.Timedelta(days=1) - pd.Timedelta(microseconds=1)
    return arrivals.between(lower, upper, inclusive="both")


def apply_filters(df: pd.DataFrame, spec: FilterSpec) -> FilterResult:
    """
    Split the bookings frame into current (and, in year mode, comparison) subsets.
    Rows without an arrival date cannot be placed in time and are excluded
    from every subset; their number is reported in excluded_rows.
    """
    if df is None:
        raise ValueError("DataFrame is None")

    arrivals = _arrivals(df)
    dated = arrivals.notna()
    excluded = int((~dated).sum())
    if excluded:
        logger.warning("%d bookings without arrival date excluded from filtering", excluded)

    base = dated & _attribute_mask(df, spec)

    if spec.is_year_comparison:
        current = df.loc[base & _year_mask(arrivals, spec.year1)]
        comparison = df.loc[base & _year_mask(arrivals, spec.year2)]
        return FilterResult(current=current, comparison=comparison, excluded_rows=excluded)

    current = df.loc[base & _range_mask(arrivals, spec.start, spec.end)]
    return FilterResult(current=current, comparison=None, excluded_rows=excluded)


def filter_by_city(df: pd.DataFrame, city: Optional[str]) -> pd.DataFrame:
    if not city:
        return df
    return df.loc[df["service_city"] == city]


def _distinct_sorted(series: pd.Series) -> List[str]:
    values = series.dropna().astype(str).str.strip()
    return sorted(v for v in values.unique() if v)


def available_regions(df: pd.DataFrame) -> List[str]:
    return _distinct_sorted(df["region"]) if "region" in df.columns else []


def available_cities(df: pd.DataFrame) -> List[str]:
    return _distinct_sorted(df["service_city"]) if "service_city" in df.columns else []


def available_years(df: pd.DataFrame) -> List[int]:
    years = _arrivals(df).dt.year.dropna().astype(int).unique()
    return sorted(int(y) for y in years)


def date_bounds(df: pd.DataFrame) -> Optional[Tuple[date, date]]:
    """First and last arrival date in the frame, or None when there is none."""
    arrivals = _arrivals(df).dropna()
    if arrivals.empty:
        return None
    return arrivals.min().date(), arrivals.max().date()
