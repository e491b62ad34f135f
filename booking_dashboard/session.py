"""
Session state and the dashboard rebuild.

The state is immutable: every transition returns a new SessionState and
every filter change recomputes the whole view from the imported records.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

import pandas as pd

from .aggregation import aggregate, compute_kpis, daily_trends, kpi_changes, monthly_comparison, monthly_series
from .config import DEFAULT_CONFIG, DashboardConfig
from .filters import FilterResult, FilterSpec, apply_filters, filter_by_city
from .models import GroupStats, KpiSummary, empty_frame
from .normalizer import CsvSource, ImportResult, read_bookings_csv
from .tables import sort_groups

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionState:
    dataset: Optional[ImportResult] = None
    filters: FilterSpec = field(default_factory=FilterSpec)

    @property
    def frame(self) -> pd.DataFrame:
        return self.dataset.frame if self.dataset is not None else empty_frame()


@dataclass(frozen=True)
class DashboardView:
    filtered: FilterResult
    kpis: KpiSummary
    previous_kpis: Optional[KpiSummary]
    kpi_changes: Dict[str, Optional[float]]
    accommodations: List[GroupStats]
    all_accommodations: List[GroupStats]
    cities: List[GroupStats]
    monthly: Optional[List[GroupStats]]
    monthly_series: pd.DataFrame
    daily: pd.DataFrame
    logs: List[str]

    @property
    def has_comparison(self) -> bool:
        return self.filtered.has_comparison


def _log(debug: bool, logs: List[str], msg: str) -> None:
    """Collect debug logs and optionally echo them to the module logger."""
    logs.append(msg)
    if debug:
        logger.info("[dashboard] %s", msg)


def load_csv(
    state: SessionState,
    source: CsvSource,
    source_name: Optional[str] = None,
    config: Optional[DashboardConfig] = None,
) -> SessionState:
    """
    Replace the dataset with a freshly imported file; filters are kept.
    A FileReadError propagates and the caller keeps its old state.
    """
    result = read_bookings_csv(source, config=config, source_name=source_name)
    return replace(state, dataset=result)


def with_filters(state: SessionState, **changes) -> SessionState:
    """Return a new state with the given FilterSpec fields changed (validated)."""
    spec = FilterSpec(**{**state.filters.model_dump(), **changes})
    return replace(state, filters=spec)


def clear(state: SessionState) -> SessionState:
    return replace(state, dataset=None)


def build_dashboard(
    state: SessionState,
    config: Optional[DashboardConfig] = None,
    debug: bool = False,
) -> DashboardView:
    """
    Pure rebuild of everything the dashboard shows:
      - filter into current / comparison (the city filter only narrows the accommodation table)
      - KPIs of both periods and their changes
      - accommodations and cities sorted by revenue, truncated to top_n
      - 12-month comparison in year mode, monthly and daily series for the charts
    """
    cfg = config or DEFAULT_CONFIG
    logs: List[str] = []
    spec = state.filters

    df = state.frame
    _log(debug, logs, f"Records in session: {len(df)}")

    filtered = apply_filters(df, spec.model_copy(update={"city": None}))
    current, comparison = filtered.current, filtered.comparison
    _log(debug, logs, f"Filter mode `{spec.mode}`: current={len(current)}, comparison={'-' if comparison is None else len(comparison)}")
    if filtered.excluded_rows:
        _log(debug, logs, f"Excluded {filtered.excluded_rows} bookings without arrival date")

    kpis = compute_kpis(current)
    previous_kpis = compute_kpis(comparison) if comparison is not None else None

    accommodation_groups = aggregate(
        filter_by_city(current, spec.city),
        filter_by_city(comparison, spec.city) if comparison is not None else None,
        by="accommodation",
    )
    city_groups = aggregate(current, comparison, by="city")
    _log(debug, logs, f"Groups: accommodations={len(accommodation_groups)}, cities={len(city_groups)}")

    monthly = monthly_comparison(current, comparison) if spec.is_year_comparison else None

    return DashboardView(
        filtered=filtered,
        kpis=kpis,
        previous_kpis=previous_kpis,
        kpi_changes=kpi_changes(kpis, previous_kpis),
        accommodations=sort_groups(accommodation_groups)[: cfg.top_n],
        all_accommodations=accommodation_groups,
        cities=sort_groups(city_groups)[: cfg.top_n],
        monthly=monthly,
        monthly_series=monthly_series(current),
        daily=daily_trends(current),
        logs=logs,
    )
