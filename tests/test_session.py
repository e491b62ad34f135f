import pytest
from pydantic import ValidationError

from booking_dashboard.config import DashboardConfig
from booking_dashboard.errors import FileReadError
from booking_dashboard.session import SessionState, build_dashboard, clear, load_csv, with_filters


def test_empty_session_builds_empty_dashboard():
    view = build_dashboard(SessionState())
    assert view.kpis.total_bookings == 0
    assert view.accommodations == []
    assert view.monthly is None
    assert view.daily.empty
    assert not view.has_comparison


def test_load_replaces_dataset_and_keeps_filters(sample_csv, make_csv):
    state = with_filters(SessionState(), region="Nord")
    loaded = load_csv(state, sample_csv, source_name="bookings.csv")

    assert state.dataset is None
    assert loaded.dataset.source_name == "bookings.csv"
    assert loaded.dataset.rows_imported == 4
    assert loaded.filters.region == "Nord"

    replaced = load_csv(loaded, make_csv({"BookingCode": "X1"}))
    assert [r.booking_code for r in replaced.dataset.records] == ["X1"]


def test_failed_load_propagates(sample_csv):
    state = load_csv(SessionState(), sample_csv)
    with pytest.raises(FileReadError):
        load_csv(state, "")
    assert state.dataset.rows_imported == 4
    assert clear(state).dataset is None


def test_with_filters_validates():
    state = with_filters(SessionState(), mode="year_comparison", year1=2024)
    assert state.filters.is_year_comparison
    assert state.filters.year1 == 2024
    with pytest.raises(ValidationError):
        with_filters(state, mode="quarter")


def test_range_dashboard(sample_csv):
    state = load_csv(SessionState(), sample_csv)
    view = build_dashboard(state, debug=True)

    assert view.kpis.total_bookings == 4
    assert [g.key for g in view.accommodations] == ["Hotel B", "Hotel A", "Hotel C"]
    assert [g.key for g in view.cities] == ["Hamburg", "Berlin", "München"]
    assert view.monthly is None
    assert len(view.monthly_series) == 3
    assert view.logs


def test_year_comparison_dashboard(sample_csv):
    state = with_filters(load_csv(SessionState(), sample_csv), mode="year_comparison", year1=2024, year2=2023)
    view = build_dashboard(state)

    assert view.has_comparison
    assert view.kpis.total_bookings == 3
    assert view.previous_kpis.total_bookings == 1
    assert view.kpi_changes["total_bookings"] == pytest.approx(200.0)
    assert len(view.monthly) == 12


def test_city_filter_only_narrows_accommodations(sample_csv):
    state = with_filters(load_csv(SessionState(), sample_csv), city="Berlin")
    view = build_dashboard(state)

    assert [g.key for g in view.accommodations] == ["Hotel A"]
    assert len(view.cities) == 3
    assert view.kpis.total_bookings == 4


def test_top_n_from_config(sample_csv):
    state = load_csv(SessionState(), sample_csv)
    view = build_dashboard(state, DashboardConfig(top_n=1))
    assert [g.key for g in view.accommodations] == ["Hotel B"]
    assert len(view.all_accommodations) == 3
