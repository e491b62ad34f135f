import plotly.graph_objects as go
import pytest

from booking_dashboard.aggregation import aggregate, daily_trends, monthly_series
from booking_dashboard.charts import (
    THEMES,
    arrivals_chart,
    booking_trends_chart,
    cancellation_rate_chart,
    monthly_commission_chart,
    top_accommodations_chart,
)
from booking_dashboard.models import empty_frame
from booking_dashboard.normalizer import read_bookings_csv


@pytest.mark.parametrize("theme", list(THEMES) + ["Unknown"])
def test_monthly_charts_render(sample_csv, theme):
    monthly = monthly_series(read_bookings_csv(sample_csv).frame)
    for build in (monthly_commission_chart, arrivals_chart, cancellation_rate_chart):
        fig = build(monthly, theme=theme)
        assert isinstance(fig, go.Figure)
        assert fig.layout.height == 420
        assert list(fig.data[0].x) == ["Mär 2023", "Jan 2024", "Feb 2024"]


def test_top_accommodations_chart(sample_csv):
    groups = aggregate(read_bookings_csv(sample_csv).frame, by="accommodation")

    fig = top_accommodations_chart(groups, metric="revenue", n=2)
    # best accommodation drawn on top of the horizontal bar chart
    assert list(fig.data[0].y) == ["Hotel A", "Hotel B"]

    by_average = top_accommodations_chart(groups, metric="average")
    assert len(by_average.data[0].y) == 3

    with pytest.raises(ValueError):
        top_accommodations_chart(groups, metric="nights")


def test_booking_trends_chart(sample_csv):
    daily = daily_trends(read_bookings_csv(sample_csv).frame)
    fig = booking_trends_chart(daily)
    assert len(fig.data) == 2
    assert fig.data[1].yaxis == "y2"


def test_charts_with_no_data():
    frame = empty_frame()
    assert isinstance(monthly_commission_chart(monthly_series(frame)), go.Figure)
    assert isinstance(booking_trends_chart(daily_trends(frame)), go.Figure)
    assert isinstance(top_accommodations_chart([]), go.Figure)
