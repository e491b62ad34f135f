import pytest

from booking_dashboard.models import GroupStats
from booking_dashboard.normalizer import read_bookings_csv
from booking_dashboard.tables import display_groups, paginate, search_bookings, sort_bookings, sort_groups, top_n


def _groups():
    return [
        GroupStats(key="A", revenue=100.0, bookings=1),
        GroupStats(key="B", revenue=300.0, bookings=2),
        GroupStats(key="C", revenue=100.0, bookings=5),
        GroupStats(key="D", revenue=200.0, bookings=1),
    ]


def test_sort_groups_by_revenue_is_stable():
    assert [g.key for g in sort_groups(_groups())] == ["B", "D", "A", "C"]
    assert [g.key for g in sort_groups(_groups(), descending=False)] == ["A", "C", "D", "B"]
    assert [g.key for g in sort_groups(_groups(), key="bookings")] == ["C", "B", "A", "D"]


def test_sort_groups_rejects_unknown_key():
    with pytest.raises(ValueError):
        sort_groups(_groups(), key="city")


def test_top_n_truncates():
    assert [g.key for g in top_n(_groups(), n=2)] == ["B", "D"]
    assert len(top_n(_groups(), n=30)) == 4


def test_paginate_clamps_pages():
    items = list(range(7))
    assert paginate(items, 1, 3) == ([0, 1, 2], 3)
    assert paginate(items, 3, 3) == ([6], 3)
    assert paginate(items, 99, 3) == ([6], 3)
    assert paginate([], 1, 3) == ([], 1)
    with pytest.raises(ValueError):
        paginate(items, 1, 0)


def test_paginate_dataframe(sample_csv):
    frame = read_bookings_csv(sample_csv).frame
    page, pages = paginate(frame, 2, 3)
    assert pages == 2
    assert page["booking_code"].tolist() == ["BK4"]


def test_search_bookings(sample_csv):
    frame = read_bookings_csv(sample_csv).frame
    assert search_bookings(frame, "hamburg")["booking_code"].tolist() == ["BK2"]
    assert search_bookings(frame, "bk")["booking_code"].tolist() == ["BK1", "BK2", "BK3", "BK4"]
    assert search_bookings(frame, "  ").equals(frame)
    assert search_bookings(frame, "nowhere").empty


def test_sort_bookings_defaults_to_newest_booking_first(sample_csv):
    frame = read_bookings_csv(sample_csv).frame
    assert sort_bookings(frame)["booking_code"].tolist()[0] == "BK4"
    assert sort_bookings(frame, "total_price", descending=False)["booking_code"].tolist() == ["BK4", "BK1", "BK3", "BK2"]
    with pytest.raises(ValueError):
        sort_bookings(frame, "unknown")


def test_display_groups_shows_every_change_column():
    groups = [
        GroupStats(
            key="Hotel A",
            city="Berlin",
            revenue=200.0,
            bookings=2,
            nights=4,
            comparison_revenue=100.0,
            comparison_bookings=1,
            comparison_nights=2,
            revenue_change=100.0,
            bookings_change=100.0,
            nights_change=100.0,
            cancellation_rate_change=None,
        ),
        GroupStats(key="Hotel B", revenue=50.0, bookings=1),
    ]

    table = display_groups(groups, "accommodation", with_comparison=True)
    assert list(table.columns[-5:]) == ["Umsatz Δ", "Buchungen Δ", "Provision Δ", "Nächte Δ", "Stornoquote Δ"]
    assert table["Nächte Δ"].tolist() == ["+100,0 %", "-"]
    assert table["Stornoquote Δ"].tolist() == ["-", "-"]
    assert table["Umsatz Vergleich"].tolist()[1] == "-"

    plain = display_groups(groups, "city", with_comparison=False)
    assert "Nächte Δ" not in plain.columns
    assert list(plain["Rang"]) == [1, 2]
