from datetime import date, datetime

import pandas as pd
import pytest

from booking_dashboard.formatters import (
    format_change,
    format_currency,
    format_date,
    format_datetime,
    format_decimal,
    format_number,
    format_percentage,
    german_month_name,
)


def test_currency_uses_german_separators():
    assert format_currency(1234.56) == "1.234,56 €"
    assert format_currency(0) == "0,00 €"
    assert format_currency(-1234567.891) == "-1.234.567,89 €"


def test_numbers_and_decimals():
    assert format_number(1234) == "1.234"
    assert format_number(12) == "12"
    assert format_decimal(100.5) == "100,50"
    assert format_decimal(1234.5) == "1234,50"
    assert format_decimal(None) == ""


def test_percentages_and_changes():
    assert format_percentage(0.125) == "12,5 %"
    assert format_percentage(None) == ""
    assert format_change(12.5) == "+12,5 %"
    assert format_change(-3) == "-3,0 %"
    assert format_change(0.0) == "0,0 %"
    assert format_change(None) == ""


def test_dates():
    assert format_date(date(2024, 1, 5)) == "05.01.2024"
    assert format_date(pd.NaT) == ""
    assert format_datetime(datetime(2024, 1, 1, 10, 0)) == "01.01.2024 10:00"
    assert format_datetime(pd.Timestamp("2024-01-01 10:00:30")) == "01.01.2024 10:00:30"
    assert format_datetime(None) == ""


def test_german_month_name():
    assert german_month_name(1) == "Januar"
    assert german_month_name(3) == "März"
    with pytest.raises(ValueError):
        german_month_name(13)
