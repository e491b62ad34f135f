from datetime import date, datetime

import pandas as pd
import pytest

from booking_dashboard.aggregation import aggregate
from booking_dashboard.errors import EmptyDatasetWarning, FileReadError
from booking_dashboard.normalizer import (
    parse_booking_timestamp,
    parse_count,
    parse_decimal,
    parse_flag,
    parse_german_date,
    read_bookings_csv,
)


def test_single_booking_is_normalized(make_csv):
    result = read_bookings_csv(make_csv({}))
    assert result.rows_imported == 1
    assert result.rows_rejected == 0

    record = result.records[0]
    assert record.booking_code == "BK1"
    assert record.booking_date == datetime(2024, 1, 1, 10, 0)
    assert record.arrival_date == date(2024, 1, 5)
    assert record.total_price == pytest.approx(100.5)
    assert record.commission == pytest.approx(10.05)
    assert record.cancelled is False
    assert record.nights == 2

    groups = aggregate(result.frame, by="accommodation")
    assert groups[0].revenue == pytest.approx(100.5)
    assert groups[0].nights == 2


def test_cancelled_booking_adds_no_revenue(make_csv):
    result = read_bookings_csv(make_csv({"Storniert": "WAHR", "Stornodatum": "02.01.2024"}))
    record = result.records[0]
    assert record.cancelled is True
    assert record.cancellation_date == date(2024, 1, 2)

    group = aggregate(result.frame, by="accommodation")[0]
    assert group.revenue == 0
    assert group.commission == 0
    assert group.bookings == 1
    assert group.cancelled_bookings == 1


def test_bad_price_rejects_row_and_keeps_going(make_csv):
    text = make_csv({"BookingCode": "OK1"}, {"BookingCode": "BAD", "Gesamtpreis": "abc"}, {"BookingCode": "OK2"})
    result = read_bookings_csv(text)

    assert [r.booking_code for r in result.records] == ["OK1", "OK2"]
    assert result.rows_rejected == 1
    error = result.errors[0]
    assert error.field == "total_price"
    assert error.line == 3
    assert "abc" in str(error)


def test_missing_booking_code_is_rejected(make_csv):
    result = read_bookings_csv(make_csv({"BookingCode": ""}, {"BookingCode": "BK2"}))
    assert result.rows_imported == 1
    assert result.errors[0].field == "booking_code"


def test_row_with_extra_fields_is_rejected(make_csv):
    text = make_csv({}) + "BK9;" + ";".join(["x"] * 20) + "\n"
    result = read_bookings_csv(text)
    assert result.rows_imported == 1
    assert result.rows_rejected == 1
    assert result.errors[0].line == 3


def test_error_lines_count_skipped_lines(make_csv):
    header, good, bad = make_csv({"BookingCode": "OK1"}, {"BookingCode": "BAD", "Gesamtpreis": "abc"}).splitlines()
    overlong = "BK9;" + ";".join(["x"] * 20)

    result = read_bookings_csv("\n".join([header, good, overlong, bad]) + "\n")
    assert [r.booking_code for r in result.records] == ["OK1"]
    assert [(e.field, e.line) for e in result.errors] == [("*", 3), ("total_price", 4)]
    assert str(result.errors[1]).startswith("line 4, field 'total_price'")

    result = read_bookings_csv("\n".join([header, "", good, "  ", bad]) + "\n")
    assert result.errors[0].line == 5


def test_import_notes_name_the_source_line(make_csv):
    header, good, backwards = make_csv({}, {"Anreise": "10.01.2024", "Abreise": "07.01.2024"}).splitlines()
    result = read_bookings_csv("\n".join([header, "", good, backwards]) + "\n")
    assert result.warnings == ("line 4: departure before arrival, nights set to 0",)


def test_empty_file_is_fatal():
    with pytest.raises(FileReadError):
        read_bookings_csv("")


def test_wrong_delimiter_is_fatal(make_csv):
    text = make_csv({}).replace(";", ",")
    with pytest.raises(FileReadError) as excinfo:
        read_bookings_csv(text, source_name="export.csv")
    assert "booking_code" in str(excinfo.value)
    assert excinfo.value.source_name == "export.csv"


def test_undecodable_bytes_are_fatal():
    with pytest.raises(FileReadError):
        read_bookings_csv(b"BookingCode;Anreise\n\xff\xfe\xfa;01.01.2024\n")


def test_header_only_file_warns_empty(make_csv):
    with pytest.warns(EmptyDatasetWarning):
        result = read_bookings_csv(make_csv())
    assert result.is_empty
    assert result.frame.empty


def test_bytes_with_bom(make_csv):
    data = b"\xef\xbb\xbf" + make_csv({}).encode("utf-8")
    result = read_bookings_csv(data)
    assert result.rows_imported == 1
    assert result.columns[0] == "booking_code"


def test_departure_before_arrival_clamps_nights(make_csv):
    result = read_bookings_csv(make_csv({"Anreise": "10.01.2024", "Abreise": "07.01.2024"}))
    assert result.records[0].nights == 0
    assert any("departure before arrival" in note for note in result.warnings)
    assert aggregate(result.frame, by="accommodation")[0].nights == 0


def test_cancellation_date_without_cancellation_is_dropped(make_csv):
    result = read_bookings_csv(make_csv({"Stornodatum": "03.01.2024"}))
    assert result.records[0].cancellation_date is None
    assert result.warnings


def test_unknown_columns_pass_through_lower_cased(make_csv):
    headers = list(make_csv().strip().split(";")) + ["Notiz"]
    text = ";".join(headers) + "\n" + make_csv({}).splitlines()[1] + ";Late check-in\n"
    result = read_bookings_csv(text)
    assert result.records[0].extra == {"notiz": "Late check-in"}
    assert result.source_headers["notiz"] == "Notiz"
    assert result.frame["notiz"].tolist() == ["Late check-in"]


def test_missing_optional_columns_default(make_csv):
    text = "BookingCode;Anreise\nBK1;05.01.2024\n"
    record = read_bookings_csv(text).records[0]
    assert record.total_price == 0.0
    assert record.commission == 0.0
    assert record.cancelled is False
    assert record.nights == 0


def test_frame_dtypes(sample_csv):
    frame = read_bookings_csv(sample_csv).frame
    assert pd.api.types.is_datetime64_any_dtype(frame["arrival_date"])
    assert frame["cancelled"].dtype == bool
    assert frame["total_price"].tolist() == pytest.approx([100.5, 1200.0, 300.0, 80.0])


@pytest.mark.parametrize(
    "raw,expected",
    [("100,50", 100.5), ("1.234,56", 1234.56), ("100.50", 100.5), ("-5,00", -5.0), ("12 €", 12.0)],
)
def test_parse_decimal(raw, expected):
    assert parse_decimal(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", "abc", "1,2,3"])
def test_parse_decimal_rejects(raw):
    with pytest.raises(ValueError):
        parse_decimal(raw)


def test_date_and_time_decoders():
    assert parse_german_date("") is None
    assert parse_german_date("2024-01-05") == date(2024, 1, 5)
    assert parse_booking_timestamp("01.01.2024") == datetime(2024, 1, 1)
    assert parse_booking_timestamp("01.01.2024 10:00:30") == datetime(2024, 1, 1, 10, 0, 30)
    with pytest.raises(ValueError):
        parse_german_date("31.02.2024")
    with pytest.raises(ValueError):
        parse_booking_timestamp("01.01.2024 25:99")


def test_count_and_flag_decoders():
    assert parse_count("") == 0
    assert parse_count("3") == 3
    with pytest.raises(ValueError):
        parse_count("2,5")
    assert parse_flag("WAHR") is True
    assert parse_flag("FALSCH") is False
    assert parse_flag("true") is False


def test_minimal_export_with_subset_of_columns():
    text = (
        "BookingCode;Buchungsdatum;Anreise;Abreise;ServiceCity;Service Name (SolR);Region;Gesamtpreis;Storniert\n"
        "BK1;01.01.2024 10:00;05.01.2024;07.01.2024;Berlin;Hotel A;Nord;100,50;FALSCH"
    )
    result = read_bookings_csv(text)
    record = result.records[0]
    assert record.total_price == pytest.approx(100.5)
    assert record.nights == 2
    assert record.cancelled is False

    group = aggregate(result.frame, by="accommodation")[0]
    assert (group.key, group.bookings, group.cancelled_bookings, group.nights) == ("Hotel A", 1, 0, 2)
    assert group.revenue == pytest.approx(100.5)

    cancelled = read_bookings_csv(text.replace("FALSCH", "WAHR"))
    group = aggregate(cancelled.frame, by="accommodation")[0]
    assert (group.revenue, group.bookings, group.cancelled_bookings) == (0, 1, 1)
