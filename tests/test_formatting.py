# tests/test_formatting.py
from datetime import date, datetime, time, timedelta

import pytest

from app import formatting


@pytest.mark.parametrize("raw, expected", [
    ("5551234567", "(555) 123-4567"),
    ("(555) 123-4567", "(555) 123-4567"),
    ("555", "555"),
    ("55512", "(555) 12"),
    ("555123456789", "(555) 123-4567"),
    ("", ""),
    (None, ""),
])
def test_format_phone(raw, expected):
    assert formatting.format_phone(raw) == expected


def test_phone_mask_reconstructs_from_stored_digits():
    stored = formatting.normalize_phone("(555) 123-4567")
    assert stored == "5551234567"
    assert formatting.format_phone(stored) == "(555) 123-4567"


def test_normalize_phone_blank_is_none():
    assert formatting.normalize_phone("  ") is None
    assert formatting.normalize_phone("--") is None


@pytest.mark.parametrize("text, expected", [
    ("01/15/2020", date(2020, 1, 15)),
    ("1/5/2020", date(2020, 1, 5)),
    ("12/31/2100", date(2100, 12, 31)),
])
def test_parse_date_valid(text, expected):
    assert formatting.parse_date(text) == expected


@pytest.mark.parametrize("text", [
    "13/01/2020",
    "00/10/2020",
    "02/30/2020",
    "01/32/2020",
    "01/15/1899",
    "01/15/2101",
    "2020-01-15",
    "not a date",
    "",
    None,
])
def test_parse_date_invalid(text):
    assert formatting.parse_date(text) is None


def test_to_iso_and_back():
    assert formatting.to_iso("03/04/2021") == "2021-03-04"
    assert formatting.to_iso("02/29/2021") is None
    assert formatting.format_date(date(2021, 3, 4)) == "03/04/2021"
    assert formatting.format_date("2021-03-04") == "03/04/2021"
    assert formatting.format_date(None) == ""


def test_coerce_date_accepts_iso_and_display_forms():
    assert formatting.coerce_date("2021-03-04") == date(2021, 3, 4)
    assert formatting.coerce_date("03/04/2021") == date(2021, 3, 4)
    assert formatting.coerce_date("2021-03-04T10:00:00.000Z") == date(2021, 3, 4)
    assert formatting.coerce_date(datetime(2021, 3, 4, 8, 0)) == date(2021, 3, 4)
    assert formatting.coerce_date("") is None


@pytest.mark.parametrize("bad", ["02/30/2021", "2021-13-01", "1850-01-01", 20210304])
def test_coerce_date_rejects_invalid(bad):
    with pytest.raises(ValueError):
        formatting.coerce_date(bad)


def test_coerce_datetime_keeps_time():
    value = formatting.coerce_datetime("2024-05-01T14:30:00Z")
    assert value.hour == 14 and value.minute == 30
    assert formatting.coerce_datetime("05/01/2024") == datetime(2024, 5, 1)


@pytest.mark.parametrize("text, expected", [
    ("09:30", time(9, 30)),
    ("9:30", time(9, 30)),
    ("14:05:10", time(14, 5, 10)),
    ("2:15 PM", time(14, 15)),
    ("12:00 am", time(0, 0)),
    ("12:45 p.m.", time(12, 45)),
])
def test_parse_time(text, expected):
    assert formatting.parse_time(text) == expected


@pytest.mark.parametrize("bad", ["25:00", "13:00 PM", "noon", "9"])
def test_parse_time_rejects_invalid(bad):
    with pytest.raises(ValueError):
        formatting.parse_time(bad)


def test_format_time():
    assert formatting.format_time(time(9, 5)) == "09:05"
    assert formatting.format_time(None) == ""


@pytest.mark.parametrize("raw, expected", [
    ("01", "01"),
    ("0115", "01/15"),
    ("01152020", "01/15/2020"),
    ("1399", "12/99"),
    ("12452020", "12/31/2020"),
    ("011520201999", "01/15/2020"),
    ("ab01cd15", "01/15"),
])
def test_mask_date_input(raw, expected):
    assert formatting.mask_date_input(raw) == expected


@pytest.mark.parametrize("length", range(0, formatting.PHONE_DIGITS + 1))
def test_phone_mask_keeps_every_stored_digit(length):
    digits = "5059871234"[:length]
    stored = formatting.normalize_phone(digits)
    assert stored == (digits or None)
    assert formatting.digits_only(formatting.format_phone(stored)) == digits


def test_normalize_phone_rejects_digits_the_mask_cannot_show():
    with pytest.raises(ValueError):
        formatting.normalize_phone("+1 (555) 123-4567")


@pytest.mark.parametrize("raw, expected", [
    ("５５５１２３４５６７", None),
    ("٥٥٥-١٢٣-٤٥٦٧", None),
    ("555-123-４５６７", "555123"),
])
def test_only_ascii_digits_survive_normalization(raw, expected):
    assert formatting.normalize_phone(raw) == expected


@pytest.mark.parametrize("text", ["٠٢/١٥/٢٠٢٤", "０２/１５/２０２４", "٢٠٢٤-٠٢-١٥"])
def test_non_ascii_numerals_are_not_dates(text):
    assert formatting.parse_date(text) is None
    with pytest.raises(ValueError):
        formatting.coerce_date(text)


@pytest.mark.parametrize("year", [2023, 2024])
def test_every_day_of_the_year_survives_display_and_iso(year):
    day = date(year, 1, 1)
    while day.year == year:
        shown = formatting.format_date(day)
        assert formatting.parse_date(shown) == day
        assert formatting.to_iso(shown) == day.isoformat()
        assert formatting.format_date(day.isoformat()) == shown
        day += timedelta(days=1)
    assert formatting.parse_date(f"02/29/{year}") == (date(year, 2, 29) if year == 2024 else None)
