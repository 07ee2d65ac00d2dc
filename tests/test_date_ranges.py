from datetime import date

import pytest

from taxidesk.date_ranges import (
    Custom,
    DateRange,
    InvertedRangeError,
    Monthly,
    Preset,
    Yearly,
    filter_from_dict,
    filter_from_params,
    filter_to_dict,
    month_options,
    resolve,
    trailing_months,
    year_options,
)


def test_monthly_leap_february():
    r = resolve(Monthly(2024, 2))
    assert r == DateRange(date(2024, 2, 1), date(2024, 2, 29))


def test_monthly_common_february():
    assert resolve(Monthly(2023, 2)).end == date(2023, 2, 28)


def test_monthly_december_crosses_year():
    r = resolve(Monthly(2024, 12))
    assert r.start == date(2024, 12, 1)
    assert r.end == date(2024, 12, 31)


def test_yearly():
    assert resolve(Yearly(2024)) == DateRange(date(2024, 1, 1), date(2024, 12, 31))


def test_custom_inverted_raises():
    with pytest.raises(InvertedRangeError):
        resolve(Custom(date(2024, 3, 10), date(2024, 3, 1)))


def test_custom_single_day_is_allowed():
    day = date(2024, 3, 10)
    assert resolve(Custom(day, day)) == DateRange(day, day)


def test_presets_relative_to_today():
    today = date(2024, 1, 15)
    assert resolve(Preset("this_month"), today) == DateRange(date(2024, 1, 1), date(2024, 1, 31))
    assert resolve(Preset("last_month"), today) == DateRange(date(2023, 12, 1), date(2023, 12, 31))
    assert resolve(Preset("last_30"), today) == DateRange(date(2023, 12, 17), date(2024, 1, 15))


def test_unknown_preset():
    with pytest.raises(ValueError):
        resolve(Preset("next_year"), date(2024, 1, 1))


def test_bounds_are_zero_padded_and_inclusive():
    r = resolve(Monthly(2024, 3))
    assert r.bounds() == ("2024-03-01", "2024-03-31")
    assert r.contains(date(2024, 3, 1))
    assert r.contains(date(2024, 3, 31))
    assert not r.contains(date(2024, 4, 1))


def test_filter_from_params_reads_only_active_variant():
    flt = filter_from_params("monthly", month="2024-05", year="1999", start="bad", end="bad")
    assert flt == Monthly(2024, 5)
    assert filter_from_params("yearly", year="2023") == Yearly(2023)
    assert filter_from_params("custom", start="2024-01-01", end="2024-01-31") == Custom(
        date(2024, 1, 1), date(2024, 1, 31)
    )
    assert filter_from_params("preset", preset="last_30") == Preset("last_30")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"kind": "monthly", "month": "2024-13"},
        {"kind": "monthly", "month": ""},
        {"kind": "yearly", "year": "abc"},
        {"kind": "custom", "start": "2024-01-01"},
        {"kind": "preset", "preset": "someday"},
        {"kind": "weekly"},
    ],
)
def test_filter_from_params_rejects_bad_input(kwargs):
    with pytest.raises(ValueError):
        filter_from_params(**kwargs)


def test_filter_dict_round_trip():
    for flt in (Monthly(2024, 2), Yearly(2022), Custom(date(2024, 1, 1), date(2024, 2, 1)), Preset("last_month")):
        assert filter_from_dict(filter_to_dict(flt)) == flt


def test_month_options_most_recent_first():
    options = month_options(date(2024, 2, 10))
    assert len(options) == 12
    assert options[0] == ("2024-02", "February 2024")
    assert options[1] == ("2024-01", "January 2024")
    assert options[2] == ("2023-12", "December 2023")


def test_year_options():
    assert year_options(date(2024, 6, 1)) == ["2024", "2023", "2022", "2021", "2020"]


def test_trailing_months_includes_current_month():
    assert trailing_months(6, today=date(2024, 3, 15)) == DateRange(date(2023, 10, 1), date(2024, 3, 31))
    assert trailing_months(1, today=date(2024, 2, 10)) == DateRange(date(2024, 2, 1), date(2024, 2, 29))
    with pytest.raises(ValueError):
        trailing_months(0)
