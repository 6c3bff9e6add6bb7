from datetime import date

import pandas as pd
import pytest

from tvm_engine.compounding import CONTINUOUS, SIMPLE, Discrete, as_compounding, is_valid_frequency
from tvm_engine.utils import (
    DayCount,
    Period,
    accrual_factor,
    add_months,
    annuity_present_value,
    ensure_date,
    ensure_period,
    excel_serial_to_date,
    is_last_of_month,
    is_leap_year,
    month_diff,
    whole_month_diff,
)


def test_ensure_date_accepts_strings_and_timestamps():
    assert ensure_date("2022-08-14") == date(2022, 8, 14)
    assert ensure_date(pd.Timestamp("2022-08-14 13:45")) == date(2022, 8, 14)
    assert ensure_date(date(2022, 8, 14)) == date(2022, 8, 14)


def test_ensure_date_rejects_garbage():
    with pytest.raises(ValueError):
        ensure_date("not a date")
    with pytest.raises(ValueError):
        ensure_date(None)


def test_whole_month_diff():
    assert whole_month_diff("2017-11-15", "2016-09-15") == 14
    assert whole_month_diff("2017-11-15", "2008-02-15") == 117
    assert whole_month_diff("2007-04-30", "2007-04-01") == 0
    assert whole_month_diff("2007-04-30", "2007-03-31") == 1
    assert whole_month_diff("2007-04-30", "2007-03-30") == 1


def test_fractional_month_diff():
    assert month_diff("2017-11-15", "2016-09-15") == 14
    assert month_diff("2007-04-30", "2007-04-01") == pytest.approx(29.0 / 30.0)
    # both last-of-month: forced whole
    assert month_diff("2007-04-30", "2007-03-31") == 1
    assert month_diff("2007-04-30", "2007-03-30") == 1
    assert month_diff("2025-01-01", "2022-11-16") == pytest.approx(25.5)


@pytest.mark.parametrize(
    "a, b",
    [
        ("2022-08-14", "2024-09-14"),
        ("2007-04-30", "2007-04-01"),
        ("2024-02-29", "2023-02-28"),
        ("2010-06-30", "2010-12-17"),
        ("2020-01-31", "2020-01-31"),
    ],
)
def test_month_diff_antisymmetric(a, b):
    assert month_diff(a, b) == -month_diff(b, a)


def test_leap_years():
    assert is_leap_year(2024)
    assert is_leap_year(2000)
    assert not is_leap_year(1900)
    assert not is_leap_year(2023)


def test_last_of_month():
    assert is_last_of_month("2024-02-29")
    assert is_last_of_month("2023-02-28")
    assert not is_last_of_month("2024-02-28")
    assert is_last_of_month("2023-04-30")
    assert not is_last_of_month("2023-01-30")
    assert is_last_of_month("2023-12-31")


def test_excel_serial_dates():
    assert excel_serial_to_date(0) == date(1899, 12, 31)
    assert excel_serial_to_date(59) == date(1900, 2, 28)
    assert excel_serial_to_date(60) == date(1900, 3, 1)
    assert excel_serial_to_date(61) == date(1900, 3, 1)
    assert excel_serial_to_date(21_085) == date(1957, 9, 22)


def test_add_months_clamps_and_rolls():
    assert add_months("2023-01-31", 1) == date(2023, 2, 28)
    assert add_months("2024-02-29", 12) == date(2025, 2, 28)
    assert add_months("2023-02-28", 3, month_end=True) == date(2023, 5, 31)
    assert add_months("2017-11-15", -6) == date(2017, 5, 15)


def test_period_parse_and_membership():
    year = Period.parse("2023")
    assert year.first == date(2023, 1, 1)
    assert year.last == date(2023, 12, 31)
    assert "2023-06-30" in year
    assert date(2024, 1, 1) not in year

    q3 = ensure_period(pd.Period("2022Q3"))
    assert (q3.first, q3.last) == (date(2022, 7, 1), date(2022, 9, 30))
    assert ensure_period(("2022-01-01", "2022-03-31")).last == date(2022, 3, 31)

    with pytest.raises(ValueError):
        Period("2023-05-01", "2023-01-01")


def test_annuity_present_value():
    assert annuity_present_value(28, 1.0, 0.01) == pytest.approx(24.31644316, abs=1e-3)
    assert annuity_present_value(28, 1.0, 0.06) == pytest.approx(13.40616428, abs=1e-3)
    assert annuity_present_value(28, 2.0, 0.0) == 56.0
    assert annuity_present_value(0, 2.0, 0.05) == 0.0


def test_accrual_factor_conventions():
    d1, d2 = "2007-11-15", "2008-02-15"
    assert accrual_factor(d1, d2, DayCount.US_30_360) == pytest.approx(0.25)
    assert accrual_factor(d1, d2, DayCount.ACTUAL_360) == pytest.approx(92 / 360)
    assert accrual_factor(d1, d2, DayCount.ACTUAL_365) == pytest.approx(92 / 365)
    # 2007 is not a leap year, 2008 is: split at 1 January
    assert accrual_factor(d1, d2, DayCount.ACTUAL_ACTUAL) == pytest.approx(47 / 365 + 45 / 366)
    assert accrual_factor(d1, d2, DayCount.EUROPEAN_30_360) == pytest.approx(0.25)


def test_us_30_360_month_end_rules():
    assert accrual_factor("2023-01-31", "2023-03-31", 0) == pytest.approx(60 / 360)
    assert accrual_factor("2023-02-28", "2023-08-31", 0, eom=True) == pytest.approx(0.5)
    assert accrual_factor("2023-02-28", "2023-08-31", 0, eom=False) == pytest.approx(183 / 360)


def test_european_30_360_february_maturity():
    assert accrual_factor("2022-08-31", "2023-02-28", 4) == pytest.approx(0.5)
    assert accrual_factor("2022-08-31", "2023-02-28", 4, maturity="2023-02-28") == pytest.approx(177 / 360)


def test_unknown_day_count_rejected():
    with pytest.raises(ValueError):
        accrual_factor("2022-01-01", "2022-06-01", 7)


def test_compounding_regimes():
    assert as_compounding(0) is SIMPLE
    assert as_compounding(2) == Discrete(2)
    assert as_compounding("cont") is CONTINUOUS
    assert as_compounding(Discrete(12)) == Discrete(12)
    for bad in (5, -1, True, 2.0, 2.5, "weekly", None):
        assert not is_valid_frequency(bad), f"{bad!r} should be rejected"
    with pytest.raises(ValueError):
        Discrete(7)
    with pytest.raises(ValueError):
        Discrete(2.0)
