import math
from datetime import date

import numpy as np
import pytest

from tvm_engine.cashpoint import CashPoint, Valuation, ValueState
from tvm_engine.compounding import CONTINUOUS, SIMPLE, Discrete


@pytest.fixture(scope="module")
def present():
    return CashPoint(45_000.33, "2022-11-16")


@pytest.fixture(scope="module")
def future():
    return CashPoint(55_102.9895856, "2025-01-01")


def test_years_between_points(present, future):
    assert present.years_to(future.date) == pytest.approx(2.125)
    assert future.years_to(present.date) == pytest.approx(-2.125)


def test_value_on_same_date_is_amount(present):
    assert present.value_on() == present.amount
    for freq in (0, 1, 12, "cont"):
        assert present.value_on(present.date, 0.07, freq) == pytest.approx(present.amount)


@pytest.mark.parametrize("freq", [1, 2, 3, 4, 6, 12])
def test_discrete_compounding_forward(present, future, freq):
    expected = present.amount * (1.0 + 0.1 / freq) ** (2.125 * freq)
    assert present.value_on(future.date, 0.1, freq) == pytest.approx(expected, rel=1e-12)


def test_simple_and_continuous_forward(present, future):
    assert present.value_on(future.date, 0.1, 0) == pytest.approx(54_562.900125, abs=1e-6)
    assert present.value_on(future.date, 0.1, "cont") == pytest.approx(
        present.amount * math.exp(0.2125), rel=1e-12
    )


def test_discounting_back(present, future):
    assert future.value_on(present.date, 0.1, 12) == pytest.approx(
        future.amount * (1.0 + 0.1 / 12) ** (-25.5), rel=1e-12
    )
    assert future.value_on(present.date, 0.1, SIMPLE) == pytest.approx(future.amount / 1.2125, rel=1e-12)


@pytest.mark.parametrize("freq", [1, 4, "cont"])
def test_compound_then_discount_recovers_amount(present, future, freq):
    fv = present.value_on(future.date, 0.065, freq)
    back = CashPoint(fv, future.date).value_on(present.date, 0.065, freq)
    assert back == pytest.approx(present.amount, rel=1e-12)


def test_zero_amount_values_to_zero(present):
    zero = CashPoint(0.0, present.date)
    assert zero.value_on("2030-01-01", -1.5, 1) == 0.0
    assert zero.value_on_prime("2030-01-01", 0.1, 1) == 0.0


def test_negative_base_fractional_power_is_complex():
    cp = CashPoint(100.0, "2021-07-01")
    v = cp.valuation("2020-01-01", -1.5, 1)
    assert v.is_complex, "(1 - 1.5) ** -1.5 has no real value"
    assert math.isnan(cp.value_on("2020-01-01", -1.5, 1))


def test_simple_discount_past_pole_is_undefined():
    cp = CashPoint(100.0, "2022-01-01")
    v = cp.valuation("2020-01-01", -0.6, 0)
    assert v.state is ValueState.NAN
    assert not v.is_finite


@pytest.mark.parametrize("freq", [0, 1, 2, 12, "cont"])
def test_cagr_reproduces_future_value(present, future, freq):
    rate = future.cagr(present, freq)
    assert np.isfinite(rate)
    assert present.value_on(future.date, rate, freq) == pytest.approx(future.amount, rel=1e-10)


def test_cagr_sign_follows_growth():
    start = CashPoint(100.0, "2020-01-01")
    assert CashPoint(110.0, "2021-01-01").cagr(start, 1) == pytest.approx(0.10)
    assert CashPoint(90.0, "2021-01-01").cagr(start, 1) == pytest.approx(-0.10)
    assert CashPoint(110.0, "2021-01-01").cagr(start, 0) == pytest.approx(0.10)


def test_cagr_closed_forms(present, future):
    ratio = future.amount / present.amount
    assert future.cagr(present, 1) == pytest.approx(ratio ** (1 / 2.125) - 1.0)
    assert future.cagr(present, "cont") == pytest.approx(math.log(ratio) / 2.125)
    assert future.cagr(present, 0) == pytest.approx((ratio - 1.0) / 2.125)


def test_cagr_edge_cases(present, future):
    with pytest.raises(ValueError):
        future.cagr(CashPoint(1.0, future.date))
    with pytest.raises(ValueError):
        future.cagr(CashPoint(0.0, present.date))
    assert math.isnan(future.cagr(CashPoint(-present.amount, present.date), 1))


def test_continuous_derivative_matches_finite_difference(present, future):
    h = 1e-6
    numeric = (
        present.value_on(future.date, 0.1 + h, CONTINUOUS) - present.value_on(future.date, 0.1 - h, CONTINUOUS)
    ) / (2 * h)
    assert present.value_on_prime(future.date, 0.1, CONTINUOUS) == pytest.approx(numeric, rel=1e-6)


def test_simple_and_discrete_derivatives(present, future):
    assert present.value_on_prime(future.date, 0.1, 0) == pytest.approx(present.amount * 2.125)
    assert future.value_on_prime(present.date, 0.1, 0) == pytest.approx(
        future.amount * 2.125 / (1.0 - 0.1 * 2.125) ** 2
    )
    periods = -25.5
    expected = (periods - 1.0) * future.amount * (1.0 + 0.1 / 12) ** (periods - 1.0)
    assert future.value_on_prime(present.date, 0.1, Discrete(12)) == pytest.approx(expected, rel=1e-12)


def test_invalid_inputs(present):
    with pytest.raises(ValueError):
        present.value_on("2024-01-01", 0.1, 5)
    with pytest.raises(ValueError):
        CashPoint(math.inf, "2024-01-01")
    with pytest.raises(ValueError):
        CashPoint(math.nan, "2024-01-01")


def test_merge_and_ordering():
    a = CashPoint(100.0, "2023-01-01")
    b = CashPoint(-40.0, "2023-01-01")
    c = CashPoint(5.0, "2022-06-30")

    merged = a.merge(b)
    assert merged.amount == pytest.approx(60.0)
    assert merged.date == date(2023, 1, 1)
    assert a.amount == 100.0, "merge must not mutate its operands"

    with pytest.raises(ValueError):
        a.merge(c)

    assert sorted([a, c]) == [c, a]
    assert str(c) == "CP[5.0 @ 2022-06-30]"


def test_valuation_addition_precedence():
    ok = Valuation.of(1.0)
    assert (ok + Valuation.of(2.0)).value == 3.0
    assert (ok + Valuation.undefined()).state is ValueState.NAN
    assert (Valuation.undefined() + Valuation.complex_result()).is_complex
