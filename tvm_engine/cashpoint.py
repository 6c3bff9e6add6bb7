from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from .compounding import Continuous, FrequencyLike, Simple, as_compounding
from .config import SETTINGS
from .utils import DateLike, ensure_date, month_diff

logger = logging.getLogger(__name__)


class ValueState(Enum):
    VALUE = "value"
    NAN = "nan"
    COMPLEX = "complex"


@dataclass(frozen=True)
class Valuation:
    """
    Result of a time-value computation.

    ``COMPLEX`` marks a negative base raised to a fractional power, i.e. the
    value is undefined at this rate but a different guess may still work.
    ``NAN`` marks any other undefined result (zero denominators, inf - inf).
    """
    value: float
    state: ValueState = ValueState.VALUE

    @classmethod
    def of(cls, value: float) -> "Valuation":
        value = float(value)
        if math.isnan(value):
            return cls(math.nan, ValueState.NAN)
        return cls(value)

    @classmethod
    def undefined(cls) -> "Valuation":
        return cls(math.nan, ValueState.NAN)

    @classmethod
    def complex_result(cls) -> "Valuation":
        return cls(math.nan, ValueState.COMPLEX)

    @property
    def is_complex(self) -> bool:
        return self.state is ValueState.COMPLEX

    @property
    def is_finite(self) -> bool:
        return self.state is ValueState.VALUE and math.isfinite(self.value)

    def scaled(self, k: float) -> "Valuation":
        if self.state is not ValueState.VALUE:
            return self
        return Valuation.of(k * self.value)

    def __add__(self, other: "Valuation") -> "Valuation":
        if self.is_complex or other.is_complex:
            return Valuation.complex_result()
        if self.state is ValueState.NAN or other.state is ValueState.NAN:
            return Valuation.undefined()
        return Valuation.of(self.value + other.value)

    def __float__(self) -> float:
        return self.value


ZERO = Valuation(0.0)


def _exp(x: float) -> Valuation:
    try:
        return Valuation.of(math.exp(x))
    except OverflowError:
        return Valuation.of(math.inf)


def _growth(base: float, exponent: float) -> Valuation:
    """base ** exponent without letting Python promote to complex or raise."""
    if base < 0.0 and not float(exponent).is_integer():
        return Valuation.complex_result()
    if base == 0.0 and exponent < 0.0:
        return Valuation.undefined()
    try:
        return Valuation.of(base ** exponent)
    except OverflowError:
        return Valuation.of(math.inf)


@dataclass(frozen=True)
class CashPoint:
    """
    An amount of money on a given date. Negative amounts are paid out,
    positive amounts paid in. Provides the time value of the amount as of any
    other date, discounting back or compounding forward.
    """
    amount: float
    date: date = field(default_factory=date.today)

    def __post_init__(self):
        amount = float(self.amount)
        if not math.isfinite(amount):
            raise ValueError(f"CashPoint amount must be finite, got {self.amount!r}.")
        object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "date", ensure_date(self.date))

    def __str__(self) -> str:
        return f"CP[{self.amount} @ {self.date.isoformat()}]"

    # ordering is by date only
    def __lt__(self, other: "CashPoint") -> bool:
        return self.date < other.date

    def __le__(self, other: "CashPoint") -> bool:
        return self.date <= other.date

    def __gt__(self, other: "CashPoint") -> bool:
        return self.date > other.date

    def __ge__(self, other: "CashPoint") -> bool:
        return self.date >= other.date

    def merge(self, other: "CashPoint") -> "CashPoint":
        """Combine two points on the same date into one carrying the summed amount."""
        if other.date != self.date:
            raise ValueError(f"Cannot merge {other} into {self}: dates differ.")
        return CashPoint(self.amount + other.amount, self.date)

    def years_to(self, on_date: DateLike) -> float:
        return month_diff(on_date, self.date) / 12.0

    def valuation(
        self,
        on_date: DateLike = None,
        rate: float = SETTINGS.default_rate,
        freq: FrequencyLike = SETTINGS.default_frequency,
    ) -> Valuation:
        comp = as_compounding(freq)
        on_date = self.date if on_date is None else ensure_date(on_date)
        if self.amount == 0.0:
            return ZERO

        years = self.years_to(on_date)

        if isinstance(comp, Continuous):
            return _exp(rate * years).scaled(self.amount)

        if isinstance(comp, Simple):
            # not invertible: compounding forward multiplies, discounting back divides
            if years >= 0.0:
                return Valuation.of(self.amount * (1.0 + rate * years))
            denom = 1.0 + rate * -years
            if denom <= 0.0:
                return Valuation.undefined()
            return Valuation.of(self.amount / denom)

        n = comp.periods_per_year
        periods = years * n
        return _growth(1.0 + rate / n, periods).scaled(self.amount)

    def value_on(
        self,
        on_date: DateLike = None,
        rate: float = SETTINGS.default_rate,
        freq: FrequencyLike = SETTINGS.default_frequency,
    ) -> float:
        """
        Value of this point on ``on_date`` at annual ``rate`` (decimal).

        ``freq`` is a divisor of 12 for discrete compounding, 0 for simple
        interest, or 'cont'. Works for discounting back to an earlier date and
        for compounding forward to a later one. Returns nan when the value is
        undefined at this rate.
        """
        return self.valuation(on_date, rate, freq).value

    def valuation_prime(
        self,
        on_date: DateLike = None,
        rate: float = SETTINGS.default_rate,
        freq: FrequencyLike = SETTINGS.default_frequency,
    ) -> Valuation:
        comp = as_compounding(freq)
        on_date = self.date if on_date is None else ensure_date(on_date)
        if self.amount == 0.0:
            return ZERO

        years = self.years_to(on_date)

        if isinstance(comp, Continuous):
            return _exp(rate * years).scaled(self.amount * years)

        if isinstance(comp, Simple):
            if years >= 0.0:
                return Valuation.of(self.amount * years)
            denom = (1.0 + rate * years) ** 2
            if denom == 0.0:
                return Valuation.undefined()
            return Valuation.of(-(self.amount * years) / denom)

        n = comp.periods_per_year
        periods = years * n
        return _growth(1.0 + rate / n, periods - 1.0).scaled((periods - 1.0) * self.amount)

    def value_on_prime(
        self,
        on_date: DateLike = None,
        rate: float = SETTINGS.default_rate,
        freq: FrequencyLike = SETTINGS.default_frequency,
    ) -> float:
        """Derivative of ``value_on`` with respect to ``rate``, for Newton-Raphson."""
        return self.valuation_prime(on_date, rate, freq).value

    def cagr(self, from_point: "CashPoint", freq: FrequencyLike = SETTINGS.default_frequency) -> float:
        """Constant annual growth rate that turns ``from_point`` into this point."""
        comp = as_compounding(freq)
        years = from_point.years_to(self.date)
        if years == 0.0:
            raise ValueError(f"Cannot compute growth between {from_point} and {self}: same date.")
        if from_point.amount == 0.0:
            raise ValueError(f"Cannot compute growth from a zero amount ({from_point}).")

        ratio = self.amount / from_point.amount
        if isinstance(comp, Simple):
            return (ratio - 1.0) / years
        if ratio <= 0.0:
            logger.debug("cagr undefined for amount ratio %s", ratio)
            return math.nan
        if isinstance(comp, Continuous):
            return math.log(ratio) / years
        n = comp.periods_per_year
        return n * (ratio ** (1.0 / (n * years)) - 1.0)
