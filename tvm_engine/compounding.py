"""
Compounding regimes.

A frequency is exactly one of:
- ``Discrete(n)``: compounded n times a year, n a divisor of 12
- ``Simple``: simple interest, no compounding (user input ``0``)
- ``Continuous``: continuous compounding (user input ``"cont"``)
"""
from __future__ import annotations

from dataclasses import dataclass
from numbers import Integral
from typing import Union

VALID_PERIODS_PER_YEAR = (1, 2, 3, 4, 6, 12)


def is_periods_per_year(n) -> bool:
    """True only for a genuine int (not bool, not 2.0) dividing 12."""
    return isinstance(n, Integral) and not isinstance(n, bool) and n in VALID_PERIODS_PER_YEAR


@dataclass(frozen=True)
class Discrete:
    periods_per_year: int = 1

    def __post_init__(self):
        if not is_periods_per_year(self.periods_per_year):
            raise ValueError(f"Frequency ({self.periods_per_year!r}) must be a divisor of 12.")

    def __str__(self) -> str:
        return f"{self.periods_per_year}/yr"


@dataclass(frozen=True)
class Simple:
    def __str__(self) -> str:
        return "simple"


@dataclass(frozen=True)
class Continuous:
    def __str__(self) -> str:
        return "continuous"


Compounding = Union[Discrete, Simple, Continuous]
FrequencyLike = Union[Compounding, int, str]

SIMPLE = Simple()
CONTINUOUS = Continuous()
ANNUAL = Discrete(1)

_CONTINUOUS_NAMES = ("cont", "continuous")


def as_compounding(freq: FrequencyLike) -> Compounding:
    """Map user-facing frequency input onto one of the three regimes."""
    if isinstance(freq, (Discrete, Simple, Continuous)):
        return freq
    if isinstance(freq, str) and freq.strip().lower() in _CONTINUOUS_NAMES:
        return CONTINUOUS
    if isinstance(freq, Integral) and not isinstance(freq, bool):
        if freq == 0:
            return SIMPLE
        if freq in VALID_PERIODS_PER_YEAR:
            return Discrete(int(freq))
    raise ValueError(f"Frequency ({freq!r}) must be a divisor of 12, 0 for simple interest, or 'cont'.")


def is_valid_frequency(freq) -> bool:
    try:
        as_compounding(freq)
    except ValueError:
        return False
    return True
