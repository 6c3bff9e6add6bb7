from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, Iterator, List, Optional

import numpy as np
import pandas as pd

from .cashpoint import CashPoint, Valuation, ZERO
from .compounding import Compounding, FrequencyLike, as_compounding
from .config import SETTINGS
from .utils import DateLike, Period, PeriodLike, ensure_date, ensure_period, month_diff

logger = logging.getLogger(__name__)


@dataclass
class _NewtonState:
    guess: float
    original_guess: float
    recovered: bool = False
    iterations: int = 0


class CashFlow:
    """
    A stream of amounts paid or received on arbitrary, not necessarily evenly
    spaced, dates. At most one CashPoint per date: adding a point on an
    existing date merges the amounts.
    """

    def __init__(self, points: Iterable[CashPoint] = ()):
        self._points: Dict[date, CashPoint] = {}
        for point in points:
            self.add(point)

    # ---------- construction ----------

    def add(self, point: CashPoint) -> "CashFlow":
        if not isinstance(point, CashPoint):
            raise TypeError(f"CashFlow components must be CashPoints, got {type(point).__name__}.")
        existing = self._points.get(point.date)
        self._points[point.date] = point if existing is None else existing.merge(point)
        return self

    def merge(self, other: "CashFlow") -> "CashFlow":
        for point in other:
            self.add(point)
        return self

    def __lshift__(self, point: CashPoint) -> "CashFlow":
        return self.add(point)

    # ---------- accessors ----------

    @property
    def cash_points(self) -> List[CashPoint]:
        return [self._points[d] for d in sorted(self._points)]

    def __iter__(self) -> Iterator[CashPoint]:
        return iter(self.cash_points)

    def __len__(self) -> int:
        return len(self._points)

    def __bool__(self) -> bool:
        return bool(self._points)

    def __repr__(self) -> str:
        return f"CashFlow({', '.join(str(p) for p in self)})"

    @property
    def size(self) -> int:
        return len(self)

    @property
    def empty(self) -> bool:
        return not self._points

    @property
    def dates(self) -> List[date]:
        return sorted(self._points)

    @property
    def amounts(self) -> List[float]:
        return [p.amount for p in self]

    @property
    def first_date(self) -> Optional[date]:
        return min(self._points) if self._points else None

    @property
    def last_date(self) -> Optional[date]:
        return max(self._points) if self._points else None

    @property
    def period(self) -> Optional[Period]:
        if self.empty:
            return None
        return Period(self.first_date, self.last_date)

    @property
    def years(self) -> float:
        if self.empty:
            return 0.0
        return month_diff(self.last_date, self.first_date) / 12.0

    @property
    def total(self) -> float:
        return float(np.sum(self.amounts)) if self._points else 0.0

    @property
    def positive_sum(self) -> float:
        return float(sum(a for a in self.amounts if a > 0.0))

    @property
    def negative_sum(self) -> float:
        return float(sum(a for a in self.amounts if a < 0.0))

    def inflows(self) -> "CashFlow":
        return CashFlow(p for p in self._points.values() if p.amount > 0.0)

    def outflows(self) -> "CashFlow":
        return CashFlow(p for p in self._points.values() if p.amount < 0.0)

    @property
    def mixed_signs(self) -> bool:
        """An IRR needs at least one positive and one negative nonzero amount."""
        amounts = self.amounts
        return any(a > 0.0 for a in amounts) and any(a < 0.0 for a in amounts)

    def to_frame(self) -> pd.DataFrame:
        points = self.cash_points
        first = self.first_date
        return pd.DataFrame(
            {
                "date": [pd.Timestamp(p.date) for p in points],
                "amount": np.array([p.amount for p in points], dtype=float),
                "years": np.array([month_diff(p.date, first) / 12.0 for p in points], dtype=float),
            },
            columns=["date", "amount", "years"],
        )

    # ---------- valuation ----------

    def _on_date(self, on_date: Optional[DateLike]) -> date:
        if on_date is not None:
            return ensure_date(on_date)
        return self.first_date or date.today()

    def valuation(
        self,
        on_date: DateLike = None,
        rate: float = SETTINGS.default_rate,
        freq: FrequencyLike = SETTINGS.default_frequency,
    ) -> Valuation:
        on_date = self._on_date(on_date)
        comp = as_compounding(freq)
        return sum((p.valuation(on_date, rate, comp) for p in self._points.values()), ZERO)

    def value_on(
        self,
        on_date: DateLike = None,
        rate: float = SETTINGS.default_rate,
        freq: FrequencyLike = SETTINGS.default_frequency,
    ) -> float:
        """Net value of the flow on ``on_date`` (default: its first date)."""
        return self.valuation(on_date, rate, freq).value

    def valuation_prime(
        self,
        on_date: DateLike = None,
        rate: float = SETTINGS.default_rate,
        freq: FrequencyLike = SETTINGS.default_frequency,
    ) -> Valuation:
        on_date = self._on_date(on_date)
        comp = as_compounding(freq)
        return sum((p.valuation_prime(on_date, rate, comp) for p in self._points.values()), ZERO)

    def value_on_prime(
        self,
        on_date: DateLike = None,
        rate: float = SETTINGS.default_rate,
        freq: FrequencyLike = SETTINGS.default_frequency,
    ) -> float:
        return self.valuation_prime(on_date, rate, freq).value

    # ---------- IRR ----------

    def default_guess(self) -> float:
        """(inflows / |outflows|) ** (1 / years) - 1, or the default rate when undefined."""
        inflow = self.positive_sum
        outflow = abs(self.negative_sum)
        years = self.years
        if inflow <= 0.0 or outflow <= 0.0 or years <= 0.0:
            return SETTINGS.default_rate
        try:
            guess = (inflow / outflow) ** (1.0 / years) - 1.0
        except OverflowError:
            return SETTINGS.default_rate
        if not math.isfinite(guess):
            return SETTINGS.default_rate
        return guess

    def irr(
        self,
        eps: float = SETTINGS.irr_eps,
        guess: Optional[float] = None,
        freq: FrequencyLike = SETTINGS.default_frequency,
    ) -> float:
        """
        Internal rate of return by Newton-Raphson, valued on the first date.

        Returns 0.0 for an empty flow and nan when no root can exist (all
        amounts of one sign). Hands off to bisection (``birr``) when the
        derivative flattens out, values turn complex or non-finite, or the
        iteration ceiling is reached.
        """
        comp = as_compounding(freq)
        if self.empty:
            return 0.0
        if not self.mixed_signs:
            logger.debug("IRR undefined: amounts do not change sign")
            return math.nan

        if guess is None:
            guess = self.default_guess()
        state = _NewtonState(guess=float(guess), original_guess=float(guess))
        first = self.first_date

        while state.iterations < SETTINGS.newton_max_iter:
            state.iterations += 1

            npv = self.valuation(first, state.guess, comp)
            if npv.is_complex:
                if self._recover(state):
                    continue
                return self._fallback(eps, comp, "complex NPV")
            if not npv.is_finite:
                return self._fallback(eps, comp, "non-finite NPV")
            if abs(npv.value) <= eps:
                return state.guess

            npv_prime = self.valuation_prime(first, state.guess, comp)
            if npv_prime.is_complex:
                if self._recover(state):
                    continue
                return self._fallback(eps, comp, "complex NPV'")
            if not npv_prime.is_finite or abs(npv_prime.value) < eps:
                return self._fallback(eps, comp, "flat or non-finite NPV'")

            new_guess = state.guess - npv.value / npv_prime.value
            logger.debug(
                "IRR iter %d: guess=%.8f npv=%.12f npv'=%.12f",
                state.iterations, state.guess, npv.value, npv_prime.value,
            )

            if (
                abs(new_guess) > SETTINGS.divergence_limit
                and abs(state.original_guess) > 1.0
                and not state.recovered
            ):
                logger.debug("IRR diverging at %s; restarting from %s", new_guess, SETTINGS.divergence_reset_guess)
                state.guess = SETTINGS.divergence_reset_guess
                state.recovered = True
                continue

            if abs(new_guess - state.guess) <= eps:
                residual = self.valuation(first, new_guess, comp)
                if residual.is_finite and abs(residual.value) <= eps:
                    return new_guess
            state.guess = new_guess

        return self._fallback(eps, comp, f"no convergence after {state.iterations} iterations")

    @staticmethod
    def _recover(state: _NewtonState) -> bool:
        if state.recovered:
            return False
        logger.debug("IRR complex at guess %s; retrying with %s", state.guess, -state.guess)
        state.guess = -state.guess
        state.recovered = True
        return True

    def _fallback(self, eps: float, comp: Compounding, reason: str) -> float:
        logger.debug("Newton-Raphson IRR abandoned (%s); falling back to bisection", reason)
        return self.birr(eps=eps, freq=comp)

    def _npv_sign(self, rate: float, comp: Compounding) -> Optional[float]:
        v = self.valuation(self.first_date, rate, comp)
        return v.value if v.is_finite else None

    def _find_bracket(self, comp: Compounding):
        center = self.default_guess()
        lo = max(center - SETTINGS.bracket_half_width, SETTINGS.rate_floor)
        hi = center + SETTINGS.bracket_half_width

        for step in range(SETTINGS.bracket_max_steps):
            f_lo = self._npv_sign(lo, comp)
            f_hi = self._npv_sign(hi, comp)
            logger.debug("IRR bracket step %d: [%s, %s] -> [%s, %s]", step, lo, hi, f_lo, f_hi)
            if f_lo is not None and f_hi is not None and f_lo * f_hi <= 0.0:
                return lo, f_lo, hi, f_hi
            if f_lo is None:
                # undefined this low; pull back toward the guess
                lo = 0.5 * (lo + center)
            else:
                lo = max(lo - SETTINGS.bracket_lower_step, SETTINGS.rate_floor)
            hi = hi + SETTINGS.bracket_upper_step
        return None

    def birr(
        self,
        eps: float = SETTINGS.irr_eps,
        lo_guess: Optional[float] = None,
        hi_guess: Optional[float] = None,
        freq: FrequencyLike = SETTINGS.default_frequency,
    ) -> float:
        """
        Internal rate of return by bisection.

        When both ``lo_guess`` and ``hi_guess`` are given they must bracket a
        sign change of the NPV; otherwise a bracket is searched outward from
        the heuristic guess. Bisection stops once ``|NPV| <= eps``, or when
        the bracket can no longer be halved. Returns nan when no bracket is
        found or the iteration ceiling is exhausted.
        """
        comp = as_compounding(freq)
        if self.empty:
            return 0.0
        if not self.mixed_signs:
            return math.nan

        if lo_guess is not None and hi_guess is not None:
            lo, hi = float(lo_guess), float(hi_guess)
            f_lo = self._npv_sign(lo, comp)
            f_hi = self._npv_sign(hi, comp)
            if f_lo is None or f_hi is None:
                raise ValueError(f"NPV is undefined at bracket [{lo}, {hi}].")
            if f_lo * f_hi > 0.0:
                raise ValueError(
                    f"Bracket [{lo}, {hi}] does not straddle a root: NPVs {f_lo} and {f_hi} share a sign."
                )
        else:
            found = self._find_bracket(comp)
            if found is None:
                logger.debug("IRR bisection: no sign change found")
                return math.nan
            lo, f_lo, hi, f_hi = found

        if f_lo == 0.0:
            return lo
        if f_hi == 0.0:
            return hi

        for iteration in range(1, SETTINGS.bisection_max_iter + 1):
            mid = 0.5 * (lo + hi)
            f_mid = self._npv_sign(mid, comp)
            logger.debug("IRR bisect %d: [%.10f, %.10f] mid=%.10f npv=%s", iteration, lo, hi, mid, f_mid)
            if f_mid is None:
                return math.nan
            if abs(f_mid) <= eps:
                return mid
            if mid in (lo, hi):
                # bracket cannot shrink any further in floating point
                logger.debug("IRR bisect: bracket exhausted with npv=%s", f_mid)
                return mid
            if f_lo * f_mid < 0.0:
                hi, f_hi = mid, f_mid
            else:
                lo, f_lo = mid, f_mid

        return math.nan

    # ---------- MIRR ----------

    def mirr(
        self,
        earn_rate: float = SETTINGS.default_rate,
        borrow_rate: float = SETTINGS.default_rate,
        freq: FrequencyLike = SETTINGS.default_frequency,
    ) -> float:
        """
        Modified IRR: inflows compounded to the last date at ``earn_rate``,
        outflows discounted to the first date at ``borrow_rate``, annualized.
        """
        comp = as_compounding(freq)
        inflows = self.inflows()
        if inflows.empty:
            return 0.0
        outflows = self.outflows()
        if outflows.empty:
            return math.inf

        years = self.years
        if years <= 0.0:
            logger.debug("MIRR undefined: flow spans %s years", years)
            return math.nan

        fv = inflows.value_on(self.last_date, earn_rate, comp)
        pv = -outflows.value_on(self.first_date, borrow_rate, comp)
        logger.debug("MIRR: fv=%s pv=%s years=%s", fv, pv, years)
        return (fv / pv) ** (1.0 / years) - 1.0

    # ---------- sub-flows ----------

    def within(
        self,
        period: PeriodLike,
        rate: float = SETTINGS.default_rate,
        freq: FrequencyLike = SETTINGS.default_frequency,
    ) -> "CashFlow":
        """
        Sub-flow limited to ``period``. Everything before the period start is
        collapsed into one point valued on the start date; later points are
        dropped.
        """
        period = ensure_period(period)
        comp = as_compounding(freq)

        before = CashFlow(p for p in self._points.values() if p.date < period.first)
        opening = before.value_on(period.first, rate, comp) if before else 0.0

        out = CashFlow([CashPoint(opening, period.first)])
        for point in self._points.values():
            if point.date in period:
                out.add(point)
        return out
