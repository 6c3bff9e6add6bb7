from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .cashflow import CashFlow
from .cashpoint import CashPoint
from .compounding import SIMPLE, is_periods_per_year
from .config import SETTINGS
from .utils import (
    DateLike,
    DayCount,
    accrual_factor,
    add_months,
    annuity_present_value,
    ensure_date,
    ensure_day_count,
    is_last_of_month,
    month_diff,
    whole_month_diff,
)

logger = logging.getLogger(__name__)

Convention = Union[int, DayCount]


def _term_between(issue: date, maturity: date) -> float:
    if (issue.month, issue.day) == (maturity.month, maturity.day):
        return float(maturity.year - issue.year)
    return (maturity - issue).days / 365.25


def _shift_years(d: date, years: float) -> date:
    return add_months(d, int(round(years * 12)))


@dataclass(frozen=True)
class Bond:
    """
    Fixed-coupon bond.

    Supply two of ``maturity``, ``issue_date`` and ``term`` (years) and the
    third is derived. Supplying only ``maturity`` or only ``issue_date``
    assumes a 30-year term; supplying only ``term`` assumes issue today.

    ``coupon`` is the annual coupon rate as a decimal, paid ``frequency``
    times a year. ``eom`` marks bonds that always pay on the last day of the
    month; it changes the US 30/360 day count and rolls coupon dates to the
    month end.
    """
    coupon: float
    maturity: Optional[date] = None
    issue_date: Optional[date] = None
    term: Optional[float] = None
    face: float = SETTINGS.default_face
    frequency: int = SETTINGS.default_coupon_frequency
    eom: bool = False

    def __post_init__(self):
        maturity = ensure_date(self.maturity) if self.maturity is not None else None
        issue = ensure_date(self.issue_date) if self.issue_date is not None else None
        term = float(self.term) if self.term is not None else None

        if maturity is None and issue is None and term is None:
            raise ValueError("Bond needs at least one of maturity, issue_date, or term.")

        if maturity is not None and issue is not None:
            derived = _term_between(issue, maturity)
            if term is not None and abs(term - derived) > 1e-6:
                raise ValueError(
                    f"Bond term ({term}) inconsistent with issue {issue} and maturity {maturity}."
                )
            term = derived
        elif maturity is not None:
            term = float(SETTINGS.default_term_years) if term is None else term
            issue = _shift_years(maturity, -term)
        elif issue is not None:
            term = float(SETTINGS.default_term_years) if term is None else term
            maturity = _shift_years(issue, term)
        else:
            issue = date.today()
            maturity = _shift_years(issue, term)

        if not maturity > issue:
            raise ValueError(f"Bond maturity {maturity} must be later than issue {issue}.")
        if not 0.0 < term <= 100.0:
            raise ValueError(f"Bond term ({term}) not credible. Use life of bond in years.")
        if not 0.0 <= self.coupon <= 1.0:
            raise ValueError(f"Nonsense coupon rate ({self.coupon}). Use decimals, not percentages.")
        if not self.face > 0.0:
            raise ValueError(f"Bond face must be positive, got {self.face}.")
        if not is_periods_per_year(self.frequency):
            raise ValueError(f"Coupon frequency ({self.frequency}) not a divisor of 12.")

        object.__setattr__(self, "maturity", maturity)
        object.__setattr__(self, "issue_date", issue)
        object.__setattr__(self, "term", term)
        object.__setattr__(self, "coupon", float(self.coupon))
        object.__setattr__(self, "face", float(self.face))
        object.__setattr__(self, "frequency", int(self.frequency))

    def __str__(self) -> str:
        return (
            f"Bond[{self.face}, Due {self.maturity}, Coup {self.coupon}, "
            f"{self.frequency} per yr, Iss {self.issue_date}]"
        )

    # ---------- schedule ----------

    @property
    def months_per_period(self) -> int:
        return 12 // self.frequency

    @property
    def coupon_payment(self) -> float:
        return self.face * self.coupon / self.frequency

    def _month_end_anchor(self) -> bool:
        return self.eom or is_last_of_month(self.maturity)

    def _coupon_date(self, k: int) -> date:
        """Coupon date k periods before maturity (k may be negative)."""
        return add_months(self.maturity, -k * self.months_per_period, month_end=self._month_end_anchor())

    def _coupon_index(self, d: date) -> int:
        """k such that coupon(k) > d >= coupon(k + 1)."""
        gap = (self.maturity.year - d.year) * 12 + (self.maturity.month - d.month)
        k = gap // self.months_per_period + 1
        while self._coupon_date(k) <= d:
            k -= 1
        while self._coupon_date(k + 1) > d:
            k += 1
        return k

    def next_coupon_date(self, d: DateLike) -> date:
        """First coupon date strictly after d."""
        return self._coupon_date(self._coupon_index(ensure_date(d)))

    def prior_coupon_date(self, d: DateLike) -> date:
        """Last coupon date on or before d."""
        return self._coupon_date(self._coupon_index(ensure_date(d)) + 1)

    def coupon_dates(self, settle_date: DateLike = None) -> List[date]:
        """All coupon dates strictly after settlement, ending at maturity."""
        settle = self._settle(settle_date)
        return [self._coupon_date(k) for k in range(self._coupon_index(settle), -1, -1)]

    # ---------- argument checks ----------

    def _settle(self, settle_date: Optional[DateLike]) -> date:
        settle = self.issue_date if settle_date is None else ensure_date(settle_date)
        if settle >= self.maturity:
            raise ValueError(f"Settlement date {settle} on or after maturity date {self.maturity}.")
        return settle

    @staticmethod
    def _check_yield(yld: float) -> None:
        if not 0.0 <= yld <= 1.0:
            raise ValueError(f"Nonsense yield ({yld}). Use decimals, not percentages.")

    # ---------- accrual ----------

    def factor(self, date2: DateLike, convention: Convention = DayCount.US_30_360) -> float:
        """Fraction of the annual coupon accrued by date2 since the prior coupon date."""
        date2 = ensure_date(date2)
        return accrual_factor(
            self.prior_coupon_date(date2),
            date2,
            convention,
            eom=self.eom,
            maturity=self.maturity,
        )

    def accrued_interest(self, settle_date: DateLike = None, convention: Convention = DayCount.US_30_360) -> float:
        """Accrued interest in currency units (not per 100)."""
        settle = self._settle(settle_date)
        return self.face * self.coupon * self.factor(settle, convention)

    # ---------- pricing ----------

    def price(
        self,
        yld: float,
        settle_date: DateLike = None,
        convention: Convention = DayCount.US_30_360,
    ) -> float:
        """
        Clean price at annual yield ``yld`` (decimal) for settlement on
        ``settle_date`` (default: issue date).

        Coupons after the next one are an annuity discounted to the next coupon
        date; that lump and the face are then discounted to settlement with
        simple interest for the broken period. Accrued interest owed to the
        seller is subtracted.
        """
        self._check_yield(yld)
        settle = self._settle(settle_date)
        convention = ensure_day_count(convention)

        r = yld / self.frequency
        pmt = self.coupon_payment
        nxt = self.next_coupon_date(settle)
        num_coupons = int(whole_month_diff(self.maturity, nxt)) // self.months_per_period

        pv_coupons = annuity_present_value(num_coupons, pmt, r) + pmt
        pv_coupons = CashPoint(pv_coupons, nxt).value_on(settle, yld, SIMPLE)

        # face back to the next coupon date, then as a point to settlement
        pv_face = CashPoint(self.face, self.maturity).value_on(nxt, yld, self.frequency)
        pv_face = CashPoint(pv_face, nxt).value_on(settle, yld, SIMPLE)

        accrued = self.face * self.coupon * self.factor(settle, convention)
        return pv_coupons + pv_face - accrued

    def price_dirty_clean(
        self,
        yld: float,
        settle_date: DateLike = None,
        convention: Convention = DayCount.US_30_360,
    ) -> Tuple[float, float, float]:
        """Returns (dirty, clean, accrued) in currency units."""
        clean = self.price(yld, settle_date, convention)
        accrued = self.accrued_interest(settle_date, convention)
        return clean + accrued, clean, accrued

    def yld(
        self,
        price: float,
        settle_date: DateLike = None,
        convention: Convention = DayCount.US_30_360,
    ) -> float:
        """
        Yield in [0, 1] that reproduces ``price``, by bisection. Stops once the
        bracket ends agree to a fixed number of decimal places. Returns nan when
        the price is outside what any yield in [0, 1] can produce.
        """
        if price < 0:
            raise ValueError(f"Negative price ({price}).")
        settle = self._settle(settle_date)
        convention = ensure_day_count(convention)

        highest = self.price(0.0, settle, convention)
        lowest = self.price(1.0, settle, convention)
        if not lowest <= price <= highest:
            logger.debug("Price %s outside attainable range [%s, %s]", price, lowest, highest)
            return math.nan

        places = SETTINGS.yield_places
        low, high = 0.0, 1.0
        mid = low
        iterations = 0
        while f"{low:.{places}f}" != f"{high:.{places}f}" and iterations < SETTINGS.yield_max_iter:
            iterations += 1
            mid = (low + high) / 2.0
            computed = self.price(mid, settle, convention)
            logger.debug(
                "Yield iter %02d: [%.*f, <%.*f>, %.*f] price=%.*f target=%.*f",
                iterations, places, low, places, mid, places, high, places, computed, places, price,
            )
            if computed > price:
                low = mid
            else:
                high = mid
        return mid

    # ---------- duration ----------

    def macaulay_duration(
        self,
        yld: float,
        settle_date: DateLike = None,
        convention: Convention = DayCount.US_30_360,
    ) -> float:
        """
        Value-weighted average years to each payment, discounted to
        settlement, divided by the price.
        """
        self._check_yield(yld)
        settle = self._settle(settle_date)
        convention = ensure_day_count(convention)

        if self.coupon == 0.0:
            return month_diff(self.maturity, settle) / 12.0

        pmt = self.coupon_payment
        moment = 0.0
        for cdate in self.coupon_dates(settle):
            years = month_diff(cdate, settle) / 12.0
            pv = CashPoint(pmt, cdate).value_on(settle, yld, self.frequency)
            moment += years * pv
            logger.debug("Coupon %s: amount=%s pv=%s years=%s", cdate, pmt, pv, years)

        years_to_maturity = month_diff(self.maturity, settle) / 12.0
        pv_face = CashPoint(self.face, self.maturity).value_on(settle, yld, self.frequency)
        moment += years_to_maturity * pv_face

        px = self.price(yld, settle, convention)
        logger.debug("Macaulay moment=%s price=%s", moment, px)
        return moment / px

    def modified_duration(
        self,
        yld: float,
        settle_date: DateLike = None,
        convention: Convention = DayCount.US_30_360,
    ) -> float:
        return self.macaulay_duration(yld, settle_date, convention) / (1.0 + yld / self.frequency)

    # ---------- cash flows ----------

    def cash_flow(self, settle_date: DateLike = None) -> CashFlow:
        """Remaining coupons and face as a fresh CashFlow."""
        flow = CashFlow()
        pmt = self.coupon_payment
        if pmt > 0.0:
            for cdate in self.coupon_dates(settle_date):
                flow.add(CashPoint(pmt, cdate))
        return flow.add(CashPoint(self.face, self.maturity))

    def cash_flow_table(self, yld: float, settle_date: DateLike = None) -> pd.DataFrame:
        self._check_yield(yld)
        settle = self._settle(settle_date)
        points = self.cash_flow(settle).cash_points
        return pd.DataFrame(
            {
                "pay_date": [pd.Timestamp(p.date) for p in points],
                "cashflow": np.array([p.amount for p in points], dtype=float),
                "years": np.array([month_diff(p.date, settle) / 12.0 for p in points], dtype=float),
                "pv": np.array([p.value_on(settle, yld, self.frequency) for p in points], dtype=float),
            },
            columns=["pay_date", "cashflow", "years", "pv"],
        )
