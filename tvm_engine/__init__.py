"""
Time Value of Money Engine

Modules:
- utils: calendar arithmetic (month_diff, month-end/leap rules, Excel serials),
  periods, day-count conventions, annuity present value
- compounding: discrete / simple / continuous compounding regimes
- cashpoint: one dated amount with NPV/FV, derivative and growth-rate operations
- cashflow: date-keyed stream of amounts with NPV, IRR (Newton + bisection), MIRR
- bonds: fixed-coupon bond price, yield, accrued interest and duration
- config: frozen solver tolerances and iteration ceilings

Callers import from the modules directly.
"""
