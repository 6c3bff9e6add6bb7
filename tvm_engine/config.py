"""
Frozen solver settings.

All numerical tolerances and iteration ceilings live here so the valuation
code never hard-codes them. Instances are immutable; build a new one with
``dataclasses.replace`` to experiment with different limits.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SolverSettings:
    # valuation defaults
    default_rate: float = 0.1
    default_frequency: int = 1

    # Newton-Raphson IRR
    irr_eps: float = 1e-6
    newton_max_iter: int = 100
    divergence_limit: float = 10_000.0
    divergence_reset_guess: float = 0.5

    # bracket search + bisection (birr)
    bracket_half_width: float = 0.5
    bracket_lower_step: float = 0.1
    bracket_upper_step: float = 0.2
    bracket_max_steps: int = 50
    rate_floor: float = -0.99
    bisection_max_iter: int = 150

    # bond yield search
    yield_max_iter: int = 50
    yield_places: int = 7

    # bond construction defaults
    default_term_years: int = 30
    default_face: float = 1000.0
    default_coupon_frequency: int = 2


SETTINGS = SolverSettings()
