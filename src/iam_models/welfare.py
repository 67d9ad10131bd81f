"""Equity weighting, utility discounting and aggregation of regional impacts."""

from __future__ import annotations

from typing import Dict

import numpy as np

from .errors import EngineError


def utility_discount_factors(
    years: np.ndarray, base_year: float, pure_time_preference_pct: float
) -> np.ndarray:
    """Return ``(1 + ptp/100)^-(year - base_year)`` for every year."""

    years = np.asarray(years, dtype=float)
    return (1.0 + pure_time_preference_pct / 100.0) ** (-(years - float(base_year)))


def equity_weighted_impact(
    consumption_per_capita: np.ndarray,
    impact_per_capita: np.ndarray,
    population_million: np.ndarray,
    focus_consumption_0: float,
    elasticity: float,
) -> np.ndarray:
    """Welfare-equivalent impact in $M, normalised to base-year focus-region consumption.

    With ``elasticity == 0`` this reduces to the plain impact (per capita impact
    times population). ``elasticity == 1`` uses the logarithmic utility form.
    """

    cpc = np.asarray(consumption_per_capita, dtype=float)
    ipc = np.asarray(impact_per_capita, dtype=float)
    pop = np.asarray(population_million, dtype=float)

    remaining = cpc - ipc
    if np.any(remaining <= 0.0):
        raise EngineError("Impacts exceed consumption; equity weights are undefined.")

    if elasticity == 0.0:
        return ipc * pop
    if elasticity == 1.0:
        return focus_consumption_0 * (np.log(cpc) - np.log(remaining)) * pop
    weight = focus_consumption_0**elasticity / (1.0 - elasticity)
    return weight * (cpc ** (1.0 - elasticity) - remaining ** (1.0 - elasticity)) * pop


def aggregate_welfare(
    *,
    years: np.ndarray,
    base_year: float,
    horizon: float,
    spans: np.ndarray,
    consumption_per_capita: np.ndarray,
    impact_musd: np.ndarray,
    population_million: np.ndarray,
    focus_consumption_0: float,
    elasticity: float,
    pure_time_preference_pct: float,
) -> Dict[str, np.ndarray]:
    """Compute the ``welfare`` component outputs shared by every family."""

    years = np.asarray(years, dtype=float)
    population = np.asarray(population_million, dtype=float)
    impact_per_capita = np.asarray(impact_musd, dtype=float) / population

    wit = equity_weighted_impact(
        consumption_per_capita,
        impact_per_capita,
        population,
        focus_consumption_0,
        elasticity,
    )
    dfu = utility_discount_factors(years, base_year, pure_time_preference_pct)
    widt = wit * dfu[:, None]
    addt = widt * np.asarray(spans, dtype=float)[:, None]
    within = years <= float(horizon)
    total = float(addt[within].sum())

    return {
        "equity_weighted_impact": wit,
        "equity_weighted_impact_discounted": widt,
        "discounted_impact_aggregated": addt,
        "total_discounted_impacts": np.asarray(total),
        "utility_discount_factor": dfu,
        "aggregation_span_years": np.asarray(spans, dtype=float),
    }


__all__ = ["utility_discount_factors", "equity_weighted_impact", "aggregate_welfare"]
