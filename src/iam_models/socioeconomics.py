"""Socioeconomic projections derived from DICE-style dynamics."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd

from .errors import ConfigurationError
from .scenarios import DiceScenarioData


@dataclass(frozen=True, slots=True)
class DiceSocioeconomics:
    """DICE-style growth model for population, TFP, and capital."""

    start_year: int
    initial_population_million: float
    logistic_growth: float
    population_asymptote_million: float
    tfp_initial_level: float
    tfp_initial_growth: float
    tfp_decline_rate: float
    capital_share: float
    depreciation_rate: float
    savings_rate: float
    capital_output_ratio: float
    initial_capital_trillions: float | None = None

    @classmethod
    def from_scenario(
        cls,
        scenario: DiceScenarioData,
        *,
        start_year: int,
        initial_population_million: float = 6514.0,
        logistic_growth: float = 0.028,
        tfp_initial_level: float = 3.39,
        tfp_decline_rate: float = 0.005,
        capital_share: float = 0.3,
        depreciation_rate: float = 0.1,
        savings_rate: float = 0.23,
        capital_output_ratio: float = 2.5,
        initial_capital_trillions: float | None = None,
    ) -> "DiceSocioeconomics":
        if not 0.0 < capital_share < 1.0:
            raise ConfigurationError("capital_share must lie strictly between 0 and 1.")
        return cls(
            start_year=int(start_year),
            initial_population_million=float(initial_population_million),
            logistic_growth=float(logistic_growth),
            population_asymptote_million=float(scenario.population_asymptote_million),
            tfp_initial_level=float(tfp_initial_level),
            tfp_initial_growth=float(scenario.tfp_initial_growth),
            tfp_decline_rate=float(tfp_decline_rate),
            capital_share=float(capital_share),
            depreciation_rate=float(depreciation_rate),
            savings_rate=float(savings_rate),
            capital_output_ratio=float(capital_output_ratio),
            initial_capital_trillions=initial_capital_trillions,
        )

    def _initial_equilibrium_output(self, population_million: float) -> float:
        labour_billions = max(population_million, 0.0) / 1000.0
        base = (
            self.tfp_initial_level
            * (self.capital_output_ratio**self.capital_share)
            * (labour_billions ** (1.0 - self.capital_share))
        )
        return base ** (1.0 / (1.0 - self.capital_share))

    def project(self, end_year: int) -> pd.DataFrame:
        """Annual projection from ``start_year`` through ``end_year``."""

        if end_year < self.start_year:
            raise ValueError("end_year must be greater than or equal to start_year.")

        years = np.arange(self.start_year, end_year + 1, dtype=int)
        population = np.zeros(years.shape[0], dtype=float)
        gdp = np.zeros_like(population)
        capital_series = np.zeros_like(population)
        tfp_series = np.zeros_like(population)

        population_million = float(self.initial_population_million)
        tfp_level = float(self.tfp_initial_level)
        capital = (
            float(self.initial_capital_trillions)
            if self.initial_capital_trillions is not None
            else self.capital_output_ratio * self._initial_equilibrium_output(population_million)
        )

        for idx, year in enumerate(years):
            labour = max(population_million, 1e-6) / 1000.0
            output = tfp_level * capital**self.capital_share * labour ** (1.0 - self.capital_share)

            population[idx] = population_million
            gdp[idx] = output
            capital_series[idx] = capital
            tfp_series[idx] = tfp_level

            capital = (1.0 - self.depreciation_rate) * capital + self.savings_rate * output
            growth = self.tfp_initial_growth * np.exp(
                -self.tfp_decline_rate * max(year - self.start_year, 0)
            )
            tfp_level = tfp_level / max(1.0 - growth, 1e-9)
            population_million = population_million * (
                (self.population_asymptote_million / max(population_million, 1e-9))
                ** self.logistic_growth
            )

        consumption = (1.0 - self.savings_rate) * gdp
        return pd.DataFrame(
            {
                "year": years,
                "population_million": population,
                "gdp_trillion_usd": gdp,
                "capital_stock_trillion_usd": capital_series,
                "consumption_trillion_usd": consumption,
                "consumption_per_capita_usd": consumption * 1e12 / (population * 1e6),
                "tfp_level": tfp_series,
            }
        )

    def project_grid(self, grid_years: Sequence[int]) -> pd.DataFrame:
        """Projection sampled at ``grid_years`` (which must not precede ``start_year``)."""

        grid = np.asarray(grid_years, dtype=int)
        if grid.size == 0 or grid.min() < self.start_year:
            raise ConfigurationError(
                f"Grid years must start at or after the projection start {self.start_year}."
            )
        frame = self.project(int(grid.max())).set_index("year")
        return frame.loc[grid].reset_index()


__all__ = ["DiceSocioeconomics"]
