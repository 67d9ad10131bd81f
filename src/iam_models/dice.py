"""Reduced-form global DICE model on a decadal grid."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from .base import IntegratedAssessmentModel, Outputs
from .damages import DamageSettings, damage_fraction
from .scenarios import IAMFamily, Scenario
from .socioeconomics import DiceSocioeconomics
from .time_grid import TimeGridResolver
from .welfare import aggregate_welfare

MT_CO2_PER_GTC = 3666.67
GTC_PER_PPM = 2.13

# DICE2010 decadal carbon-cycle transfer coefficients (atmosphere, upper, lower ocean).
_DECADAL_TRANSFER = np.array(
    [
        [0.88, 0.04704, 0.0],
        [0.12, 0.94796, 0.00075],
        [0.0, 0.0049, 0.99925],
    ]
)


def _frozen(values: np.ndarray) -> np.ndarray:
    array = np.array(values, dtype=float)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, slots=True, eq=False)
class DiceParameters:
    """Typed parameter record for one DICE run."""

    population_million: np.ndarray
    gross_output_musd: np.ndarray
    emissions_0_mt: tuple[float, ...]
    emissions_growth_pct: np.ndarray
    excess_forcing_wm2: np.ndarray
    # carbon cycle, GtC
    carbon_atmosphere_0: float = 787.0
    carbon_upper_ocean_0: float = 1600.0
    carbon_lower_ocean_0: float = 10010.0
    carbon_atmosphere_preindustrial: float = 596.4
    # climate, decadal coefficients
    forcing_2xco2_wm2: float = 3.8
    climate_sensitivity: float = 3.2
    atmosphere_response: float = 0.208
    ocean_exchange: float = 0.310
    ocean_response: float = 0.05
    temperature_atmosphere_0_c: float = 0.83
    temperature_ocean_0_c: float = 0.0068
    # damages and welfare
    damages: DamageSettings = field(default_factory=DamageSettings)
    savings_rate: float = 0.23
    pure_time_preference_pct: float = 1.5
    utility_elasticity: float = 0.0

    @classmethod
    def from_scenario(
        cls, scenario: Scenario, grid: TimeGridResolver, base_year: int
    ) -> "DiceParameters":
        growth = DiceSocioeconomics.from_scenario(scenario.dice, start_year=base_year)
        projection = growth.project_grid(grid.years.astype(int))
        years = grid.years
        return cls(
            population_million=_frozen(projection["population_million"].to_numpy()[:, None]),
            gross_output_musd=_frozen(projection["gdp_trillion_usd"].to_numpy()[:, None] * 1e6),
            emissions_0_mt=(31000.0,),
            emissions_growth_pct=_frozen(
                100.0 * scenario.pathway.multiples(years, base_year)[:, None]
            ),
            excess_forcing_wm2=_frozen(scenario.pathway.excess_forcing(years, base_year)),
            savings_rate=growth.savings_rate,
        )


class DiceModel(IntegratedAssessmentModel):
    """Single global region; three-box carbon cycle and two-box temperature."""

    family = IAMFamily.DICE

    @classmethod
    def build(cls, scenario: Scenario, time_grid: TimeGridResolver | None = None) -> "DiceModel":
        settings = cls.family.settings
        grid = time_grid or TimeGridResolver(settings.grid_years)
        parameters = DiceParameters.from_scenario(scenario, grid, settings.base_year)
        return cls(scenario, parameters, grid)

    def _simulate(self, p: DiceParameters) -> Outputs:
        settings = self.settings
        years = self._grid.years
        steps = self._grid.steps(settings.base_year)
        n_years = years.size

        e0 = np.asarray(p.emissions_0_mt, dtype=float)
        e0_global = float(e0.sum())
        regional_mt = e0[None, :] * p.emissions_growth_pct / 100.0
        global_mt = regional_mt.sum(axis=1)

        # annual sub-steps of the decadal DICE2010 equations
        annual_transfer = np.eye(3) + (_DECADAL_TRANSFER - np.eye(3)) / 10.0
        feedback = p.forcing_2xco2_wm2 / p.climate_sensitivity
        reservoirs = np.array(
            [p.carbon_atmosphere_0, p.carbon_upper_ocean_0, p.carbon_lower_ocean_0]
        )
        t_atm = p.temperature_atmosphere_0_c
        t_ocean = p.temperature_ocean_0_c

        atmosphere = np.zeros(n_years)
        forcing = np.zeros(n_years)
        temperature = np.zeros(n_years)
        previous_emissions = e0_global
        previous_exf = float(p.excess_forcing_wm2[0])
        for t in range(n_years):
            substeps = int(round(steps[t]))
            for k in range(substeps):
                weight = (k + 0.5) / substeps
                emissions = previous_emissions + weight * (global_mt[t] - previous_emissions)
                exf = previous_exf + weight * (p.excess_forcing_wm2[t] - previous_exf)
                reservoirs = annual_transfer @ reservoirs
                reservoirs[0] += emissions / MT_CO2_PER_GTC
                radiative = (
                    p.forcing_2xco2_wm2
                    * np.log2(reservoirs[0] / p.carbon_atmosphere_preindustrial)
                    + exf
                )
                t_atm_next = t_atm + p.atmosphere_response / 10.0 * (
                    radiative - feedback * t_atm - p.ocean_exchange * (t_atm - t_ocean)
                )
                t_ocean = t_ocean + p.ocean_response / 10.0 * (t_atm - t_ocean)
                t_atm = t_atm_next
            atmosphere[t] = reservoirs[0]
            forcing[t] = (
                p.forcing_2xco2_wm2 * np.log2(reservoirs[0] / p.carbon_atmosphere_preindustrial)
                + p.excess_forcing_wm2[t]
            )
            temperature[t] = t_atm
            previous_emissions = global_mt[t]
            previous_exf = float(p.excess_forcing_wm2[t])

        gross = np.asarray(p.gross_output_musd, dtype=float)
        population = np.asarray(p.population_million, dtype=float)
        consumption = gross * (1.0 - p.savings_rate)
        cpc = consumption / population
        omega = damage_fraction(temperature, p.damages)[:, None]
        impact = np.minimum(omega * gross, p.damages.max_fraction * consumption)

        welfare = aggregate_welfare(
            years=years,
            base_year=settings.base_year,
            horizon=settings.horizon,
            spans=self._grid.spans(),
            consumption_per_capita=cpc,
            impact_musd=impact,
            population_million=population,
            focus_consumption_0=float(cpc[0, settings.focus_region]),
            elasticity=p.utility_elasticity,
            pure_time_preference_pct=p.pure_time_preference_pct,
        )
        welfare["pure_time_preference_pct"] = np.asarray(p.pure_time_preference_pct)
        welfare["utility_elasticity"] = np.asarray(p.utility_elasticity)

        return {
            "emissions": {
                "growth_pct": p.emissions_growth_pct,
                "regional_mt": regional_mt,
                "global_mt": global_mt,
                "base_global_mt": np.asarray(e0_global),
            },
            "climate": {
                "concentration_ppm": atmosphere / GTC_PER_PPM,
                "forcing_wm2": forcing,
                "temperature_c": temperature,
                "regional_temperature_c": temperature[:, None],
            },
            "socioeconomics": {
                "gdp_musd": gross,
                "population_million": population,
                "consumption_per_capita_usd": cpc,
                "consumption_per_capita_0_usd": cpc[0],
            },
            "damages": {
                "impact_fraction": impact / gross,
                "impact_musd": impact,
            },
            "discontinuity": {"occurrence": np.zeros(n_years)},
            "welfare": welfare,
        }


__all__ = ["DiceParameters", "DiceModel"]
