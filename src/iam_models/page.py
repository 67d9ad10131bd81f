"""Reduced-form eight-region PAGE model on the IWG time grid."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .base import IntegratedAssessmentModel, Outputs
from .scenarios import IAMFamily, Scenario
from .time_grid import TimeGridResolver
from .welfare import aggregate_welfare

# 2000 values per region (EU, USA, OECD, USSR, China, SEAsia, Africa, LatAmerica)
_POPULATION_0_MILLION = (500.0, 300.0, 210.0, 330.0, 1400.0, 2100.0, 1000.0, 570.0)
_GDP_0_MUSD = (1.5e7, 1.3e7, 6.0e6, 1.2e6, 3.5e6, 2.0e6, 1.7e6, 1.9e6)
_EMISSIONS_0_MT = (4200.0, 6000.0, 2500.0, 3300.0, 7500.0, 3600.0, 2700.0, 1600.0)
_REGIONAL_WARMING = (1.1, 1.1, 1.15, 1.35, 1.05, 0.85, 0.95, 0.95)
_DAMAGE_WEIGHTS = (1.0, 0.8, 0.8, 0.4, 0.8, 0.8, 0.6, 0.6)


def _compound(initial: tuple[float, ...], growth_pct: np.ndarray, steps: np.ndarray) -> np.ndarray:
    factors = np.cumprod((1.0 + growth_pct / 100.0) ** steps[:, None], axis=0)
    return np.asarray(initial, dtype=float)[None, :] * factors


def _decaying_growth(
    years: np.ndarray, base_year: int, initial: tuple[float, ...], longrun: float, decay: float
) -> np.ndarray:
    start = np.asarray(initial, dtype=float)[None, :]
    fade = np.exp(-(years - base_year) / decay)[:, None]
    return longrun + (start - longrun) * fade


def _frozen(values: np.ndarray) -> np.ndarray:
    array = np.array(values, dtype=float)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, slots=True, eq=False)
class PageParameters:
    """Typed parameter record for one PAGE run; arrays are aligned to the grid."""

    population_million: np.ndarray
    gdp_musd: np.ndarray
    emissions_0_mt: tuple[float, ...]
    emissions_growth_pct: np.ndarray
    excess_forcing_wm2: np.ndarray
    # carbon cycle
    co2_concentration_0_ppm: float = 369.0
    co2_preindustrial_ppm: float = 278.0
    co2_stay_fraction: float = 0.3
    co2_residence_years: float = 73.0
    co2_air_fraction: float = 0.62
    mt_co2_per_ppm: float = 7800.0
    # climate
    forcing_slope_wm2: float = 5.35
    climate_sensitivity: float = 3.0
    warming_half_life: float = 30.0
    temperature_0_c: float = 0.76
    regional_warming_factor: tuple[float, ...] = _REGIONAL_WARMING
    # damages
    calibration_temperature_c: float = 2.5
    market_damage_pct: float = 0.5
    nonmarket_damage_pct: float = 0.63
    damage_exponent: float = 2.0
    income_exponent: float = -0.13
    regional_damage_weights: tuple[float, ...] = _DAMAGE_WEIGHTS
    discontinuity_threshold_c: float = 3.0
    discontinuity_loss_pct: float = 5.0
    max_impact_share: float = 0.99
    # economics and welfare
    savings_rate: float = 0.15
    pure_time_preference_pct: float = 1.0333
    utility_elasticity: float = 0.0

    @classmethod
    def from_scenario(
        cls, scenario: Scenario, grid: TimeGridResolver, base_year: int
    ) -> "PageParameters":
        data = scenario.page
        years = grid.years
        steps = grid.steps(base_year)

        gdp_growth = _decaying_growth(
            years,
            base_year,
            data.gdp_growth_initial_pct,
            data.gdp_growth_longrun_pct,
            data.gdp_growth_decay_years,
        )
        pop_growth = _decaying_growth(
            years,
            base_year,
            data.population_growth_initial_pct,
            data.population_growth_longrun_pct,
            data.population_growth_decay_years,
        )
        growth_pct = np.column_stack(
            [
                100.0 * scenario.pathway.multiples(years, base_year, tilt=tilt)
                for tilt in data.emissions_tilt
            ]
        )
        return cls(
            population_million=_frozen(_compound(_POPULATION_0_MILLION, pop_growth, steps)),
            gdp_musd=_frozen(_compound(_GDP_0_MUSD, gdp_growth, steps)),
            emissions_0_mt=_EMISSIONS_0_MT,
            emissions_growth_pct=_frozen(growth_pct),
            excess_forcing_wm2=_frozen(scenario.pathway.excess_forcing(years, base_year)),
        )


class PageModel(IntegratedAssessmentModel):
    """Eight regions, irregular grid, PAGE-style impacts with a discontinuity."""

    family = IAMFamily.PAGE

    @classmethod
    def build(cls, scenario: Scenario, time_grid: TimeGridResolver | None = None) -> "PageModel":
        settings = cls.family.settings
        grid = time_grid or TimeGridResolver(settings.grid_years)
        parameters = PageParameters.from_scenario(scenario, grid, settings.base_year)
        return cls(scenario, parameters, grid)

    def _simulate(self, p: PageParameters) -> Outputs:
        settings = self.settings
        years = self._grid.years
        steps = self._grid.steps(settings.base_year)
        n_years = years.size

        # emissions
        e0 = np.asarray(p.emissions_0_mt, dtype=float)
        e0_global = float(e0.sum())
        regional_mt = e0[None, :] * p.emissions_growth_pct / 100.0
        global_mt = regional_mt.sum(axis=1)

        # carbon cycle: a permanent pool and a pool decaying over the residence time
        excess = p.co2_concentration_0_ppm - p.co2_preindustrial_ppm
        permanent = p.co2_stay_fraction * excess
        decaying = (1.0 - p.co2_stay_fraction) * excess
        concentration = np.zeros(n_years)
        previous_emissions = e0_global
        for t in range(n_years):
            yp = steps[t]
            mass_mt = 0.5 * (previous_emissions + global_mt[t]) * yp
            added_ppm = p.co2_air_fraction * mass_mt / p.mt_co2_per_ppm
            retention = np.exp(-yp / p.co2_residence_years)
            permanent += p.co2_stay_fraction * added_ppm
            if yp > 0:
                inflow = (1.0 - p.co2_stay_fraction) * added_ppm
                decaying = decaying * retention + inflow * (1.0 - retention) * (
                    p.co2_residence_years / yp
                )
            concentration[t] = p.co2_preindustrial_ppm + permanent + decaying
            previous_emissions = global_mt[t]

        # forcing and warming
        forcing = (
            p.forcing_slope_wm2 * np.log(concentration / p.co2_preindustrial_ppm)
            + p.excess_forcing_wm2
        )
        equilibrium = p.climate_sensitivity * forcing / (p.forcing_slope_wm2 * np.log(2.0))
        temperature = np.zeros(n_years)
        current = p.temperature_0_c
        for t in range(n_years):
            current = current + (1.0 - np.exp(-steps[t] / p.warming_half_life)) * (
                equilibrium[t] - current
            )
            temperature[t] = current
        regional_temperature = temperature[:, None] * np.asarray(p.regional_warming_factor)[None, :]

        # socioeconomics
        gdp = np.asarray(p.gdp_musd, dtype=float)
        population = np.asarray(p.population_million, dtype=float)
        consumption = gdp * (1.0 - p.savings_rate)
        cpc = consumption / population
        cpc_0 = (
            np.asarray(_GDP_0_MUSD) * (1.0 - p.savings_rate) / np.asarray(_POPULATION_0_MILLION)
        )

        # impacts
        focus = settings.focus_region
        gdp_pc_focus_0 = _GDP_0_MUSD[focus] / _POPULATION_0_MILLION[focus]
        income_scale = (gdp / population / gdp_pc_focus_0) ** p.income_exponent
        warming = np.maximum(regional_temperature, 0.0) / p.calibration_temperature_c
        weights = np.asarray(p.regional_damage_weights)[None, :]
        economic = (
            (p.market_damage_pct + p.nonmarket_damage_pct)
            / 100.0
            * weights
            * warming**p.damage_exponent
            * income_scale
        )
        occurrence = np.maximum.accumulate(
            (temperature >= p.discontinuity_threshold_c).astype(float)
        )
        fraction = economic + occurrence[:, None] * p.discontinuity_loss_pct / 100.0
        impact = np.minimum(fraction * gdp, p.max_impact_share * consumption)

        welfare = aggregate_welfare(
            years=years,
            base_year=settings.base_year,
            horizon=settings.horizon,
            spans=self._grid.spans(),
            consumption_per_capita=cpc,
            impact_musd=impact,
            population_million=population,
            focus_consumption_0=float(cpc_0[focus]),
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
                "concentration_ppm": concentration,
                "forcing_wm2": forcing,
                "temperature_c": temperature,
                "regional_temperature_c": regional_temperature,
            },
            "socioeconomics": {
                "gdp_musd": gdp,
                "population_million": population,
                "consumption_per_capita_usd": cpc,
                "consumption_per_capita_0_usd": cpc_0,
            },
            "damages": {
                "impact_fraction": impact / gdp,
                "impact_musd": impact,
            },
            "discontinuity": {"occurrence": occurrence},
            "welfare": welfare,
        }


__all__ = ["PageParameters", "PageModel"]
