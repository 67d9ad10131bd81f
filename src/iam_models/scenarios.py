"""Immutable scenario catalogue and per-family settings for the IWG pathways.

The five socioeconomic pathways used by the Interagency Working Group are shared
by every IAM family, but each family labels and parameterises them differently.
Everything here is built once and passed around explicitly; no table is mutated
after construction.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping

import numpy as np

from .errors import ConfigurationError

SCENARIO_NAMES: tuple[str, ...] = (
    "IMAGE",
    "MERGE Optimistic",
    "MESSAGE",
    "MiniCAM Base",
    "5th Scenario",
)

DEFAULT_YEAR = 2020
DEFAULT_DISCOUNT = 0.03
DEFAULT_HORIZON = 2300
DEFAULT_DISCOUNT_RATES: tuple[float, ...] = (0.025, 0.03, 0.05)

PAGE_REGIONS: tuple[str, ...] = (
    "EU",
    "USA",
    "OECD",
    "USSR",
    "China",
    "SEAsia",
    "Africa",
    "LatAmerica",
)


class IAMFamily(str, enum.Enum):
    """Closed set of supported IAM families."""

    PAGE = "PAGE"
    DICE = "DICE"

    @classmethod
    def parse(cls, value: "IAMFamily | str") -> "IAMFamily":
        if isinstance(value, cls):
            return value
        key = str(value).strip().upper()
        try:
            return cls(key)
        except ValueError as exc:
            choices = ", ".join(member.value for member in cls)
            raise ConfigurationError(
                f"Unknown IAM family '{value}'. Choose one of: {choices}."
            ) from exc

    @property
    def settings(self) -> "FamilySettings":
        return FAMILY_SETTINGS[self]


@dataclass(frozen=True, slots=True)
class FamilySettings:
    """Grid, units and normalisation constants for one IAM family."""

    family: IAMFamily
    grid_years: tuple[int, ...]
    base_year: int
    horizon: int
    regions: tuple[str, ...]
    pulse_mt: float
    currency_inflator: float
    currency_year: int
    perturbation_years: tuple[int, ...]
    domestic_region: int | None = None
    focus_region: int = 0

    @property
    def supports_domestic(self) -> bool:
        return self.domestic_region is not None

    @property
    def region_count(self) -> int:
        return len(self.regions)


FAMILY_SETTINGS: Mapping[IAMFamily, FamilySettings] = MappingProxyType(
    {
        IAMFamily.PAGE: FamilySettings(
            family=IAMFamily.PAGE,
            grid_years=(2010, 2020, 2030, 2040, 2050, 2060, 2080, 2100, 2200, 2300),
            base_year=2000,
            horizon=DEFAULT_HORIZON,
            regions=PAGE_REGIONS,
            pulse_mt=100_000.0,
            currency_inflator=1.225784,  # 2000$ => 2007$
            currency_year=2007,
            perturbation_years=(2010, 2020, 2030, 2040, 2050),
            domestic_region=1,
        ),
        IAMFamily.DICE: FamilySettings(
            family=IAMFamily.DICE,
            grid_years=tuple(range(2005, 2406, 10)),
            base_year=2005,
            horizon=DEFAULT_HORIZON,
            regions=("World",),
            pulse_mt=100_000.0,
            currency_inflator=122.58 / 114.52,  # 2005$ => 2007$
            currency_year=2007,
            perturbation_years=tuple(range(2005, 2296, 10)),
        ),
    }
)


@dataclass(frozen=True, slots=True)
class EmissionsPathway:
    """Global CO2 and non-CO2 forcing trajectory shared by all families.

    Emissions are expressed as multiples of base-year emissions on a
    piecewise-linear path: 1.0 at the base year, ``peak_multiple`` at
    ``peak_year`` and ``final_multiple`` at 2300.
    """

    peak_multiple: float
    peak_year: int
    final_multiple: float
    excess_forcing_2100_wm2: float
    excess_forcing_2300_wm2: float
    excess_forcing_0_wm2: float = 0.15

    def multiples(self, years: np.ndarray, base_year: int, *, tilt: float = 1.0) -> np.ndarray:
        """Emission multiples at ``years``; ``tilt`` stretches the rise for a region."""

        peak = 1.0 + (self.peak_multiple - 1.0) * tilt
        anchors = [float(base_year), float(self.peak_year), float(DEFAULT_HORIZON)]
        values = [1.0, peak, self.final_multiple]
        return np.maximum(np.interp(np.asarray(years, dtype=float), anchors, values), 0.0)

    def excess_forcing(self, years: np.ndarray, base_year: int) -> np.ndarray:
        anchors = [float(base_year), 2100.0, float(DEFAULT_HORIZON)]
        values = [
            self.excess_forcing_0_wm2,
            self.excess_forcing_2100_wm2,
            self.excess_forcing_2300_wm2,
        ]
        return np.interp(np.asarray(years, dtype=float), anchors, values)


@dataclass(frozen=True, slots=True)
class PageScenarioData:
    """Eight-region socioeconomic descriptors used to build PAGE parameters."""

    label: str
    gdp_growth_initial_pct: tuple[float, ...]
    gdp_growth_longrun_pct: float
    gdp_growth_decay_years: float
    population_growth_initial_pct: tuple[float, ...]
    population_growth_decay_years: float
    population_growth_longrun_pct: float = 0.0
    emissions_tilt: tuple[float, ...] = (0.3, 0.35, 0.5, 0.7, 1.3, 1.9, 1.6, 1.2)

    def __post_init__(self) -> None:
        for name in ("gdp_growth_initial_pct", "population_growth_initial_pct", "emissions_tilt"):
            if len(getattr(self, name)) != len(PAGE_REGIONS):
                raise ConfigurationError(
                    f"PAGE scenario '{self.label}' field '{name}' needs "
                    f"{len(PAGE_REGIONS)} regional values."
                )


@dataclass(frozen=True, slots=True)
class DiceScenarioData:
    """Global growth descriptors used to build DICE parameters."""

    label: str
    population_asymptote_million: float
    tfp_initial_growth: float


@dataclass(frozen=True, slots=True)
class Scenario:
    """One named socioeconomic pathway with its family-specific descriptors."""

    name: str
    pathway: EmissionsPathway
    page: PageScenarioData
    dice: DiceScenarioData

    def label_for(self, family: IAMFamily | str) -> str:
        family = IAMFamily.parse(family)
        if family is IAMFamily.PAGE:
            return self.page.label
        return self.dice.label


@dataclass(frozen=True)
class ScenarioCatalog:
    """Read-only lookup of scenarios by their standard name."""

    scenarios: Mapping[str, Scenario] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "scenarios", MappingProxyType(dict(self.scenarios)))

    @property
    def names(self) -> list[str]:
        return list(self.scenarios.keys())

    def get(self, name: "Scenario | str") -> Scenario:
        if isinstance(name, Scenario):
            return name
        try:
            return self.scenarios[str(name)]
        except KeyError as exc:
            raise ConfigurationError(
                f"Unknown scenario name '{name}'. Must provide one of the following "
                f"scenario names: {', '.join(self.names)}"
            ) from exc

    def __iter__(self):
        return iter(self.scenarios.values())

    def __len__(self) -> int:
        return len(self.scenarios)

    @classmethod
    def default(cls) -> "ScenarioCatalog":
        return default_catalog()


_DEVELOPED_GROWTH = (1.9, 2.2, 2.0, 3.0)
_POPULATION_GROWTH = (0.1, 0.9, 0.4, -0.1, 0.5, 1.5, 2.3, 1.3)


def _page(
    label: str, developing: tuple[float, float, float, float], longrun: float
) -> PageScenarioData:
    return PageScenarioData(
        label=label,
        gdp_growth_initial_pct=_DEVELOPED_GROWTH + developing,
        gdp_growth_longrun_pct=longrun,
        gdp_growth_decay_years=80.0,
        population_growth_initial_pct=_POPULATION_GROWTH,
        population_growth_decay_years=60.0,
    )


@lru_cache(maxsize=1)
def default_catalog() -> ScenarioCatalog:
    """Build the five IWG pathways once."""

    scenarios = [
        Scenario(
            name="IMAGE",
            pathway=EmissionsPathway(
                peak_multiple=2.6,
                peak_year=2100,
                final_multiple=0.9,
                excess_forcing_2100_wm2=0.9,
                excess_forcing_2300_wm2=0.8,
            ),
            page=_page("IMAGE", (6.5, 5.8, 4.2, 3.6), 1.2),
            dice=DiceScenarioData(
                label="IMAGE", population_asymptote_million=9300.0, tfp_initial_growth=0.0079
            ),
        ),
        Scenario(
            name="MERGE Optimistic",
            pathway=EmissionsPathway(
                peak_multiple=2.0,
                peak_year=2090,
                final_multiple=0.6,
                excess_forcing_2100_wm2=0.7,
                excess_forcing_2300_wm2=0.6,
            ),
            page=_page("MERGE Optimistic", (6.8, 6.0, 4.5, 3.8), 1.4),
            dice=DiceScenarioData(
                label="MERGEoptimistic",
                population_asymptote_million=8700.0,
                tfp_initial_growth=0.0085,
            ),
        ),
        Scenario(
            name="MESSAGE",
            pathway=EmissionsPathway(
                peak_multiple=2.2,
                peak_year=2100,
                final_multiple=0.7,
                excess_forcing_2100_wm2=0.8,
                excess_forcing_2300_wm2=0.7,
            ),
            page=_page("MESSAGE", (6.0, 5.5, 4.0, 3.4), 1.2),
            dice=DiceScenarioData(
                label="MESSAGE", population_asymptote_million=9000.0, tfp_initial_growth=0.0076
            ),
        ),
        Scenario(
            name="MiniCAM Base",
            pathway=EmissionsPathway(
                peak_multiple=2.8,
                peak_year=2110,
                final_multiple=1.1,
                excess_forcing_2100_wm2=1.0,
                excess_forcing_2300_wm2=0.9,
            ),
            page=_page("MiniCAM", (6.2, 5.6, 4.0, 3.5), 1.3),
            dice=DiceScenarioData(
                label="MiniCAMbase", population_asymptote_million=9400.0, tfp_initial_growth=0.008
            ),
        ),
        Scenario(
            name="5th Scenario",
            pathway=EmissionsPathway(
                peak_multiple=1.3,
                peak_year=2040,
                final_multiple=0.3,
                excess_forcing_2100_wm2=0.5,
                excess_forcing_2300_wm2=0.4,
            ),
            page=_page("Policy Level Average", (6.3, 5.7, 4.1, 3.5), 1.25),
            dice=DiceScenarioData(
                label="5thScenario", population_asymptote_million=9100.0, tfp_initial_growth=0.0079
            ),
        ),
    ]
    return ScenarioCatalog({scenario.name: scenario for scenario in scenarios})


__all__ = [
    "SCENARIO_NAMES",
    "DEFAULT_YEAR",
    "DEFAULT_DISCOUNT",
    "DEFAULT_HORIZON",
    "DEFAULT_DISCOUNT_RATES",
    "PAGE_REGIONS",
    "IAMFamily",
    "FamilySettings",
    "FAMILY_SETTINGS",
    "EmissionsPathway",
    "PageScenarioData",
    "DiceScenarioData",
    "Scenario",
    "ScenarioCatalog",
    "default_catalog",
]
