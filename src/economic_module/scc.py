"""Social cost of carbon from base/marginal twin runs."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Literal, Mapping

import numpy as np
import pandas as pd

from iam_models.errors import ConfigurationError, EngineError
from iam_models.scenarios import (
    DEFAULT_DISCOUNT,
    DEFAULT_YEAR,
    FamilySettings,
    IAMFamily,
    Scenario,
    ScenarioCatalog,
    default_catalog,
)
from iam_models.time_grid import TimeGridResolver, interpolate_linear
from iam_models.welfare import utility_discount_factors

from .twin import TwinRun, TwinRunner

LOGGER = logging.getLogger(__name__)

DiscountMethod = Literal["constant_discount", "ramsey_discount"]

NAMED_DISCOUNT_RATES: Mapping[str, float] = {"2.5%": 0.025, "3%": 0.03, "5%": 0.05}


# ---------------------------------------------------------------------------
# Discounting
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DiscountSpec:
    """Flat (``constant_discount``) or Ramsey (``ramsey_discount``) discounting."""

    method: DiscountMethod = "constant_discount"
    rate: float | None = DEFAULT_DISCOUNT
    rho: float | None = None
    eta: float | None = None

    def __post_init__(self) -> None:
        if self.method == "constant_discount":
            if self.rate is None:
                raise ConfigurationError("constant_discount requires a rate.")
            if self.rate <= -1.0:
                raise ConfigurationError("Discount rate must be greater than -100%.")
        elif self.method == "ramsey_discount":
            if self.rho is None or self.eta is None:
                raise ConfigurationError("ramsey_discount requires rho and eta.")
            if self.rho <= -1.0:
                raise ConfigurationError("rho must be greater than -100%.")
            if self.eta < 0:
                raise ConfigurationError("eta must be non-negative.")
        else:
            raise ConfigurationError(
                f"Unknown discount convention '{self.method}'. "
                "Use 'constant_discount' or 'ramsey_discount'."
            )

    @classmethod
    def flat(cls, rate: float) -> "DiscountSpec":
        return cls(method="constant_discount", rate=float(rate))

    @classmethod
    def ramsey(cls, rho: float, eta: float) -> "DiscountSpec":
        return cls(method="ramsey_discount", rate=None, rho=float(rho), eta=float(eta))

    @classmethod
    def parse(cls, value: "DiscountSpec | float | str | Mapping[str, Any]") -> "DiscountSpec":
        if isinstance(value, DiscountSpec):
            return value
        if isinstance(value, Mapping):
            return cls.from_config(value)
        if isinstance(value, str):
            key = value.strip()
            if key in NAMED_DISCOUNT_RATES:
                return cls.flat(NAMED_DISCOUNT_RATES[key])
            try:
                return cls.flat(float(key))
            except ValueError as exc:
                raise ConfigurationError(
                    f"Unknown discount rate '{value}'. Named rates: "
                    f"{', '.join(NAMED_DISCOUNT_RATES)}"
                ) from exc
        return cls.flat(float(value))

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> "DiscountSpec":
        method = str(cfg.get("method", "constant_discount"))
        if method == "ramsey_discount":
            rho, eta = cfg.get("rho"), cfg.get("eta")
            if rho is None or eta is None:
                raise ConfigurationError("ramsey_discount requires rho and eta.")
            return cls.ramsey(float(rho), float(eta))
        if method == "constant_discount":
            rate = cfg.get("rate", cfg.get("discount_rate"))
            if rate is None:
                raise ConfigurationError("constant_discount requires a rate.")
            return cls.parse(rate)
        raise ConfigurationError(
            f"Unknown discount convention '{method}'. "
            "Use 'constant_discount' or 'ramsey_discount'."
        )

    @property
    def is_flat(self) -> bool:
        return self.method == "constant_discount"

    @property
    def time_preference(self) -> float:
        return float(self.rate if self.is_flat else self.rho)  # type: ignore[arg-type]

    @property
    def elasticity(self) -> float:
        return 0.0 if self.is_flat else float(self.eta)  # type: ignore[arg-type]

    @property
    def label(self) -> str:
        if self.is_flat:
            return f"{self.time_preference * 100:g}%"
        return f"ramsey(rho={self.rho:g}, eta={self.eta:g})"

    def model_overrides(self) -> dict[str, float]:
        return {
            "pure_time_preference_pct": self.time_preference * 100.0,
            "utility_elasticity": self.elasticity,
        }


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SCCResult:
    """Social cost of carbon in ``currency_year`` dollars per tonne CO2."""

    family: IAMFamily
    scenario: str
    year: int
    discount: DiscountSpec
    domestic: bool
    value: float
    currency_year: int

    def __post_init__(self) -> None:
        if not math.isfinite(self.value):
            raise EngineError(
                f"SCC for {self.family.value}/{self.scenario}/{self.year} is not finite."
            )


def _check_domestic(settings: FamilySettings, domestic: bool) -> None:
    if domestic and not settings.supports_domestic:
        raise ConfigurationError(
            f"Domestic SCC is not available for {settings.family.value}; "
            "the model has no domestic region."
        )


def validate_scc_request(
    family: IAMFamily | str,
    year: int,
    domestic: bool = False,
    time_grid: TimeGridResolver | None = None,
) -> TimeGridResolver:
    """Reject unsupported SCC requests; return the grid the request resolves against."""

    settings = IAMFamily.parse(family).settings
    _check_domestic(settings, domestic)
    grid = time_grid or TimeGridResolver(settings.grid_years)
    if year < grid.first or year > settings.horizon:
        raise ConfigurationError(
            f"Invalid year {year} for {settings.family.value}: must lie within "
            f"[{grid.first:g}, {settings.horizon}]."
        )
    if not grid.contains(year):
        lower, upper = grid.bracket(year)
        if upper > settings.horizon:
            raise ConfigurationError(
                f"Invalid year {year} for {settings.family.value}: it is interpolated from "
                f"grid year {upper:g}, past the {settings.horizon} horizon. "
                f"Use a grid year or a year up to {lower:g}."
            )
    return grid


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def _variable(twin: TwinRun, component: str, name: str) -> tuple[np.ndarray, np.ndarray]:
    return (
        twin.base.get_variable(component, name),
        twin.marginal.get_variable(component, name),
    )


def _check_twin_discount(twin: TwinRun, discount: DiscountSpec) -> None:
    """Reject a twin whose models discounted welfare differently from ``discount``."""

    for name, expected in discount.model_overrides().items():
        realised = float(twin.base.get_variable("welfare", name))
        if not math.isclose(realised, expected, rel_tol=1e-9, abs_tol=1e-12):
            raise ConfigurationError(
                f"Twin run used {name}={realised:g} but {discount.label} discounting needs "
                f"{expected:g}; run the twin with discount_overrides="
                "discount.model_overrides()."
            )


def compute_scc_from_twin(
    twin: TwinRun, discount: DiscountSpec | float | str, domestic: bool = False
) -> float:
    """SCC at the twin's pulse year; the pulse year must be a grid year.

    The twin must have been run with ``discount.model_overrides()``: the models'
    own discounted welfare enters the flat aggregate.
    """

    discount = DiscountSpec.parse(discount)
    settings = twin.base.settings
    _check_domestic(settings, domestic)
    _check_twin_discount(twin, discount)

    years = twin.base.years
    base_year = settings.base_year
    within = years <= settings.horizon
    pulse_year = twin.pulse.year
    idx = twin.pulse.index

    if discount.is_flat:
        if domestic:
            base_addt, marg_addt = _variable(twin, "welfare", "discounted_impact_aggregated")
            region = settings.domestic_region
            difference = float(
                marg_addt[within, region].sum() - base_addt[within, region].sum()
            )
        else:
            base_td, marg_td = _variable(twin, "welfare", "total_discounted_impacts")
            difference = float(marg_td) - float(base_td)
        normaliser = (1.0 + discount.time_preference) ** (-(pulse_year - base_year))
    else:
        base_wit, marg_wit = _variable(twin, "welfare", "equity_weighted_impact")
        spans = twin.base.get_variable("welfare", "aggregation_span_years")
        delta = marg_wit - base_wit
        delta = delta[:, settings.domestic_region] if domestic else delta.sum(axis=1)
        factors = utility_discount_factors(years, base_year, discount.time_preference * 100.0)
        difference = float((delta * factors * spans)[within].sum())

        focus = settings.focus_region
        cpc = twin.base.get_variable("socioeconomics", "consumption_per_capita_usd")[:, focus]
        cpc0 = twin.base.get_variable("socioeconomics", "consumption_per_capita_0_usd")
        cpc0 = float(cpc0[focus])
        normaliser = float(factors[idx]) * (float(cpc[idx]) / cpc0) ** (-discount.elasticity)

    value = difference / normaliser / twin.pulse.pulse_mt * settings.currency_inflator
    if not math.isfinite(value):
        raise EngineError(
            f"Non-finite SCC for {settings.family.value}/{twin.base.scenario.name} "
            f"at {pulse_year} ({discount.label})."
        )
    return value


def evaluate_scc(
    runner: TwinRunner,
    scenario: Scenario | str,
    year: int,
    discount: DiscountSpec,
    domestic: bool = False,
    *,
    parameter_overrides: Mapping[str, Any] | None = None,
    inspect: Callable[[TwinRun], None] | None = None,
) -> float:
    """SCC value at ``year``, interpolating between bracketing grid years if needed.

    ``inspect`` sees every twin run before aggregation and may raise to reject it.
    """

    grid = runner.time_grid or TimeGridResolver(runner.family.settings.grid_years)

    def at_grid(grid_year: int) -> float:
        twin = runner.run(
            scenario,
            grid_year,
            discount_overrides=discount.model_overrides(),
            parameter_overrides=parameter_overrides,
        )
        if inspect is not None:
            inspect(twin)
        return compute_scc_from_twin(twin, discount, domestic)

    if grid.contains(year):
        return at_grid(int(year))
    lower, upper = grid.bracket(year)
    return interpolate_linear(at_grid(int(lower)), at_grid(int(upper)), lower, upper, float(year))


def compute_scc(
    family: IAMFamily | str,
    scenario: Scenario | str,
    year: int = DEFAULT_YEAR,
    discount: DiscountSpec | float | str = DEFAULT_DISCOUNT,
    domestic: bool = False,
    *,
    catalog: ScenarioCatalog | None = None,
    time_grid: TimeGridResolver | None = None,
    parameter_overrides: Mapping[str, Any] | None = None,
) -> SCCResult:
    """Compute the SCC for ``scenario`` with a pulse in ``year``.

    Off-grid years are evaluated at the two bracketing grid years and linearly
    interpolated. Years before the first grid year or after the horizon are rejected.
    """

    family = IAMFamily.parse(family)
    settings = family.settings
    discount = DiscountSpec.parse(discount)
    grid = validate_scc_request(family, year, domestic, time_grid)
    resolved = (catalog or default_catalog()).get(scenario)

    runner = TwinRunner(family, catalog=catalog, time_grid=grid)
    value = evaluate_scc(
        runner,
        resolved,
        year,
        discount,
        domestic,
        parameter_overrides=parameter_overrides,
    )

    LOGGER.info(
        "SCC %s/%s %s (%s%s): %.2f $/tCO2 (%s$)",
        family.value,
        resolved.name,
        year,
        discount.label,
        ", domestic" if domestic else "",
        value,
        settings.currency_year,
    )
    return SCCResult(
        family=family,
        scenario=resolved.name,
        year=int(year),
        discount=discount,
        domestic=bool(domestic),
        value=float(value),
        currency_year=settings.currency_year,
    )


def get_marginal_damages(
    family: IAMFamily | str,
    scenario: Scenario | str,
    year: int = DEFAULT_YEAR,
    discount: float = 0.0,
    regional: bool = False,
    *,
    catalog: ScenarioCatalog | None = None,
    time_grid: TimeGridResolver | None = None,
    parameter_overrides: Mapping[str, Any] | None = None,
) -> pd.DataFrame:
    """Marginal damages per tonne of pulse, in the model's own currency year.

    ``discount == 0`` returns undiscounted damages; otherwise damages are discounted
    at the flat rate back to the model base year. The frame is indexed by grid year
    with one column per region when ``regional`` and a single ``global`` column
    otherwise.
    """

    family = IAMFamily.parse(family)
    settings = family.settings
    grid = time_grid or TimeGridResolver(settings.grid_years)
    if not grid.contains(year):
        raise ConfigurationError(
            f"{year} is not a valid {family.value} year; must be in the model's time index "
            f"{grid.years.astype(int).tolist()}."
        )
    spec = DiscountSpec.flat(discount)
    runner = TwinRunner(family, catalog=catalog, time_grid=grid)
    twin = runner.run(
        scenario,
        year,
        discount_overrides=spec.model_overrides(),
        parameter_overrides=parameter_overrides,
    )
    name = "equity_weighted_impact" if discount == 0 else "equity_weighted_impact_discounted"
    base, marginal = _variable(twin, "welfare", name)
    damages = (marginal - base) / twin.pulse.pulse_mt

    index = pd.Index(grid.years.astype(int), name="year")
    if regional:
        return pd.DataFrame(damages, index=index, columns=list(settings.regions))
    return pd.DataFrame({"global": damages.sum(axis=1)}, index=index)


__all__ = [
    "DiscountMethod",
    "DiscountSpec",
    "NAMED_DISCOUNT_RATES",
    "SCCResult",
    "compute_scc",
    "compute_scc_from_twin",
    "evaluate_scc",
    "get_marginal_damages",
    "validate_scc_request",
]
