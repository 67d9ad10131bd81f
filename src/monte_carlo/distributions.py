"""Sampling distributions for uncertain model parameters."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from statistics import NormalDist
from typing import Any, Dict, Mapping, Union

import numpy as np
import pandas as pd

from iam_models.errors import ConfigurationError
from iam_models.scenarios import IAMFamily


@dataclass(frozen=True, slots=True)
class UniformDistribution:
    low: float
    high: float

    def __post_init__(self) -> None:
        if self.high < self.low:
            raise ConfigurationError(f"Uniform bounds out of order: {self.low} > {self.high}.")

    def sample(self, rng: np.random.Generator, size: int) -> np.ndarray:
        return rng.uniform(self.low, self.high, size=size)


@dataclass(frozen=True, slots=True)
class TriangularDistribution:
    low: float
    mode: float
    high: float

    def __post_init__(self) -> None:
        if not self.low <= self.mode <= self.high:
            raise ConfigurationError(
                f"Triangular distribution needs low <= mode <= high, got "
                f"({self.low}, {self.mode}, {self.high})."
            )

    def sample(self, rng: np.random.Generator, size: int) -> np.ndarray:
        if self.low == self.high:
            return np.full(size, float(self.low))
        return rng.triangular(self.low, self.mode, self.high, size=size)


@dataclass(frozen=True, slots=True)
class NormalDistribution:
    mean: float
    std: float
    clip: tuple[float, float] | None = None

    def sample(self, rng: np.random.Generator, size: int) -> np.ndarray:
        values = rng.normal(self.mean, self.std, size=size)
        if self.clip is not None:
            values = np.clip(values, self.clip[0], self.clip[1])
        return values


@dataclass(frozen=True, slots=True, eq=False)
class EmpiricalDistribution:
    """Joint resampling of whole rows from a precomputed table.

    Correlated parameters are drawn together: each trial takes one row, so the
    columns keep their joint structure.
    """

    table: pd.DataFrame
    weights: np.ndarray | None = None

    def __post_init__(self) -> None:
        if self.table.empty:
            raise ConfigurationError("Empirical distribution table is empty.")
        if self.weights is not None:
            weights = np.asarray(self.weights, dtype=float)
            if weights.shape != (len(self.table),) or np.any(weights < 0) or weights.sum() <= 0:
                raise ConfigurationError("Empirical weights must be non-negative, one per row.")
            object.__setattr__(self, "weights", weights / weights.sum())

    @property
    def columns(self) -> list[str]:
        return [str(column) for column in self.table.columns]

    def sample_rows(self, rng: np.random.Generator, size: int) -> pd.DataFrame:
        rows = rng.choice(len(self.table), size=size, replace=True, p=self.weights)
        return self.table.iloc[rows].reset_index(drop=True)


Distribution = Union[
    UniformDistribution, TriangularDistribution, NormalDistribution, EmpiricalDistribution
]


# ---------------------------------------------------------------------------
# Roe & Baker climate sensitivity
# ---------------------------------------------------------------------------


@lru_cache(maxsize=4)
def _roe_baker(points: int, max_sensitivity: float) -> pd.DataFrame:
    # S = lambda0 / (1 - f) with feedback f ~ N(0.6, 0.13), calibrated to a median of 3 degC
    lambda0, f_mean, f_std = 1.2, 0.6, 0.13
    normal = NormalDist(f_mean, f_std)
    probabilities = (np.arange(points) + 0.5) / points
    feedback = np.array([normal.inv_cdf(float(p)) for p in probabilities])
    sensitivity = lambda0 / (1.0 - feedback[feedback < 1.0])
    sensitivity = sensitivity[(sensitivity > 0.0) & (sensitivity <= max_sensitivity)]
    return pd.DataFrame(
        {
            "climate_sensitivity": sensitivity,
            # slower ocean response for more sensitive climates
            "warming_half_life": 30.0 * np.sqrt(sensitivity / 3.0),
        }
    )


def roe_baker_table(points: int = 1000, max_sensitivity: float = 10.0) -> pd.DataFrame:
    """Equal-probability table of climate sensitivity and correlated warming half-life."""

    return _roe_baker(int(points), float(max_sensitivity)).copy()


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def distribution_from_config(spec: Mapping[str, Any] | Distribution) -> Distribution:
    """Build a distribution from ``{"dist": "triangular", "low": ..., ...}``.

    Empirical tables are given either inline (``"values": [{...}, ...]``) or by name
    (``"table": "roe_baker"`` with optional ``"columns"``).
    """

    if isinstance(
        spec,
        (UniformDistribution, TriangularDistribution, NormalDistribution, EmpiricalDistribution),
    ):
        return spec
    if not isinstance(spec, Mapping) or "dist" not in spec:
        raise ConfigurationError(f"Distribution spec must be a mapping with 'dist': {spec!r}")

    dist_type = str(spec["dist"]).lower()
    try:
        if dist_type == "uniform":
            return UniformDistribution(float(spec["low"]), float(spec["high"]))
        if dist_type == "triangular":
            return TriangularDistribution(
                float(spec["low"]), float(spec["mode"]), float(spec["high"])
            )
        if dist_type == "normal":
            clip = spec.get("clip")
            return NormalDistribution(
                float(spec["mean"]),
                float(spec["std"]),
                None if clip is None else (float(clip[0]), float(clip[1])),
            )
        if dist_type == "empirical":
            return _empirical_from_config(spec)
    except KeyError as exc:
        raise ConfigurationError(
            f"Distribution '{dist_type}' is missing field {exc.args[0]!r}."
        ) from exc
    raise ConfigurationError(f"Unknown distribution type: {dist_type}")


def _empirical_from_config(spec: Mapping[str, Any]) -> EmpiricalDistribution:
    if "values" in spec:
        table = pd.DataFrame(list(spec["values"]))
    elif str(spec.get("table", "")).lower() in {"roe_baker", "roe-baker", "rb"}:
        table = roe_baker_table()
    else:
        raise ConfigurationError("Empirical distribution needs 'values' or 'table: roe_baker'.")
    columns = spec.get("columns")
    if columns:
        missing = sorted(set(columns) - set(table.columns))
        if missing:
            raise ConfigurationError(f"Empirical table has no columns {missing}.")
        table = table[list(columns)]
    weights = spec.get("weights")
    return EmpiricalDistribution(table, None if weights is None else np.asarray(weights))


def distributions_from_config(specs: Mapping[str, Any]) -> Dict[str, Distribution]:
    return {str(name): distribution_from_config(spec) for name, spec in specs.items()}


def default_distributions(family: IAMFamily | str) -> Dict[str, Distribution]:
    """Uncertain parameters sampled by default for ``family``."""

    family = IAMFamily.parse(family)
    if family is IAMFamily.DICE:
        return {
            "roe_baker": EmpiricalDistribution(roe_baker_table()[["climate_sensitivity"]]),
        }
    return {
        "roe_baker": EmpiricalDistribution(roe_baker_table()),
        "co2_stay_fraction": TriangularDistribution(0.25, 0.3, 0.35),
        "co2_residence_years": TriangularDistribution(50.0, 73.0, 100.0),
        "market_damage_pct": TriangularDistribution(0.2, 0.5, 0.8),
        "nonmarket_damage_pct": TriangularDistribution(0.1, 0.63, 1.2),
        "damage_exponent": TriangularDistribution(1.5, 2.0, 3.0),
        "income_exponent": UniformDistribution(-0.3, 0.0),
        "discontinuity_threshold_c": TriangularDistribution(2.0, 3.0, 4.0),
        "discontinuity_loss_pct": TriangularDistribution(1.0, 5.0, 20.0),
    }


# ---------------------------------------------------------------------------
# Sampling
# ---------------------------------------------------------------------------


def draw_samples(
    distributions: Mapping[str, Distribution], trials: int, seed: int | None = None
) -> pd.DataFrame:
    """Draw the full trial × parameter matrix up front.

    Scalar distributions contribute one column named after their key; empirical
    tables contribute all of their columns. Rows are indexed ``1..trials``.
    """

    if trials < 1:
        raise ConfigurationError("trials must be a positive integer.")
    rng = np.random.default_rng(seed)
    columns: Dict[str, np.ndarray] = {}
    for name, dist in distributions.items():
        if isinstance(dist, EmpiricalDistribution):
            rows = dist.sample_rows(rng, trials)
            for column in rows.columns:
                columns[str(column)] = rows[column].to_numpy(dtype=float)
        else:
            columns[str(name)] = np.asarray(dist.sample(rng, trials), dtype=float)
    index = pd.RangeIndex(1, trials + 1, name="trial")
    return pd.DataFrame(columns, index=index)


__all__ = [
    "Distribution",
    "UniformDistribution",
    "TriangularDistribution",
    "NormalDistribution",
    "EmpiricalDistribution",
    "roe_baker_table",
    "distribution_from_config",
    "distributions_from_config",
    "default_distributions",
    "draw_samples",
]
