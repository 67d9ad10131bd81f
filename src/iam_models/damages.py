"""DICE-style damage fractions of gross output."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Mapping, Sequence

import numpy as np

from .errors import ConfigurationError

# DICE2010 quadratic coefficient used by the IWG runs.
DICE2010_DELTA2 = 0.0028388


@dataclass(frozen=True, slots=True)
class DamageSettings:
    """Coefficients and optional extensions of the DICE damage curve.

    The base curve is ``delta1 * T + delta2 * T^2`` or, when ``custom_terms`` is
    set, ``Σ coefficient_i × T^{exponent_i}``. Extensions are applied in order:
    threshold amplification, catastrophic add-on, then one saturation step.
    """

    delta1: float = 0.0
    delta2: float = DICE2010_DELTA2
    custom_terms: tuple[tuple[float, float], ...] | None = None
    use_threshold: bool = False
    threshold_temperature: float = 3.0
    threshold_scale: float = 0.2
    threshold_power: float = 2.0
    use_saturation: bool = False
    max_fraction: float = 0.99
    saturation_mode: str = "rational"
    use_catastrophic: bool = False
    catastrophic_temperature: float = 5.0
    disaster_fraction: float = 0.75
    disaster_gamma: float = 1.0
    disaster_mode: str = "prob"

    def __post_init__(self) -> None:
        if self.saturation_mode not in {"rational", "clamp"}:
            raise ConfigurationError("saturation_mode must be 'rational' or 'clamp'")
        if self.disaster_mode not in {"prob", "step"}:
            raise ConfigurationError("disaster_mode must be 'prob' or 'step'")

    @classmethod
    def from_config(cls, cfg: Mapping[str, object] | None) -> "DamageSettings":
        cfg = dict(cfg or {})
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(cfg) - known)
        if unknown:
            raise ConfigurationError(f"Unknown damage settings: {unknown}")
        terms = cfg.pop("custom_terms", None)
        if terms:
            cfg["custom_terms"] = tuple(_parse_term(term) for term in terms)
        return cls(**cfg)


def _parse_term(term: object) -> tuple[float, float]:
    if isinstance(term, Mapping):
        coeff = float(term.get("coefficient", 0.0))
        power = float(term.get("exponent", term.get("power", 1.0)))
        return coeff, power
    coeff, power = term  # type: ignore[misc]
    return float(coeff), float(power)


def damage_dice(temp: np.ndarray | Sequence[float] | float, **kwargs: object) -> np.ndarray:
    """Return damage fractions for temperatures ``temp`` (°C above pre-industrial)."""

    settings = kwargs.pop("settings", None)
    if settings is None:
        settings = DamageSettings.from_config(kwargs)
    elif kwargs:
        raise TypeError("Pass either settings or keyword coefficients, not both.")
    return damage_fraction(temp, settings)  # type: ignore[arg-type]


def damage_fraction(
    temp: np.ndarray | Sequence[float] | float, settings: DamageSettings
) -> np.ndarray:
    temperatures = np.asarray(temp, dtype=float)

    if settings.custom_terms:
        damage = np.zeros_like(temperatures)
        for coeff, power in settings.custom_terms:
            damage = damage + coeff * np.power(temperatures, power)
    else:
        damage = settings.delta1 * temperatures + settings.delta2 * temperatures**2

    if settings.use_threshold:
        excess = np.maximum(0.0, temperatures - settings.threshold_temperature)
        damage = damage * (1.0 + settings.threshold_scale * excess**settings.threshold_power)

    if settings.use_catastrophic:
        if settings.disaster_mode == "step":
            extra = np.where(
                temperatures >= settings.catastrophic_temperature, settings.disaster_fraction, 0.0
            )
        else:
            exceed = np.maximum(0.0, temperatures - settings.catastrophic_temperature)
            extra = (1.0 - np.exp(-settings.disaster_gamma * exceed)) * settings.disaster_fraction
        damage = damage + extra

    damage = np.maximum(damage, 0.0)

    if settings.use_saturation:
        cap = settings.max_fraction
        if settings.saturation_mode == "rational":
            # ~linear for small damages, asymptotic to the cap for large ones
            with np.errstate(divide="ignore", invalid="ignore"):
                damage = np.divide(
                    cap * damage, damage + cap, out=np.zeros_like(damage), where=damage >= 0.0
                )
        else:
            damage = np.clip(damage, 0.0, cap)

    return np.clip(damage, 0.0, settings.max_fraction)


__all__ = ["DICE2010_DELTA2", "DamageSettings", "damage_dice", "damage_fraction"]
