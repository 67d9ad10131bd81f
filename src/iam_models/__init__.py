"""Reduced-form integrated assessment models used by the SCC engine."""

from .base import IntegratedAssessmentModel, build_model
from .damages import DamageSettings, damage_dice, damage_fraction
from .dice import DiceModel, DiceParameters
from .errors import (
    BatchAbortedError,
    ConfigurationError,
    EngineError,
    InterpolationError,
    InvalidYear,
    ModelStateError,
    SCCError,
    SimulationError,
)
from .page import PageModel, PageParameters
from .scenarios import (
    DEFAULT_DISCOUNT_RATES,
    DEFAULT_YEAR,
    FAMILY_SETTINGS,
    SCENARIO_NAMES,
    FamilySettings,
    IAMFamily,
    Scenario,
    ScenarioCatalog,
    default_catalog,
)
from .socioeconomics import DiceSocioeconomics
from .time_grid import GridPosition, TimeGridResolver, interpolate_linear

__all__ = [
    "IntegratedAssessmentModel",
    "build_model",
    "DamageSettings",
    "damage_dice",
    "damage_fraction",
    "DiceModel",
    "DiceParameters",
    "PageModel",
    "PageParameters",
    "DiceSocioeconomics",
    "SCCError",
    "ConfigurationError",
    "InvalidYear",
    "InterpolationError",
    "EngineError",
    "SimulationError",
    "ModelStateError",
    "BatchAbortedError",
    "DEFAULT_DISCOUNT_RATES",
    "DEFAULT_YEAR",
    "FAMILY_SETTINGS",
    "SCENARIO_NAMES",
    "FamilySettings",
    "IAMFamily",
    "Scenario",
    "ScenarioCatalog",
    "default_catalog",
    "GridPosition",
    "TimeGridResolver",
    "interpolate_linear",
]
