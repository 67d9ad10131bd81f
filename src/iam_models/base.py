"""Common contract for runnable integrated assessment models."""

from __future__ import annotations

import abc
import dataclasses
import logging
from typing import Any, Dict, Mapping

import numpy as np
import pandas as pd

from .errors import ConfigurationError, EngineError, ModelStateError
from .scenarios import FamilySettings, IAMFamily, Scenario, ScenarioCatalog, default_catalog
from .time_grid import TimeGridResolver

LOGGER = logging.getLogger(__name__)

Outputs = Dict[str, Dict[str, np.ndarray]]


def _readonly(values: Any) -> np.ndarray:
    array = np.array(values, dtype=float)
    array.setflags(write=False)
    return array


class IntegratedAssessmentModel(abc.ABC):
    """One configured simulation: build → update parameters → run → read outputs.

    The time grid and scenario are fixed at construction. Parameters live in a
    frozen record that is replaced (never mutated) by :meth:`update_parameter`.
    """

    family: IAMFamily

    def __init__(self, scenario: Scenario, parameters: Any, time_grid: TimeGridResolver) -> None:
        self._scenario = scenario
        self._parameters = parameters
        self._grid = time_grid
        self._outputs: Outputs | None = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    @abc.abstractmethod
    def build(
        cls, scenario: Scenario, time_grid: TimeGridResolver | None = None
    ) -> "IntegratedAssessmentModel":
        """Construct a fully parameterised, not yet executed model."""

    def spawn(self) -> "IntegratedAssessmentModel":
        """Fresh, unexecuted copy sharing this model's configuration but no state."""

        return type(self)(self._scenario, self._parameters, self._grid)

    @abc.abstractmethod
    def _simulate(self, parameters: Any) -> Outputs:
        """Execute all timesteps and return component outputs."""

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def settings(self) -> FamilySettings:
        return self.family.settings

    @property
    def scenario(self) -> Scenario:
        return self._scenario

    @property
    def parameters(self) -> Any:
        return self._parameters

    @property
    def grid(self) -> TimeGridResolver:
        return self._grid

    @property
    def years(self) -> np.ndarray:
        return self._grid.years

    @property
    def has_run(self) -> bool:
        return self._outputs is not None

    def variables(self) -> list[tuple[str, str]]:
        outputs = self._require_run()
        return [
            (component, name)
            for component, values in outputs.items()
            for name in values
        ]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def run(self) -> None:
        if self._outputs is not None:
            raise ModelStateError(
                f"{self.family.value} model for '{self._scenario.name}' has already been run; "
                "build a fresh instance instead."
            )
        try:
            raw = self._simulate(self._parameters)
        except FloatingPointError as exc:
            raise EngineError(f"{self.family.value} simulation failed: {exc}") from exc

        outputs: Outputs = {}
        for component, values in raw.items():
            frozen: Dict[str, np.ndarray] = {}
            for name, value in values.items():
                array = _readonly(value)
                if not np.all(np.isfinite(array)):
                    raise EngineError(
                        f"{self.family.value} simulation produced non-finite values "
                        f"in {component}.{name}."
                    )
                frozen[name] = array
            outputs[component] = frozen
        self._outputs = outputs
        LOGGER.debug("Ran %s model for scenario '%s'.", self.family.value, self._scenario.name)

    def get_variable(self, component: str, name: str) -> np.ndarray:
        outputs = self._require_run()
        try:
            return outputs[component][name]
        except KeyError as exc:
            raise ConfigurationError(
                f"{self.family.value} model has no output variable '{component}.{name}'."
            ) from exc

    def update_parameter(self, name: str, value: Any, update_timesteps: bool = False) -> None:
        if self._outputs is not None:
            raise ModelStateError(
                f"Cannot update parameter '{name}' after the model has been run."
            )
        known = {item.name for item in dataclasses.fields(self._parameters)}
        if name not in known:
            raise ConfigurationError(
                f"Unknown {self.family.value} parameter '{name}'. "
                f"Known parameters: {', '.join(sorted(known))}"
            )
        current = getattr(self._parameters, name)
        if update_timesteps:
            value = self._values_on_grid(name, value, current)
        coerced = _coerce(name, current, value)
        self._parameters = dataclasses.replace(self._parameters, **{name: coerced})

    def _require_run(self) -> Outputs:
        if self._outputs is None:
            raise ModelStateError("Model outputs are only available after run().")
        return self._outputs

    def _values_on_grid(self, name: str, value: Any, current: Any) -> np.ndarray:
        """Interpolate year-keyed values onto the model grid."""

        if isinstance(value, Mapping) and not isinstance(value, pd.Series):
            entries = dict(value)
            if entries and all(np.ndim(item) == 0 for item in entries.values()):
                value = pd.Series(entries, dtype=float)
            else:
                value = pd.DataFrame.from_dict(entries, orient="index")
        if not isinstance(value, (pd.Series, pd.DataFrame)):
            raise ConfigurationError(
                f"Parameter '{name}' with update_timesteps=True needs year-keyed values."
            )

        value = value.sort_index()
        source = TimeGridResolver(np.asarray(value.index, dtype=float))
        targets = self._grid.years
        if isinstance(value, pd.Series):
            on_grid = source.interpolate_many(value.to_numpy(dtype=float), targets)
            if np.ndim(current) == 2:
                on_grid = np.repeat(on_grid[:, None], np.shape(current)[1], axis=1)
            return on_grid
        columns = [
            source.interpolate_many(value[column].to_numpy(dtype=float), targets)
            for column in value.columns
        ]
        return np.column_stack(columns)


def _coerce(name: str, current: Any, value: Any) -> Any:
    if isinstance(current, np.ndarray):
        array = np.array(value, dtype=float)
        if array.ndim == 0:
            array = np.full(current.shape, float(array))
        if array.shape != current.shape:
            raise ConfigurationError(
                f"Parameter '{name}' expects shape {current.shape}, got {array.shape}."
            )
        array.setflags(write=False)
        return array
    if isinstance(current, tuple):
        items = tuple(float(item) for item in np.ravel(value))
        if len(items) == 1 and len(current) > 1:
            items = items * len(current)
        if len(items) != len(current):
            raise ConfigurationError(
                f"Parameter '{name}' expects {len(current)} values, got {len(items)}."
            )
        return items
    if dataclasses.is_dataclass(current) and isinstance(value, Mapping):
        try:
            return dataclasses.replace(current, **value)
        except TypeError as exc:
            raise ConfigurationError(f"Invalid fields for parameter '{name}': {exc}") from exc
    if isinstance(current, bool):
        return bool(value)
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    return value


def _registry() -> Mapping[IAMFamily, type[IntegratedAssessmentModel]]:
    from .dice import DiceModel
    from .page import PageModel

    return {IAMFamily.PAGE: PageModel, IAMFamily.DICE: DiceModel}


def build_model(
    family: IAMFamily | str,
    scenario: Scenario | str,
    time_grid: TimeGridResolver | None = None,
    *,
    catalog: ScenarioCatalog | None = None,
) -> IntegratedAssessmentModel:
    """Build an unexecuted model of ``family`` for ``scenario``."""

    family = IAMFamily.parse(family)
    resolved = (catalog or default_catalog()).get(scenario)
    return _registry()[family].build(resolved, time_grid)


__all__ = ["IntegratedAssessmentModel", "build_model"]
