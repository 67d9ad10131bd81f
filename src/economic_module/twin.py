"""Base/marginal twin runs sharing one configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from iam_models.base import IntegratedAssessmentModel, build_model
from iam_models.errors import EngineError, SCCError
from iam_models.scenarios import IAMFamily, Scenario, ScenarioCatalog
from iam_models.time_grid import TimeGridResolver

from .pulse import Pulse, PulseInjector

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TwinRun:
    base: IntegratedAssessmentModel
    marginal: IntegratedAssessmentModel
    pulse: Pulse


class TwinRunner:
    """Run the base model, derive the pulse from it, then run the marginal copy."""

    def __init__(
        self,
        family: IAMFamily | str,
        *,
        catalog: ScenarioCatalog | None = None,
        time_grid: TimeGridResolver | None = None,
        injector: PulseInjector | None = None,
    ) -> None:
        self.family = IAMFamily.parse(family)
        self.catalog = catalog
        self.time_grid = time_grid
        self.injector = injector or PulseInjector()

    def _configured(
        self,
        scenario: Scenario | str,
        overrides: Mapping[str, Any],
    ) -> IntegratedAssessmentModel:
        model = build_model(self.family, scenario, self.time_grid, catalog=self.catalog)
        for name, value in overrides.items():
            model.update_parameter(name, value)
        return model

    def run(
        self,
        scenario: Scenario | str,
        pulse_year: int,
        discount_overrides: Mapping[str, Any] | None = None,
        parameter_overrides: Mapping[str, Any] | None = None,
    ) -> TwinRun:
        overrides = {**dict(parameter_overrides or {}), **dict(discount_overrides or {})}
        base = self._configured(scenario, overrides)
        _execute(base, "base")

        pulse = self.injector.inject(base, pulse_year)

        marginal = base.spawn()
        marginal.update_parameter("emissions_growth_pct", pulse.trajectory)
        _execute(marginal, "marginal")

        LOGGER.debug(
            "Twin run complete for %s/%s at %s.",
            self.family.value,
            base.scenario.name,
            pulse_year,
        )
        return TwinRun(base=base, marginal=marginal, pulse=pulse)


def _execute(model: IntegratedAssessmentModel, label: str) -> None:
    try:
        model.run()
    except SCCError:
        raise
    except (ArithmeticError, ValueError) as exc:
        raise EngineError(f"{label} run of {model.family.value} failed: {exc}") from exc


__all__ = ["TwinRun", "TwinRunner"]
