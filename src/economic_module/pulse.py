"""Emissions pulse for the marginal half of a twin run."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from iam_models.base import IntegratedAssessmentModel
from iam_models.errors import ConfigurationError, ModelStateError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, eq=False)
class Pulse:
    """Pulse location, its growth-point magnitude and the resulting trajectory."""

    year: int
    index: int
    period_length: float
    pulse_mt: float
    magnitude: float
    trajectory: np.ndarray
    delta: np.ndarray

    @property
    def added_emissions_mt(self) -> np.ndarray:
        """Per-region emissions rate added at the pulse year (Mt CO2 / yr)."""

        return self.delta[self.index]


class PulseInjector:
    """Scale a fixed emissions mass into an emissions-growth perturbation.

    ``ER_SCC = 100 * -pulse_mt / (e0_global * period_length)`` is the pulse in
    growth-percentage points of base-year global emissions. It is spread over the
    regions in proportion to their share of realised emissions at the pulse year.
    ``period_length`` is the span the model integrates around the pulse year, so
    the marginal run emits exactly ``pulse_mt`` more than the base run.
    """

    def __init__(self, pulse_mt: float | None = None) -> None:
        self.pulse_mt = pulse_mt

    def _pulse_mt(self, base_run: IntegratedAssessmentModel) -> float:
        return float(self.pulse_mt if self.pulse_mt is not None else base_run.settings.pulse_mt)

    def _index(self, base_run: IntegratedAssessmentModel, year: int) -> int:
        if not base_run.has_run:
            raise ModelStateError("The pulse is derived from a completed base run.")
        position = base_run.grid.resolve(year)
        if position.index is None:
            raise ConfigurationError(
                f"Pulse year {year} is not on the {base_run.family.value} grid; "
                "SCC for off-grid years is interpolated from the bracketing grid years."
            )
        return position.index

    @staticmethod
    def period_length(base_run: IntegratedAssessmentModel, year: int) -> float:
        return base_run.grid.integration_span(year, base_run.settings.base_year)

    def compute_magnitude(self, base_run: IntegratedAssessmentModel, year: int) -> float:
        self._index(base_run, year)
        e0_global = float(base_run.get_variable("emissions", "base_global_mt"))
        period = self.period_length(base_run, year)
        return 100.0 * -self._pulse_mt(base_run) / (e0_global * period)

    def build_marginal_trajectory(
        self, base_run: IntegratedAssessmentModel, year: int, magnitude: float
    ) -> np.ndarray:
        idx = self._index(base_run, year)
        growth = np.array(base_run.get_variable("emissions", "growth_pct"), dtype=float)
        e0_global = float(base_run.get_variable("emissions", "base_global_mt"))
        e_global = base_run.get_variable("emissions", "global_mt")

        row = growth[idx]
        growth[idx] = row - magnitude * (row / 100.0) * (e0_global / float(e_global[idx]))
        growth.setflags(write=False)
        return growth

    def inject(self, base_run: IntegratedAssessmentModel, year: int) -> Pulse:
        idx = self._index(base_run, year)
        magnitude = self.compute_magnitude(base_run, year)
        trajectory = self.build_marginal_trajectory(base_run, year, magnitude)

        base_growth = base_run.get_variable("emissions", "growth_pct")
        regional = base_run.get_variable("emissions", "regional_mt")
        ratio = np.divide(
            trajectory, base_growth, out=np.ones_like(trajectory), where=base_growth != 0.0
        )
        delta = regional * (ratio - 1.0)
        delta.setflags(write=False)
        period = self.period_length(base_run, year)

        LOGGER.debug(
            "Pulse of %.3g Mt at %s (index %s, period %.1f yr): ER_SCC=%.6g",
            self._pulse_mt(base_run),
            year,
            idx,
            period,
            magnitude,
        )
        return Pulse(
            year=int(year),
            index=idx,
            period_length=period,
            pulse_mt=self._pulse_mt(base_run),
            magnitude=magnitude,
            trajectory=trajectory,
            delta=delta,
        )


__all__ = ["Pulse", "PulseInjector"]
