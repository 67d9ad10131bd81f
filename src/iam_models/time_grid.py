"""Map calendar years onto a model's (possibly irregular) time grid."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .errors import InterpolationError, InvalidYear


@dataclass(frozen=True, slots=True)
class GridPosition:
    """Location of a calendar year relative to the grid.

    ``index`` is set only for exact grid years. Otherwise ``lower``/``upper`` are the
    bracketing indices (the two edge points when ``extrapolated``) and ``fraction``
    is the linear weight of ``upper``.
    """

    year: float
    lower: int
    upper: int
    fraction: float
    index: int | None = None
    extrapolated: bool = False

    @property
    def exact(self) -> bool:
        return self.index is not None


class TimeGridResolver:
    """Resolve, measure and interpolate on a strictly increasing year grid."""

    def __init__(self, years: Sequence[float] | np.ndarray, *, extrapolate: bool = True) -> None:
        grid = np.asarray(years, dtype=float)
        if grid.ndim != 1 or grid.size == 0:
            raise InvalidYear("Time grid must be a non-empty one-dimensional sequence of years.")
        if not np.all(np.isfinite(grid)):
            raise InvalidYear("Time grid contains non-finite years.")
        if grid.size > 1 and np.any(np.diff(grid) <= 0):
            raise InvalidYear(f"Time grid must be strictly increasing: {grid.tolist()}")
        grid.setflags(write=False)
        self._years = grid
        self.extrapolate = bool(extrapolate)

    @property
    def years(self) -> np.ndarray:
        return self._years

    def __len__(self) -> int:
        return int(self._years.size)

    @property
    def first(self) -> float:
        return float(self._years[0])

    @property
    def last(self) -> float:
        return float(self._years[-1])

    def contains(self, year: float) -> bool:
        return bool(np.any(self._years == float(year)))

    def index_of(self, year: float) -> int:
        """Return the grid index of an exact grid year."""

        position = self.resolve(year)
        if position.index is None:
            raise InvalidYear(
                f"{year} is not a grid year; grid is {self._years.astype(int).tolist()}."
            )
        return position.index

    def resolve(self, year: float) -> GridPosition:
        year = float(year)
        matches = np.flatnonzero(self._years == year)
        if matches.size:
            idx = int(matches[0])
            return GridPosition(year=year, lower=idx, upper=idx, fraction=0.0, index=idx)
        if self._years.size < 2:
            # Single point grids cannot bracket anything.
            return GridPosition(year=year, lower=0, upper=0, fraction=0.0, extrapolated=True)

        upper = int(np.searchsorted(self._years, year))
        extrapolated = upper == 0 or upper == self._years.size
        if upper == 0:
            upper = 1
        elif upper == self._years.size:
            upper = self._years.size - 1
        lower = upper - 1
        y_low = self._years[lower]
        y_high = self._years[upper]
        fraction = (year - y_low) / (y_high - y_low)
        return GridPosition(
            year=year,
            lower=lower,
            upper=upper,
            fraction=float(fraction),
            extrapolated=extrapolated,
        )

    def bracket(self, year: float) -> tuple[float, float]:
        """Return the (lower, upper) grid years around ``year``."""

        position = self.resolve(year)
        return float(self._years[position.lower]), float(self._years[position.upper])

    def period_length(self, year: float) -> float:
        """Return the span of years represented by ``year``.

        Interior points cover half the distance between their neighbours, the first
        point uses the first inter-point spacing and the last point the distance to
        its predecessor. Off-grid years use the width of the bracketing interval.
        """

        years = self._years
        if years.size < 2:
            return 1.0
        position = self.resolve(year)
        if position.index is None:
            return float(years[position.upper] - years[position.lower])
        idx = position.index
        if idx == 0:
            return float(years[1] - years[0])
        if idx == years.size - 1:
            return float(years[-1] - years[-2])
        return float((years[idx + 1] - years[idx - 1]) / 2.0)

    def spans(self) -> np.ndarray:
        return np.array([self.period_length(year) for year in self._years], dtype=float)

    def steps(self, base_year: float) -> np.ndarray:
        """Years elapsed between consecutive grid points, starting from ``base_year``."""

        if base_year > self._years[0]:
            raise InvalidYear(
                f"Base year {base_year} lies after the first grid year {self._years[0]}."
            )
        previous = np.concatenate(([float(base_year)], self._years[:-1]))
        return self._years - previous

    def integration_span(self, year: float, base_year: float) -> float:
        """Years of emissions a change at grid ``year`` contributes when integrated.

        Models integrate linearly between consecutive grid points starting at
        ``base_year``, so a grid point carries half of the step before it and half of
        the step after it. This equals :meth:`period_length` at interior points and
        differs at the edges (a first point on the base year, the last grid point).
        """

        idx = self.index_of(year)
        steps = self.steps(base_year)
        following = float(steps[idx + 1]) if idx + 1 < steps.size else 0.0
        span = 0.5 * (float(steps[idx]) + following)
        if span <= 0.0:
            raise InvalidYear(f"Grid year {year} spans no integrated time from base {base_year}.")
        return span

    def interpolate(self, series_at_grid: Sequence[float] | np.ndarray, query_year: float) -> float:
        """Linear interpolation inside the grid; linear extrapolation outside it.

        Extrapolation is the documented policy. Setting ``extrapolate=False`` turns
        out-of-range queries into :class:`InterpolationError`.
        """

        values = np.asarray(series_at_grid, dtype=float)
        if values.shape != self._years.shape:
            raise ValueError(
                f"Series length {values.shape} does not match the grid length {self._years.shape}."
            )
        position = self.resolve(query_year)
        if position.index is not None:
            return float(values[position.index])
        if position.extrapolated and not self.extrapolate:
            raise InterpolationError(
                f"Year {query_year} lies outside the grid [{self.first:g}, {self.last:g}] "
                "and extrapolation is disabled."
            )
        if position.lower == position.upper:
            return float(values[position.lower])
        return interpolate_linear(
            float(values[position.lower]),
            float(values[position.upper]),
            float(self._years[position.lower]),
            float(self._years[position.upper]),
            float(query_year),
        )

    def interpolate_many(
        self, series_at_grid: Sequence[float] | np.ndarray, query_years: Sequence[float]
    ) -> np.ndarray:
        return np.array(
            [self.interpolate(series_at_grid, year) for year in query_years], dtype=float
        )


def interpolate_linear(
    lower_value: float, upper_value: float, lower_year: float, upper_year: float, year: float
) -> float:
    return lower_value + (upper_value - lower_value) * (year - lower_year) / (
        upper_year - lower_year
    )


__all__ = ["GridPosition", "TimeGridResolver", "interpolate_linear"]
