"""Monte Carlo batches of SCC estimates over sampled uncertain parameters."""

from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence, Tuple

import numpy as np
import pandas as pd

from economic_module.scc import DiscountSpec, evaluate_scc, validate_scc_request
from economic_module.twin import TwinRun, TwinRunner
from iam_models.errors import BatchAbortedError, ConfigurationError, EngineError
from iam_models.scenarios import (
    DEFAULT_DISCOUNT_RATES,
    IAMFamily,
    Scenario,
    ScenarioCatalog,
    default_catalog,
)

from .distributions import (
    Distribution,
    default_distributions,
    distributions_from_config,
    draw_samples,
)
from .writers import write_batch

LOGGER = logging.getLogger(__name__)

# (pulse_year, discount_rate)
Cell = Tuple[int, float]

SUMMARY_COLUMNS = ("count", "mean", "std", "p5", "p25", "p50", "p75", "p95")
PROGRESS_EVERY = 10


class DiscontinuityArtifact(EngineError):
    """The pulse switched on a discontinuity that the base run did not have."""


@dataclass(slots=True)
class MonteCarloOptions:
    discount_rates: tuple[float, ...] = DEFAULT_DISCOUNT_RATES
    domestic: bool = False
    drop_discontinuities: bool = False
    seed: int | None = None
    output_dir: Path | None = None
    pulse_years: tuple[int, ...] | None = None
    workers: int = 1
    max_failure_rate: float | None = None
    save_overrides: bool = True

    def __post_init__(self) -> None:
        self.discount_rates = tuple(float(rate) for rate in self.discount_rates)
        if not self.discount_rates:
            raise ConfigurationError("At least one discount rate is required.")
        if self.pulse_years is not None:
            self.pulse_years = tuple(int(year) for year in self.pulse_years)
            if not self.pulse_years:
                raise ConfigurationError("At least one pulse year is required.")
        if self.workers < 1:
            raise ConfigurationError("workers must be at least 1.")
        if self.max_failure_rate is not None and not 0.0 <= self.max_failure_rate <= 1.0:
            raise ConfigurationError("max_failure_rate must lie in [0, 1].")
        if self.output_dir is not None:
            self.output_dir = Path(self.output_dir)

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any] | None) -> "MonteCarloOptions":
        cfg = dict(cfg or {})
        rates = cfg.get("discount_rates")
        if rates is None:
            rates = DEFAULT_DISCOUNT_RATES
        output_dir = cfg.get("output_dir")
        max_failure_rate = cfg.get("max_failure_rate")
        seed = cfg.get("seed")
        years = cfg.get("pulse_years")
        if years is not None and not isinstance(years, (list, tuple)):
            years = [years]
        return cls(
            discount_rates=tuple(DiscountSpec.parse(rate).time_preference for rate in rates),
            domestic=bool(cfg.get("domestic", False)),
            drop_discontinuities=bool(cfg.get("drop_discontinuities", False)),
            seed=None if seed is None else int(seed),
            output_dir=None if output_dir in (None, "") else Path(str(output_dir)),
            pulse_years=None if years is None else tuple(int(year) for year in years),
            workers=int(cfg.get("workers", 1)),
            max_failure_rate=None if max_failure_rate is None else float(max_failure_rate),
            save_overrides=bool(cfg.get("save_overrides", True)),
        )

    def years_for(self, family: IAMFamily) -> tuple[int, ...]:
        """Pulse years of the batch; every perturbation year of ``family`` by default."""

        if self.pulse_years is not None:
            return self.pulse_years
        return tuple(int(year) for year in family.settings.perturbation_years)


@dataclass(slots=True)
class MonteCarloTrial:
    index: int
    overrides: Dict[str, float]
    results: Dict[Cell, float] = field(default_factory=dict)
    failures: Dict[Cell, str] = field(default_factory=dict)


@dataclass(slots=True)
class MonteCarloBatch:
    """SCC tables of one batch, keyed by ``(pulse_year, discount_rate)``."""

    family: IAMFamily
    scenario: str
    scenario_label: str
    pulse_years: tuple[int, ...]
    domestic: bool
    currency_year: int
    requested_trials: int
    discount_rates: tuple[float, ...]
    samples: pd.DataFrame
    trials: list[MonteCarloTrial]
    results: Dict[Cell, pd.DataFrame]
    dropped: Dict[Cell, int]
    summary: pd.DataFrame
    stopped: bool = False
    output_paths: Dict[str, Path] = field(default_factory=dict)

    @property
    def attempted_trials(self) -> int:
        return len(self.trials)

    @property
    def cells(self) -> list[Cell]:
        return [(year, rate) for year in self.pulse_years for rate in self.discount_rates]

    def succeeded(self, pulse_year: int, rate: float) -> int:
        return len(self.results[(int(pulse_year), float(rate))])


# ---------------------------------------------------------------------------
# Per-trial work
# ---------------------------------------------------------------------------


def _check_discontinuity(twin: TwinRun) -> None:
    base = twin.base.get_variable("discontinuity", "occurrence")
    marginal = twin.marginal.get_variable("discontinuity", "occurrence")
    if not np.array_equal(base, marginal):
        raise DiscontinuityArtifact(
            f"Discontinuity triggered by the pulse at {twin.pulse.year} only in the marginal run."
        )


def _run_trial(
    runner: TwinRunner,
    scenario: Scenario,
    index: int,
    overrides: Dict[str, float],
    cells: Sequence[Cell],
    options: MonteCarloOptions,
) -> MonteCarloTrial:
    trial = MonteCarloTrial(index=index, overrides=overrides)
    inspect = _check_discontinuity if options.drop_discontinuities else None
    for year, rate in cells:
        try:
            value = evaluate_scc(
                runner,
                scenario,
                year,
                DiscountSpec.flat(rate),
                options.domestic,
                parameter_overrides=overrides,
                inspect=inspect,
            )
            if not math.isfinite(value):
                raise EngineError(f"Non-finite SCC {value!r}.")
        except EngineError as exc:
            LOGGER.warning(
                "Dropping trial %s for %s at %g%% discount: %s", index, year, rate * 100, exc
            )
            trial.failures[(year, rate)] = str(exc)
            continue
        trial.results[(year, rate)] = value
    return trial


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def summarise(values: Sequence[float]) -> Dict[str, float]:
    data = np.asarray(values, dtype=float)
    if data.size == 0:
        return {"count": 0.0, **{name: float("nan") for name in SUMMARY_COLUMNS[1:]}}
    p5, p25, p50, p75, p95 = np.percentile(data, [5, 25, 50, 75, 95])
    return {
        "count": float(data.size),
        "mean": float(np.mean(data)),
        "std": float(np.std(data)),
        "p5": float(p5),
        "p25": float(p25),
        "p50": float(p50),
        "p75": float(p75),
        "p95": float(p95),
    }


def _assemble(
    family: IAMFamily,
    scenario: Scenario,
    trials_requested: int,
    samples: pd.DataFrame,
    trials: list[MonteCarloTrial],
    cells: Sequence[Cell],
    options: MonteCarloOptions,
    stopped: bool,
) -> MonteCarloBatch:
    trials = sorted(trials, key=lambda trial: trial.index)
    results: Dict[Cell, pd.DataFrame] = {}
    dropped: Dict[Cell, int] = {}
    summary_rows: list[Dict[str, float]] = []
    override_columns = list(samples.columns) if options.save_overrides else []

    for cell in cells:
        rows = []
        for trial in trials:
            if cell not in trial.results:
                continue
            row: Dict[str, Any] = {"trial": trial.index}
            for column in override_columns:
                row[column] = trial.overrides[column]
            row["scc"] = trial.results[cell]
            rows.append(row)
        frame = pd.DataFrame(rows, columns=["trial", *override_columns, "scc"])
        frame["trial"] = frame["trial"].astype(int)
        results[cell] = frame
        dropped[cell] = sum(1 for trial in trials if cell in trial.failures)
        summary_rows.append(summarise(frame["scc"].to_numpy(dtype=float)))

    summary = pd.DataFrame(
        summary_rows,
        index=pd.MultiIndex.from_tuples(list(cells), names=["pulse_year", "discount_rate"]),
        columns=list(SUMMARY_COLUMNS),
    )
    return MonteCarloBatch(
        family=family,
        scenario=scenario.name,
        scenario_label=scenario.label_for(family),
        pulse_years=tuple(dict.fromkeys(year for year, _ in cells)),
        domestic=options.domestic,
        currency_year=family.settings.currency_year,
        requested_trials=trials_requested,
        discount_rates=options.discount_rates,
        samples=samples,
        trials=trials,
        results=results,
        dropped=dropped,
        summary=summary,
        stopped=stopped,
    )


class _Progress:
    """Progress logging and the failure-rate guard, fed in trial order."""

    def __init__(self, trials: int, cells: int, max_failure_rate: float | None) -> None:
        self.trials = trials
        self.cells = cells
        self.max_failure_rate = max_failure_rate
        self.attempted = 0
        self.failed_cells = 0

    def record(self, trial: MonteCarloTrial) -> None:
        self.attempted += 1
        self.failed_cells += len(trial.failures)
        if self.attempted % PROGRESS_EVERY == 0 or self.attempted == self.trials:
            LOGGER.info(
                "Computed trial %s/%s (%.1f%%)",
                self.attempted,
                self.trials,
                100.0 * self.attempted / self.trials,
            )

    def exceeded(self) -> float | None:
        if self.max_failure_rate is None or self.attempted < min(self.trials, PROGRESS_EVERY):
            return None
        rate = self.failed_cells / (self.attempted * self.cells)
        return rate if rate > self.max_failure_rate else None


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run_batch(
    family: IAMFamily | str,
    scenario: Scenario | str,
    trials: int,
    distributions: Mapping[str, Distribution | Mapping[str, Any]] | None = None,
    options: MonteCarloOptions | None = None,
    *,
    stop_event: threading.Event | None = None,
    catalog: ScenarioCatalog | None = None,
) -> MonteCarloBatch:
    """Run ``trials`` Monte Carlo trials and return SCC tables per pulse year and rate.

    The sample matrix is drawn from ``options.seed`` before any trial runs, so the
    results do not depend on ``options.workers``. Every trial evaluates each pulse
    year of ``options.years_for(family)`` at each discount rate with the same sampled
    parameters. Cells failing with an :class:`EngineError` (or a discontinuity
    artifact when ``drop_discontinuities``) are dropped and counted per cell.
    """

    family = IAMFamily.parse(family)
    options = options or MonteCarloOptions()
    if int(trials) < 1:
        raise ConfigurationError("trials must be a positive integer.")
    trials = int(trials)
    years = options.years_for(family)
    grid = None
    for year in years:
        grid = validate_scc_request(family, year, options.domestic, grid)
    resolved = (catalog or default_catalog()).get(scenario)
    cells: list[Cell] = [(year, rate) for year in years for rate in options.discount_rates]

    specs = default_distributions(family) if distributions is None else distributions
    samples = draw_samples(distributions_from_config(specs), trials, options.seed)
    runner = TwinRunner(family, catalog=catalog, time_grid=grid)
    LOGGER.info(
        "Running %s Monte Carlo trials for %s/%s at %s (rates: %s, workers: %s).",
        trials,
        family.value,
        resolved.name,
        ", ".join(str(year) for year in years),
        ", ".join(f"{rate:g}" for rate in options.discount_rates),
        options.workers,
    )

    progress = _Progress(trials, len(cells), options.max_failure_rate)
    completed: list[MonteCarloTrial] = []
    stopped = False
    halt = threading.Event()

    def work(index: int, overrides: Dict[str, float]) -> MonteCarloTrial | None:
        if halt.is_set() or (stop_event is not None and stop_event.is_set()):
            return None
        return _run_trial(runner, resolved, index, overrides, cells, options)

    def abort(rate: float) -> BatchAbortedError:
        halt.set()
        batch = _assemble(
            family, resolved, trials, samples, completed, cells, options, stopped=True
        )
        return BatchAbortedError(
            f"Aborted after {progress.attempted} trials: failure rate {rate:.1%} exceeds "
            f"{options.max_failure_rate:.1%}.",
            batch=batch,
        )

    rows = [
        (int(index), {str(k): float(v) for k, v in row.items()})
        for index, row in samples.iterrows()
    ]

    if options.workers == 1:
        for index, overrides in rows:
            trial = work(index, overrides)
            if trial is None:
                stopped = True
                break
            completed.append(trial)
            progress.record(trial)
            failure_rate = progress.exceeded()
            if failure_rate is not None:
                raise abort(failure_rate)
    else:
        with ThreadPoolExecutor(max_workers=options.workers) as pool:
            futures = [pool.submit(work, index, overrides) for index, overrides in rows]
            for future in futures:
                trial = future.result()
                if trial is None:
                    stopped = True
                    continue
                completed.append(trial)
                progress.record(trial)
                failure_rate = progress.exceeded()
                if failure_rate is not None:
                    for pending in futures:
                        pending.cancel()
                    raise abort(failure_rate)

    if stopped:
        LOGGER.warning("Stop requested; returning %s of %s trials.", len(completed), trials)
    batch = _assemble(family, resolved, trials, samples, completed, cells, options, stopped)
    for (year, rate), count in batch.dropped.items():
        if count:
            LOGGER.warning(
                "Dropped %s of %s trials for %s at %g%% discount.",
                count,
                batch.attempted_trials,
                year,
                rate * 100,
            )
    if options.output_dir is not None:
        batch.output_paths = write_batch(batch, options.output_dir)
        LOGGER.info("Wrote Monte Carlo tables to %s", options.output_dir)
    return batch


__all__ = [
    "Cell",
    "DiscontinuityArtifact",
    "MonteCarloOptions",
    "MonteCarloTrial",
    "MonteCarloBatch",
    "SUMMARY_COLUMNS",
    "run_batch",
    "summarise",
]
