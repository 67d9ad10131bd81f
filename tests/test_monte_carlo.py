import threading
from types import SimpleNamespace

import numpy as np
import pandas as pd
import pytest

from economic_module import TwinRunner
from iam_models.errors import BatchAbortedError, ConfigurationError, EngineError
from iam_models.scenarios import IAMFamily
from monte_carlo import MonteCarloOptions, run_batch, summarise
from monte_carlo import orchestrator
from monte_carlo.distributions import UniformDistribution, distributions_from_config, draw_samples

RATES = (0.025, 0.03, 0.05)
PAGE_YEARS = (2010, 2020, 2030, 2040, 2050)
X_DIST = {"x": {"dist": "uniform", "low": 0.0, "high": 1.0}}


def _fake_evaluate(fail_above: float | None = None, on_call=None):
    """Stand-in for evaluate_scc that returns 100 * x * (1 + rate) + (year - 2020)."""

    def fake(
        runner, scenario, year, discount, domestic=False, *, parameter_overrides=None, inspect=None
    ):
        x = parameter_overrides["x"]
        if on_call is not None:
            on_call(x)
        if fail_above is not None and x > fail_above:
            raise EngineError(f"trial with x={x:.3f} failed")
        return 100.0 * x * (1.0 + discount.rate) + (year - 2020)

    return fake


def test_small_page_batch_returns_one_table_per_year_and_rate():
    options = MonteCarloOptions(discount_rates=RATES, seed=7, pulse_years=(2020,))
    batch = run_batch(
        "PAGE",
        "IMAGE",
        2,
        {"climate_sensitivity": {"dist": "uniform", "low": 2.5, "high": 3.5}},
        options,
    )
    assert set(batch.results) == {(2020, rate) for rate in RATES}
    for rate in RATES:
        table = batch.results[(2020, rate)]
        assert len(table) <= 2
        assert list(table.columns) == ["trial", "climate_sensitivity", "scc"]
        assert np.all(table["scc"] > 0.0)
    assert batch.attempted_trials == 2
    assert not batch.stopped
    assert list(batch.summary.index) == [(2020, rate) for rate in RATES]
    assert batch.summary.index.names == ["pulse_year", "discount_rate"]


def test_dice_batch_with_default_distributions():
    options = MonteCarloOptions(discount_rates=(0.03,), seed=3, pulse_years=(2015,))
    batch = run_batch("DICE", "IMAGE", 2, None, options)
    table = batch.results[(2015, 0.03)]
    assert list(table.columns) == ["trial", "climate_sensitivity", "scc"]
    assert np.all(np.isfinite(table["scc"]))


def test_batch_covers_every_perturbation_year_by_default(monkeypatch):
    monkeypatch.setattr(orchestrator, "evaluate_scc", _fake_evaluate())
    batch = run_batch("PAGE", "IMAGE", 3, X_DIST, MonteCarloOptions(seed=1))
    assert batch.pulse_years == PAGE_YEARS
    assert PAGE_YEARS == IAMFamily.PAGE.settings.perturbation_years
    assert batch.cells == [(year, rate) for year in PAGE_YEARS for rate in RATES]
    assert set(batch.results) == set(batch.cells)

    x = batch.samples["x"].to_numpy()
    np.testing.assert_allclose(
        batch.results[(2040, 0.05)]["scc"], 100.0 * x * 1.05 + 20.0
    )
    np.testing.assert_allclose(batch.results[(2010, 0.03)]["scc"], 100.0 * x * 1.03 - 10.0)
    assert batch.summary.loc[(2030, 0.025), "count"] == 3
    assert MonteCarloOptions().years_for(IAMFamily.DICE)[:2] == (2005, 2015)


def test_pulse_years_share_the_sampled_parameters(monkeypatch):
    seen = []

    def record(runner, scenario, year, discount, domestic=False, **kwargs):
        seen.append((year, kwargs["parameter_overrides"]["x"]))
        return 1.0

    monkeypatch.setattr(orchestrator, "evaluate_scc", record)
    options = MonteCarloOptions(seed=6, pulse_years=(2020, 2040), discount_rates=(0.03,))
    batch = run_batch("PAGE", "IMAGE", 2, X_DIST, options)
    first, second = batch.samples["x"].tolist()
    assert seen == [(2020, first), (2040, first), (2020, second), (2040, second)]


def test_batches_are_reproducible_for_a_seed(monkeypatch):
    monkeypatch.setattr(orchestrator, "evaluate_scc", _fake_evaluate())
    first = run_batch("PAGE", "IMAGE", 25, X_DIST, MonteCarloOptions(seed=11))
    second = run_batch("PAGE", "IMAGE", 25, X_DIST, MonteCarloOptions(seed=11))
    other = run_batch("PAGE", "IMAGE", 25, X_DIST, MonteCarloOptions(seed=12))

    pd.testing.assert_frame_equal(first.samples, second.samples)
    for cell in first.cells:
        pd.testing.assert_frame_equal(first.results[cell], second.results[cell])
    assert not first.samples.equals(other.samples)


def test_real_page_batches_are_reproducible_for_a_seed():
    dists = {"climate_sensitivity": {"dist": "uniform", "low": 2.0, "high": 4.5}}

    def batch():
        options = MonteCarloOptions(seed=17, pulse_years=(2020, 2030), discount_rates=(0.03,))
        return run_batch("PAGE", "MESSAGE", 2, dists, options)

    first, second = batch(), batch()
    assert first.cells == [(2020, 0.03), (2030, 0.03)]
    for cell in first.cells:
        assert len(first.results[cell]) == 2
        pd.testing.assert_frame_equal(first.results[cell], second.results[cell])
    pd.testing.assert_frame_equal(first.summary, second.summary)
    assert not np.allclose(
        first.results[(2020, 0.03)]["scc"], first.results[(2030, 0.03)]["scc"]
    )


def test_worker_count_does_not_change_results(monkeypatch):
    monkeypatch.setattr(orchestrator, "evaluate_scc", _fake_evaluate(fail_above=0.8))
    sequential = run_batch("PAGE", "IMAGE", 30, X_DIST, MonteCarloOptions(seed=5))
    threaded = run_batch("PAGE", "IMAGE", 30, X_DIST, MonteCarloOptions(seed=5, workers=4))
    for cell in sequential.cells:
        pd.testing.assert_frame_equal(sequential.results[cell], threaded.results[cell])
    assert sequential.dropped == threaded.dropped


def test_failed_trials_are_dropped_and_counted(monkeypatch):
    monkeypatch.setattr(orchestrator, "evaluate_scc", _fake_evaluate(fail_above=0.5))
    trials = 40
    batch = run_batch("PAGE", "IMAGE", trials, X_DIST, MonteCarloOptions(seed=21))

    expected_drops = int((batch.samples["x"] > 0.5).sum())
    assert 0 < expected_drops < trials
    for year, rate in batch.cells:
        assert batch.dropped[(year, rate)] == expected_drops
        assert len(batch.results[(year, rate)]) == trials - expected_drops
        assert batch.succeeded(year, rate) == trials - expected_drops
        assert batch.summary.loc[(year, rate), "count"] == trials - expected_drops
        assert np.all(batch.results[(year, rate)]["x"] <= 0.5)


def _fixed_threshold(value: float) -> dict:
    return {"threshold": {"dist": "empirical", "values": [{"discontinuity_threshold_c": value}]}}


def _discontinuity_threshold_between_twins() -> float:
    """A threshold only the marginal run of a 2020 PAGE/IMAGE pulse reaches."""

    twin = TwinRunner("PAGE").run("IMAGE", 2020)
    base = twin.base.get_variable("climate", "temperature_c").max()
    marginal = twin.marginal.get_variable("climate", "temperature_c").max()
    assert marginal > base
    return float(0.5 * (base + marginal))


def test_pulse_triggered_discontinuities_are_dropped_in_real_batches():
    threshold = _discontinuity_threshold_between_twins()
    dists = _fixed_threshold(threshold)
    options = MonteCarloOptions(
        seed=2, pulse_years=(2020,), discount_rates=(0.03,), drop_discontinuities=True
    )
    batch = run_batch("PAGE", "IMAGE", 3, dists, options)
    assert batch.dropped[(2020, 0.03)] == 3
    assert batch.succeeded(2020, 0.03) == 0
    assert all(
        "only in the marginal run" in trial.failures[(2020, 0.03)] for trial in batch.trials
    )

    kept = run_batch(
        "PAGE",
        "IMAGE",
        3,
        dists,
        MonteCarloOptions(seed=2, pulse_years=(2020,), discount_rates=(0.03,)),
    )
    assert kept.dropped[(2020, 0.03)] == 0
    assert np.all(np.isfinite(kept.results[(2020, 0.03)]["scc"]))

    untouched = run_batch("PAGE", "IMAGE", 2, _fixed_threshold(50.0), options)
    assert untouched.dropped[(2020, 0.03)] == 0
    assert untouched.succeeded(2020, 0.03) == 2


def test_samples_are_drawn_before_trials_run(monkeypatch):
    monkeypatch.setattr(orchestrator, "evaluate_scc", _fake_evaluate())
    batch = run_batch("PAGE", "IMAGE", 10, X_DIST, MonteCarloOptions(seed=9))
    expected = draw_samples(distributions_from_config(X_DIST), 10, 9)
    pd.testing.assert_frame_equal(batch.samples, expected)
    assert list(batch.samples.index) == list(range(1, 11))


def test_failure_rate_guard_aborts_with_partial_batch(monkeypatch):
    monkeypatch.setattr(orchestrator, "evaluate_scc", _fake_evaluate(fail_above=-1.0))
    options = MonteCarloOptions(seed=1, max_failure_rate=0.5)
    with pytest.raises(BatchAbortedError) as excinfo:
        run_batch("PAGE", "IMAGE", 50, X_DIST, options)
    partial = excinfo.value.batch
    assert partial is not None
    assert partial.attempted_trials == 10
    assert partial.stopped
    assert all(len(table) == 0 for table in partial.results.values())
    assert all(count == 10 for count in partial.dropped.values())


def test_pre_set_stop_event_runs_nothing(monkeypatch):
    monkeypatch.setattr(orchestrator, "evaluate_scc", _fake_evaluate())
    stop = threading.Event()
    stop.set()
    batch = run_batch("PAGE", "IMAGE", 5, X_DIST, MonteCarloOptions(seed=2), stop_event=stop)
    assert batch.stopped
    assert batch.attempted_trials == 0
    assert all(len(table) == 0 for table in batch.results.values())
    assert np.isnan(batch.summary.loc[(2020, 0.03), "mean"])


def test_stop_event_keeps_completed_trials(monkeypatch):
    samples = draw_samples(distributions_from_config(X_DIST), 8, 4)
    stop = threading.Event()
    third = samples["x"].iloc[2]

    def on_call(x):
        if x == third:
            stop.set()

    monkeypatch.setattr(orchestrator, "evaluate_scc", _fake_evaluate(on_call=on_call))
    batch = run_batch("PAGE", "IMAGE", 8, X_DIST, MonteCarloOptions(seed=4), stop_event=stop)
    assert batch.stopped
    assert batch.attempted_trials == 3
    assert batch.results[(2050, 0.025)]["trial"].tolist() == [1, 2, 3]


def test_discontinuity_artifacts_are_rejected():
    def twin(base, marginal):
        def model(values):
            return SimpleNamespace(get_variable=lambda component, name: np.asarray(values))

        return SimpleNamespace(
            base=model(base), marginal=model(marginal), pulse=SimpleNamespace(year=2020)
        )

    orchestrator._check_discontinuity(twin([0.0, 0.0, 1.0], [0.0, 0.0, 1.0]))
    with pytest.raises(orchestrator.DiscontinuityArtifact):
        orchestrator._check_discontinuity(twin([0.0, 0.0, 0.0], [0.0, 0.0, 1.0]))
    assert issubclass(orchestrator.DiscontinuityArtifact, EngineError)


def test_batch_writes_csv_tables_under_the_family_label(monkeypatch, tmp_path):
    monkeypatch.setattr(orchestrator, "evaluate_scc", _fake_evaluate(fail_above=0.9))
    options = MonteCarloOptions(
        seed=3, output_dir=tmp_path, domestic=True, pulse_years=(2020, 2030)
    )
    batch = run_batch("PAGE", "MiniCAM Base", 12, X_DIST, options)
    assert batch.scenario == "MiniCAM Base"
    assert batch.scenario_label == "MiniCAM"

    folder = tmp_path / "PAGE" / "minicam"
    for year in (2020, 2030):
        for label in ("2.5pct", "3pct", "5pct"):
            path = folder / f"scc_{year}_{label}_domestic.csv"
            assert batch.output_paths[f"{year}_{label}"] == path
            assert path.read_text(encoding="utf-8").startswith("# unit: 2007$/tCO2")
    table = pd.read_csv(folder / "scc_2030_3pct_domestic.csv", comment="#")
    assert list(table.columns) == ["trial", "x", "scc"]
    assert len(table) == len(batch.results[(2030, 0.03)])

    summary = pd.read_csv(folder / "summary.csv", comment="#")
    assert list(summary.columns[:3]) == ["pulse_year", "discount_rate", "dropped"]
    assert summary["pulse_year"].tolist() == [2020] * 3 + [2030] * 3
    assert summary["dropped"].tolist() == [batch.dropped[cell] for cell in batch.cells]
    samples = pd.read_csv(folder / "samples.csv")
    assert len(samples) == 12


def test_dice_batches_use_the_dice_scenario_label(monkeypatch, tmp_path):
    monkeypatch.setattr(orchestrator, "evaluate_scc", _fake_evaluate())
    options = MonteCarloOptions(seed=3, output_dir=tmp_path, pulse_years=(2015,))
    batch = run_batch("DICE", "MiniCAM Base", 2, X_DIST, options)
    assert batch.scenario_label == "MiniCAMbase"
    assert (tmp_path / "DICE" / "minicambase" / "scc_2015_3pct.csv").is_file()


def test_save_overrides_can_be_disabled(monkeypatch):
    monkeypatch.setattr(orchestrator, "evaluate_scc", _fake_evaluate())
    batch = run_batch("PAGE", "IMAGE", 3, X_DIST, MonteCarloOptions(seed=1, save_overrides=False))
    assert list(batch.results[(2020, 0.05)].columns) == ["trial", "scc"]


def test_invalid_requests():
    with pytest.raises(ConfigurationError):
        run_batch("PAGE", "IMAGE", 0, X_DIST)
    with pytest.raises(ConfigurationError):
        run_batch("DICE", "IMAGE", 2, None, MonteCarloOptions(domestic=True))
    with pytest.raises(ConfigurationError):
        run_batch("PAGE", "IMAGE", 2, X_DIST, MonteCarloOptions(pulse_years=(2020, 2400)))
    with pytest.raises(ConfigurationError):
        run_batch("DICE", "IMAGE", 2, X_DIST, MonteCarloOptions(pulse_years=(2298,)))
    with pytest.raises(ConfigurationError):
        MonteCarloOptions(pulse_years=())
    with pytest.raises(ConfigurationError):
        MonteCarloOptions(workers=0)
    with pytest.raises(ConfigurationError):
        MonteCarloOptions(max_failure_rate=1.5)


def test_options_from_config_parses_named_rates(tmp_path):
    options = MonteCarloOptions.from_config(
        {
            "discount_rates": ["2.5%", 0.03, "5%"],
            "seed": "42",
            "workers": 2,
            "pulse_years": [2020, "2030"],
            "output_dir": str(tmp_path),
            "unused": True,
        }
    )
    assert options.discount_rates == RATES
    assert options.seed == 42
    assert options.workers == 2
    assert options.pulse_years == (2020, 2030)
    assert options.output_dir == tmp_path

    assert MonteCarloOptions.from_config({"pulse_years": 2040}).pulse_years == (2040,)
    assert MonteCarloOptions.from_config({"pulse_years": None}).pulse_years is None


def test_summarise():
    stats = summarise([1.0, 2.0, 3.0, 4.0, 5.0])
    assert stats["count"] == 5
    assert stats["mean"] == pytest.approx(3.0)
    assert stats["p50"] == pytest.approx(3.0)
    assert stats["std"] == pytest.approx(np.std([1, 2, 3, 4, 5]))
    empty = summarise([])
    assert empty["count"] == 0
    assert np.isnan(empty["p95"])


def test_uniform_distribution_rejects_reversed_bounds():
    with pytest.raises(ConfigurationError):
        UniformDistribution(2.0, 1.0)
