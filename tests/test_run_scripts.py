import importlib.util
from pathlib import Path

import pandas as pd
import pytest
import yaml

from iam_models.errors import EngineError
from monte_carlo import orchestrator

REPO_ROOT = Path(__file__).resolve().parents[1]


def _load(name: str):
    path = REPO_ROOT / "scripts" / f"{name}.py"
    spec = importlib.util.spec_from_file_location(f"{name}_module", path)
    module = importlib.util.module_from_spec(spec)
    assert spec.loader is not None
    spec.loader.exec_module(module)  # type: ignore[attr-defined]
    return module


run_scc = _load("run_scc")
run_scc_mcs = _load("run_scc_mcs")


def _write_config(tmp_path: Path, config: dict, monkeypatch) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(config), encoding="utf-8")
    monkeypatch.setenv("SCC_CONFIG_PATH", str(path))
    return path


def _fake_evaluate(fail: bool = False):
    def fake(
        runner, scenario, year, discount, domestic=False, *, parameter_overrides=None, inspect=None
    ):
        if fail:
            raise EngineError("synthetic failure")
        return 10.0 * parameter_overrides["x"]

    return fake


def test_run_scc_prints_result_and_writes_marginal_damages(tmp_path, monkeypatch, capsys):
    _write_config(
        tmp_path,
        {"results": {"run_directory": "test-run"}, "scc": {"family": "PAGE", "scenario": "IMAGE"}},
        monkeypatch,
    )
    code = run_scc.main(
        ["--year", "2020", "--discount", "3%", "--marginal-damages", "results/md.csv"]
    )
    assert code == 0
    assert "SCC PAGE / IMAGE / 2020 (3%)" in capsys.readouterr().out

    written = tmp_path.resolve() / "results" / "test-run" / "md.csv"
    frame = pd.read_csv(written, index_col="year")
    assert list(frame.columns)[:2] == ["EU", "USA"]


def test_run_scc_reports_configuration_errors(tmp_path, monkeypatch):
    _write_config(tmp_path, {}, monkeypatch)
    assert run_scc.main(["--scenario", "SSP9"]) == 1
    assert run_scc.main(["--family", "DICE", "--domestic"]) == 1


def test_run_scc_ramsey_arguments(tmp_path, monkeypatch):
    _write_config(tmp_path, {}, monkeypatch)
    args = run_scc._build_parser({}).parse_args(
        ["--method", "ramsey_discount", "--rho", "0.015", "--eta", "1.45"]
    )
    spec = run_scc._discount_from_args(args)
    assert not spec.is_flat
    assert spec.eta == pytest.approx(1.45)


def test_run_scc_mcs_writes_tables(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(orchestrator, "evaluate_scc", _fake_evaluate())
    _write_config(
        tmp_path,
        {
            "monte_carlo": {
                "family": "PAGE",
                "scenario": "IMAGE",
                "discount_rates": ["3%"],
                "distributions": {"x": {"dist": "uniform", "low": 1.0, "high": 2.0}},
            }
        },
        monkeypatch,
    )
    code = run_scc_mcs.main(
        ["--trials", "4", "--seed", "8", "--years", "2020", "2030", "--output", "results/mc"]
    )
    assert code == 0
    out = capsys.readouterr().out
    assert "mean" in out and "pulse_year" in out

    folder = tmp_path.resolve() / "results" / "mc" / "PAGE" / "image"
    for year in (2020, 2030):
        table = pd.read_csv(folder / f"scc_{year}_3pct.csv", comment="#")
        assert len(table) == 4
        assert table["scc"].between(10.0, 20.0).all()
    assert not (folder / "scc_2010_3pct.csv").exists()


def test_run_scc_mcs_defaults_to_every_perturbation_year(tmp_path, monkeypatch):
    monkeypatch.setattr(orchestrator, "evaluate_scc", _fake_evaluate())
    _write_config(
        tmp_path,
        {
            "monte_carlo": {
                "discount_rates": [0.05],
                "output_dir": "results/mc",
                "distributions": {"x": {"dist": "uniform", "low": 1.0, "high": 2.0}},
            }
        },
        monkeypatch,
    )
    assert run_scc_mcs.main(["--trials", "2", "--seed", "3"]) == 0
    folder = tmp_path.resolve() / "results" / "mc" / "PAGE" / "image"
    written = sorted(path.name for path in folder.glob("scc_*.csv"))
    assert written == [f"scc_{year}_5pct.csv" for year in (2010, 2020, 2030, 2040, 2050)]


def test_run_scc_mcs_returns_two_when_batch_aborts(tmp_path, monkeypatch):
    monkeypatch.setattr(orchestrator, "evaluate_scc", _fake_evaluate(fail=True))
    _write_config(
        tmp_path,
        {"monte_carlo": {"distributions": {"x": {"dist": "uniform", "low": 0.0, "high": 1.0}}}},
        monkeypatch,
    )
    assert run_scc_mcs.main(["--trials", "3", "--max-failure-rate", "0.2"]) == 2
