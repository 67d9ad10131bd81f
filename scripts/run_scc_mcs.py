"""Run a Monte Carlo batch of SCC estimates over sampled uncertain parameters.

Usage
-----
```bash
python -m scripts.run_scc_mcs                         # monte_carlo section of config.yaml
python -m scripts.run_scc_mcs --trials 500 --seed 42 --workers 4
python -m scripts.run_scc_mcs --family DICE --scenario MESSAGE --rates 0.025 0.03 0.05
python -m scripts.run_scc_mcs --years 2020 2030 --trials 200
python -m scripts.run_scc_mcs --domestic --drop-discontinuities --output results/mcs
```

Every trial is evaluated at each pulse year and discount rate. One CSV per pulse year
and rate (``scc_<year>_<rate>.csv``) is written under ``<output>/<family>/<scenario>/``
together with ``summary.csv`` (count, mean, std and percentiles) and ``samples.csv``. Ctrl+C
stops the batch between trials and still writes the trials computed so far.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Mapping, Sequence

from config_paths import get_config_path, load_config, resolve_output_path
from iam_models import SCENARIO_NAMES, IAMFamily, SCCError
from iam_models.errors import BatchAbortedError
from monte_carlo import MonteCarloOptions, run_batch
from scripts._path_setup import ROOT

LOGGER = logging.getLogger("run_scc_mcs")


def _build_parser(cfg: Mapping[str, object]) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Monte Carlo SCC estimates for one IAM.")
    parser.add_argument(
        "--family",
        default=str(cfg.get("family", IAMFamily.PAGE.value)),
        choices=[member.value for member in IAMFamily],
        type=str.upper,
    )
    parser.add_argument(
        "--scenario",
        default=str(cfg.get("scenario", SCENARIO_NAMES[0])),
        help=f"Socioeconomic scenario ({', '.join(SCENARIO_NAMES)}).",
    )
    parser.add_argument("--trials", type=int, default=int(cfg.get("trials", 10)))
    parser.add_argument("--seed", type=int, default=cfg.get("seed"))
    parser.add_argument(
        "--years",
        dest="pulse_years",
        nargs="+",
        type=int,
        default=cfg.get("pulse_years"),
        help="Pulse years (default: every perturbation year of the family).",
    )
    parser.add_argument(
        "--rates",
        nargs="+",
        default=None,
        help="Discount rates (fractions or named rates such as 3%%).",
    )
    parser.add_argument(
        "--domestic", action=argparse.BooleanOptionalAction, default=cfg.get("domestic")
    )
    parser.add_argument(
        "--drop-discontinuities",
        action=argparse.BooleanOptionalAction,
        default=cfg.get("drop_discontinuities"),
    )
    parser.add_argument("--workers", type=int, default=cfg.get("workers"))
    parser.add_argument("--max-failure-rate", type=float, default=cfg.get("max_failure_rate"))
    parser.add_argument("--output", default=cfg.get("output_dir"))
    return parser


def _options(args: argparse.Namespace, cfg: Mapping[str, object], root_cfg) -> MonteCarloOptions:
    merged = dict(cfg)
    for key in (
        "seed",
        "pulse_years",
        "domestic",
        "drop_discontinuities",
        "workers",
        "max_failure_rate",
    ):
        value = getattr(args, key)
        if value is not None:
            merged[key] = value
    if args.rates:
        merged["discount_rates"] = args.rates
    merged["output_dir"] = (
        resolve_output_path(root_cfg, Path(args.output)) if args.output else None
    )
    return MonteCarloOptions.from_config(merged)


def main(argv: Sequence[str] | None = None) -> int:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(name)s: %(message)s")

    root_cfg = load_config(get_config_path(ROOT / "config.yaml"))
    cfg = root_cfg.get("monte_carlo", {}) or {}
    args = _build_parser(cfg).parse_args(argv)

    stop_event = threading.Event()

    def _request_stop(signum, frame):  # pragma: no cover - interactive
        LOGGER.warning("Interrupt received; finishing the current trial.")
        stop_event.set()

    previous = signal.signal(signal.SIGINT, _request_stop)
    try:
        options = _options(args, cfg, root_cfg)
        batch = run_batch(
            args.family,
            args.scenario,
            args.trials,
            cfg.get("distributions"),
            options,
            stop_event=stop_event,
        )
    except BatchAbortedError as exc:
        LOGGER.error("%s", exc)
        return 2
    except SCCError as exc:
        LOGGER.error("%s", exc)
        return 1
    finally:
        signal.signal(signal.SIGINT, previous)

    print(batch.summary.to_string(float_format=lambda value: f"{value:,.2f}"))
    for (year, rate), count in batch.dropped.items():
        if count:
            print(f"dropped at {year} / {rate:g}: {count}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
