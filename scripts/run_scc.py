"""Compute a deterministic social cost of carbon for one IAM family and scenario.

Usage
-----
```bash
python -m scripts.run_scc                      # settings from config.yaml (scc section)
python -m scripts.run_scc --family DICE --scenario "MiniCAM Base" --year 2030
python -m scripts.run_scc --discount 5%
python -m scripts.run_scc --method ramsey_discount --rho 0.015 --eta 1.45
python -m scripts.run_scc --domestic --marginal-damages results/scc/md.csv
```

CLI options override the ``scc`` section of ``config.yaml``. The SCC is reported in
the family's currency year (2007$) per tonne of CO2.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Mapping, Sequence

from config_paths import get_config_path, load_config, resolve_output_path
from economic_module import DiscountSpec, compute_scc, get_marginal_damages
from iam_models import SCENARIO_NAMES, IAMFamily, SCCError
from scripts._path_setup import ROOT

LOGGER = logging.getLogger("run_scc")


def _build_parser(cfg: Mapping[str, object]) -> argparse.ArgumentParser:
    discount_cfg = cfg.get("discount", {}) or {}
    md_cfg = cfg.get("marginal_damages", {}) or {}

    parser = argparse.ArgumentParser(
        description="Calculate the SCC from a base/marginal twin run of one IAM."
    )
    parser.add_argument(
        "--family",
        default=str(cfg.get("family", IAMFamily.PAGE.value)),
        choices=[member.value for member in IAMFamily],
        type=str.upper,
        help="IAM family to run.",
    )
    parser.add_argument(
        "--scenario",
        default=str(cfg.get("scenario", SCENARIO_NAMES[0])),
        help=f"Socioeconomic scenario ({', '.join(SCENARIO_NAMES)}).",
    )
    parser.add_argument(
        "--year", type=int, default=int(cfg.get("year", 2020)), help="Pulse year."
    )
    parser.add_argument(
        "--method",
        default=str(discount_cfg.get("method", "constant_discount")),
        choices=["constant_discount", "ramsey_discount"],
        help="Discount convention.",
    )
    parser.add_argument(
        "--discount",
        default=discount_cfg.get("rate", 0.03),
        help="Flat discount rate (e.g. 0.03 or a named rate: 2.5%%, 3%%, 5%%).",
    )
    parser.add_argument("--rho", type=float, default=discount_cfg.get("rho"))
    parser.add_argument("--eta", type=float, default=discount_cfg.get("eta"))
    parser.add_argument(
        "--domestic",
        action=argparse.BooleanOptionalAction,
        default=bool(cfg.get("domestic", False)),
        help="Restrict damages to the domestic region.",
    )
    parser.add_argument(
        "--marginal-damages",
        default=md_cfg.get("output") if md_cfg.get("write") else None,
        help="Write undiscounted marginal damages to this CSV.",
    )
    parser.add_argument(
        "--regional",
        action=argparse.BooleanOptionalAction,
        default=bool(md_cfg.get("regional", True)),
        help="Write marginal damages per region instead of the global sum.",
    )
    return parser


def _discount_from_args(args: argparse.Namespace) -> DiscountSpec:
    if args.method == "ramsey_discount":
        return DiscountSpec.from_config({"method": args.method, "rho": args.rho, "eta": args.eta})
    return DiscountSpec.parse(args.discount)


def main(argv: Sequence[str] | None = None) -> int:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(name)s: %(message)s")

    root_cfg = load_config(get_config_path(ROOT / "config.yaml"))
    cfg = root_cfg.get("scc", {}) or {}
    args = _build_parser(cfg).parse_args(argv)

    try:
        discount = _discount_from_args(args)
        result = compute_scc(
            args.family, args.scenario, args.year, discount, domestic=args.domestic
        )
        print(
            f"SCC {result.family.value} / {result.scenario} / {result.year} "
            f"({discount.label}{', domestic' if result.domestic else ''}): "
            f"{result.value:.2f} {result.currency_year}$/tCO2"
        )
        if args.marginal_damages:
            frame = get_marginal_damages(
                args.family, args.scenario, args.year, regional=args.regional
            )
            path = resolve_output_path(root_cfg, Path(args.marginal_damages))
            path.parent.mkdir(parents=True, exist_ok=True)
            frame.to_csv(path)
            LOGGER.info("Wrote marginal damages to %s", path)
    except SCCError as exc:
        LOGGER.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
