from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING, Dict

import pandas as pd

if TYPE_CHECKING:  # pragma: no cover
    from .orchestrator import MonteCarloBatch


def _safe_key(name: str) -> str:
    safe = re.sub(r"[^0-9a-zA-Z]+", "_", name.strip().lower())
    return safe.strip("_") or "scenario"


def rate_label(rate: float) -> str:
    """File-name friendly label for a discount rate, e.g. ``0.025 -> 2.5pct``."""

    return f"{rate * 100:g}pct"


def write_rate_table(frame: pd.DataFrame, path: Path, *, unit: str | None = None) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as fh:
        if unit:
            fh.write(f"# unit: {unit}\n")
        frame.to_csv(fh, index=False)
    return path


def write_batch(batch: MonteCarloBatch, destination: Path) -> Dict[str, Path]:
    """Write one CSV per pulse year and discount rate, the summary and the samples.

    Files land in ``<destination>/<family>/<scenario label>/``, where the label is the
    name the family itself uses for the scenario (``MiniCAM`` for PAGE,
    ``MiniCAMbase`` for DICE). Rate tables are keyed ``"<year>_<rate label>"``.
    """

    dest_dir = Path(destination) / batch.family.value / _safe_key(batch.scenario_label)
    unit = f"{batch.currency_year}$/tCO2"
    written: Dict[str, Path] = {}

    for (year, rate), frame in batch.results.items():
        key = f"{year}_{rate_label(rate)}"
        name = f"scc_{key}"
        if batch.domestic:
            name += "_domestic"
        written[key] = write_rate_table(frame, dest_dir / f"{name}.csv", unit=unit)

    summary = batch.summary.reset_index()
    summary.insert(2, "dropped", [batch.dropped[cell] for cell in batch.cells])
    written["summary"] = write_rate_table(summary, dest_dir / "summary.csv", unit=unit)
    written["samples"] = write_rate_table(batch.samples.reset_index(), dest_dir / "samples.csv")
    return written


__all__ = ["rate_label", "write_rate_table", "write_batch"]
