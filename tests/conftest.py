"""Test setup: import from ``src`` without installation and isolate configuration."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

for path in (ROOT, SRC):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    """Keep a developer's SCC_CONFIG_PATH from leaking into tests."""

    monkeypatch.delenv("SCC_CONFIG_PATH", raising=False)
