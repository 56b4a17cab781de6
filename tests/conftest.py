# tests/conftest.py
"""
Conftest del flow-engine: helpers de velas sintéticas y publisher stub.
Los logs de los tests van a un directorio temporal.
"""
import os
import tempfile

os.environ.setdefault("FLOW_ENGINE_LOG_DIR", tempfile.mkdtemp(prefix="flow_engine_logs_"))

from typing import Any, Dict, List, Optional, Sequence

import pytest

from flow_engine.core.types import Candle, IndicatorSnapshot
from flow_engine.market.mock_feed import generate_mock_candles

T0 = 1_699_999_200  # epoch segundos, alineado a la hora


class StubPublisher:
    def __init__(self) -> None:
        self.snapshots: List[Dict[str, Any]] = []
        self.signals: List[List[Dict[str, Any]]] = []

    async def publish_snapshot(self, payload: Dict[str, Any]) -> None:
        self.snapshots.append(payload)

    async def publish_signals(self, payload: List[Dict[str, Any]]) -> None:
        self.signals.append(payload)


def _make_candles(
    closes: Sequence[float],
    *,
    t0: int = T0,
    step: int = 1,
    spread: float = 0.5,
    volume: float = 10.0,
) -> List[Candle]:
    """Velas con open = close anterior y mechas simétricas de 'spread'."""
    out: List[Candle] = []
    prev = closes[0]
    for i, c in enumerate(closes):
        o = prev
        out.append(Candle(t0 + i * step, o, max(o, c) + spread, min(o, c) - spread, c, volume))
        prev = c
    return out


def _make_snapshots(n: int, **per_bar) -> List[IndicatorSnapshot]:
    """
    IndicatorSnapshots a mano. Cada kwarg es un valor fijo o un callable(i).
    """
    out = []
    for i in range(n):
        kw = {k: (v(i) if callable(v) else v) for k, v in per_bar.items()}
        out.append(IndicatorSnapshot(**kw))
    return out


@pytest.fixture
def make_candles():
    return _make_candles


@pytest.fixture
def make_snapshots():
    return _make_snapshots


@pytest.fixture
def mock_candles():
    """300 velas de 1s, deterministas."""
    return generate_mock_candles(300, 1, end_time=T0 + 300, seed=42)


@pytest.fixture
def publisher():
    return StubPublisher()
