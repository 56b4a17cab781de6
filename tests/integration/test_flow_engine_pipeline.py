"""
Pipeline completo: ticks simulados -> FlowEngine -> snapshots publicados.
Se comprueban las invariantes de la salida, no valores exactos.
"""
import itertools

import orjson
import pytest

from flow_engine.config import EngineConfig
from flow_engine.core.types import ChartMode, SignalStatus, SignalType
from flow_engine.engine import FlowEngine
from flow_engine.market.mock_feed import generate_mock_candles, iter_mock_ticks
from flow_engine.market.resampler import aggregate

T0 = 1_699_999_200


def _assert_signal_invariants(snap):
    assert sum(1 for s in snap.signals if s.is_open) <= 1
    for s in snap.signals:
        hist = s.sl_history + [s.stop_loss]
        if s.type is SignalType.LONG:
            assert all(b >= a for a, b in zip(hist, hist[1:]))
        else:
            assert all(b <= a for a, b in zip(hist, hist[1:]))
        if s.status is SignalStatus.OPEN:
            assert s.exit_price is None and s.pnl is None
        else:
            assert s.exit_index is not None and s.exit_index > s.index
            expected = s.exit_price - s.entry_price if s.type is SignalType.LONG else s.entry_price - s.exit_price
            assert s.pnl == pytest.approx(expected)
    # las entradas no se solapan en el tiempo
    for a, b in zip(snap.signals, snap.signals[1:]):
        assert a.exit_index is not None and b.index > a.exit_index


def _assert_zone_invariants(snap):
    for z in snap.zones:
        assert z.end_index is None or z.end_index >= z.start_index
    assert all(z.is_active for z in snap.active_zones)


@pytest.mark.asyncio
async def test_tick_replay_publishes_consistent_snapshots(publisher):
    eng = FlowEngine(EngineConfig(timeframe="1s"), publisher=publisher)
    ticks = list(itertools.islice(iter_mock_ticks(T0, seed=3), 400))
    for t in ticks:
        await eng.on_tick_dict({"timestamp": int(t.ts * 1000), "lastPrice": t.price, "lastQty": t.qty})

    assert len(publisher.snapshots) == len(ticks)
    snap = eng.snapshot
    assert len(snap.candles) == 100
    assert sum(c.volume for c in snap.candles) == pytest.approx(sum(t.qty for t in ticks))
    assert snap.candles == aggregate(eng.state.base_candles(), 1)
    _assert_signal_invariants(snap)
    _assert_zone_invariants(snap)


@pytest.mark.parametrize("seed", [1, 7, 42])
def test_mock_history_signal_invariants(seed):
    eng = FlowEngine()
    snap = eng.load_candles(generate_mock_candles(600, 1, end_time=T0 + 600, seed=seed))
    assert len(snap.indicators) == 600
    _assert_signal_invariants(snap)
    _assert_zone_invariants(snap)
    assert all(0.0 <= s.godmode <= 100.0 for s in snap.indicators)


def test_timeframe_views_share_base_history():
    eng = FlowEngine()
    eng.load_candles(generate_mock_candles(900, 1, end_time=T0 + 900, seed=5))
    one_min = eng.set_timeframe("1m").candles
    five_min = eng.set_timeframe("5m").candles
    expected = aggregate(one_min, 300)
    assert len(expected) == len(five_min)
    for got, exp in zip(five_min, expected):
        assert (got.time, got.open, got.high, got.low, got.close) == (exp.time, exp.open, exp.high, exp.low, exp.close)
        assert got.volume == pytest.approx(exp.volume)
    assert eng.set_timeframe("1s").candles == eng.state.base_candles()


def test_renko_roundtrip_through_json():
    eng = FlowEngine(EngineConfig(chart_mode=ChartMode.RENKO, renko_box_size=5))
    snap = eng.load_candles(generate_mock_candles(400, 1, end_time=T0 + 400, seed=9))
    d = orjson.loads(snap.to_json())
    assert d["chart_mode"] == "RENKO"
    assert len(d["indicators"]) == len(d["renko_bricks"])
    for z in d["zones"]:
        assert z["start_index"] < len(d["renko_bricks"])
    _assert_signal_invariants(snap)
