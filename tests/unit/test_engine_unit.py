import orjson
import pytest

from flow_engine.config import EngineConfig
from flow_engine.core.errors import ConfigError, MalformedInputError
from flow_engine.core.types import ChartMode, Tick
from flow_engine.engine import EngineSnapshot, FlowEngine
from flow_engine.market.mock_feed import generate_mock_candles
from flow_engine.pipelines import indicator_pipeline

T0 = 1_699_999_200


def test_empty_engine_snapshot():
    eng = FlowEngine()
    snap = eng.snapshot
    assert isinstance(snap, EngineSnapshot)
    assert snap.candles == [] and snap.signals == []
    assert snap.profile.poc is None
    assert orjson.loads(snap.to_json())["chart_mode"] == "CANDLE"


def test_on_tick_builds_candles():
    eng = FlowEngine()
    for i in range(12):
        eng.on_tick(Tick(T0 + i * 0.25, 100.0 + i, 1.0))
    snap = eng.snapshot
    assert [c.time for c in snap.candles] == [T0, T0 + 1, T0 + 2]
    assert len(snap.indicators) == 3
    assert snap.candles[0].volume == 4.0


@pytest.mark.asyncio
async def test_malformed_tick_leaves_state_untouched(publisher):
    eng = FlowEngine(publisher=publisher)
    await eng.on_tick_dict({"timestamp": T0, "lastPrice": 100.0, "lastQty": 1})
    before = eng.snapshot

    assert await eng.on_tick_dict({"timestamp": T0 + 1, "lastPrice": "nope"}) is None
    assert await eng.on_tick_dict({"lastPrice": 101.0}) is None

    assert eng.snapshot is before
    assert len(eng.state.base_candles()) == 1
    assert len(publisher.snapshots) == 1


@pytest.mark.asyncio
async def test_tick_dict_publishes_snapshot_and_signals_once(publisher):
    eng = FlowEngine(publisher=publisher)
    await eng.on_tick_dict({"ts": T0 * 1000, "price": 100.0, "qty": 2})
    await eng.on_tick_dict({"ts": T0 * 1000 + 500, "price": 101.0, "qty": 1})

    assert len(publisher.snapshots) == 2
    assert publisher.snapshots[-1]["candles"][0]["high"] == 101.0
    # lista de señales vacía: solo se publica cuando cambia
    assert publisher.signals == []


def test_load_candles_validates_whole_batch(mock_candles):
    eng = FlowEngine()
    eng.load_candles(mock_candles)
    assert len(eng.snapshot.candles) == 300

    bad = [c.to_dict() for c in mock_candles[:10]]
    bad[5]["volume"] = -3.0
    with pytest.raises(MalformedInputError):
        eng.load_candles(bad)
    assert len(eng.state.base_candles()) == 300


@pytest.mark.asyncio
async def test_bus_import_rejects_bad_batch(publisher):
    eng = FlowEngine(publisher=publisher)
    assert await eng.on_candles_dict(b"[{\"time\": 1}]") is None
    assert publisher.snapshots == []
    snap = await eng.on_candles_dict(orjson.dumps([{"time": T0, "open": 1, "high": 2, "low": 0.5, "close": 1.5, "volume": 3}]))
    assert len(snap.candles) == 1


def test_set_timeframe_rederives_view(mock_candles):
    eng = FlowEngine()
    eng.load_candles(mock_candles)
    snap = eng.set_timeframe("1m")
    assert eng.cfg.timeframe == "1m"
    assert all(c.time % 60 == 0 for c in snap.candles)
    assert sum(c.volume for c in snap.candles) == pytest.approx(sum(c.volume for c in mock_candles))
    with pytest.raises(ConfigError):
        eng.set_timeframe("3m")
    assert eng.cfg.timeframe == "1m"


def test_renko_mode_runs_pipeline_on_bricks(mock_candles):
    eng = FlowEngine(EngineConfig(renko_box_size=5))
    eng.load_candles(mock_candles)
    snap = eng.set_chart_mode("RENKO")
    assert snap.chart_mode is ChartMode.RENKO
    assert len(snap.renko_bricks) > 0
    assert len(snap.indicators) == len(snap.renko_bricks)
    assert snap.series == snap.renko_bricks
    assert snap.signal_series == "display"


def test_signal_source_candles_in_renko_mode(mock_candles):
    eng = FlowEngine(EngineConfig(chart_mode=ChartMode.RENKO, signal_source="candles"))
    snap = eng.load_candles(mock_candles)
    assert snap.signal_series == "candles"
    for s in snap.signals:
        assert snap.candles[s.index].time == s.time


def test_update_config_applies_and_validates(mock_candles):
    eng = FlowEngine()
    eng.load_candles(mock_candles)
    snap = eng.update_config(evwma_length=30, show_fvg=True, timeframe="5m")
    assert snap.config["evwma_length"] == 30
    assert snap.config["overlays"]["show_fvg"] is True
    assert eng.state.timeframe == "5m"
    with pytest.raises(ConfigError):
        eng.update_config(renko_box_size=-1)
    assert eng.cfg.renko_box_size == 10.0


def test_update_buffer_cap_keeps_recent_history(mock_candles):
    eng = FlowEngine()
    eng.load_candles(mock_candles)
    eng.update_config(buffer_cap=100)
    assert len(eng.state.base_candles()) == 100
    assert eng.state.base_candles()[-1].time == mock_candles[-1].time


def test_recompute_failure_keeps_last_snapshot(monkeypatch, mock_candles):
    eng = FlowEngine()
    good = eng.load_candles(mock_candles)

    def boom(*_a, **_k):
        raise RuntimeError("kaput")

    monkeypatch.setattr(indicator_pipeline, "compute", boom)
    eng.on_tick(Tick(mock_candles[-1].time + 1, 50_000.0, 1.0))
    assert eng.snapshot is good


def test_backfill_prepends_older_history():
    eng = FlowEngine()
    recent = generate_mock_candles(100, 1, end_time=T0 + 200, seed=1)
    older = generate_mock_candles(100, 1, end_time=T0 + 100, seed=2)
    eng.load_candles(recent)
    assert eng.backfill(older) == 100
    assert len(eng.snapshot.candles) == 200
    assert eng.snapshot.candles[0].time == older[0].time
    # ya no hay nada anterior que añadir
    assert eng.backfill(older) == 0


def test_backfill_into_full_buffer_adds_nothing(monkeypatch):
    eng = FlowEngine(EngineConfig(buffer_cap=5))
    eng.load_candles(generate_mock_candles(5, 1, end_time=T0 + 15, seed=3))
    before = [c.time for c in eng.state.base_candles()]
    calls = []
    monkeypatch.setattr(eng, "recompute", lambda: calls.append(1))
    older = generate_mock_candles(3, 1, end_time=T0 + 5, seed=4)
    assert eng.backfill(older) == 0
    assert calls == []
    assert [c.time for c in eng.state.base_candles()] == before


def test_reset_discards_state(mock_candles):
    eng = FlowEngine()
    eng.load_candles(mock_candles)
    eng.reset()
    assert eng.snapshot.candles == []
    assert eng.state.base_candles() == []


def test_snapshot_to_dict_is_json_serializable(mock_candles):
    eng = FlowEngine()
    snap = eng.load_candles(mock_candles)
    d = orjson.loads(snap.to_json())
    assert len(d["candles"]) == len(d["indicators"]) == 300
    assert d["profile"]["heatmap_intensity"] == 1.5
    assert set(d["auction"]) == {"fvgs", "structure", "traps"}
    assert d["stats"]["view_candles"] == 300
