import asyncio

import pytest

from flow_engine.advisory import AdvisoryResult, build_advisory_context, request_advisory
from flow_engine.core.types import SignalType
from flow_engine.engine import FlowEngine


class StubOracle:
    def __init__(self, response=None, exc=None, delay=0.0):
        self.response = response
        self.exc = exc
        self.delay = delay
        self.contexts = []

    async def analyze(self, context):
        self.contexts.append(context)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc:
            raise self.exc
        return self.response


@pytest.fixture
def loaded_engine(mock_candles):
    eng = FlowEngine()
    eng.load_candles(mock_candles)
    return eng


def test_context_summarises_last_bar(loaded_engine):
    snap = loaded_engine.snapshot
    ctx = build_advisory_context(snap, SignalType.LONG)
    last = snap.indicators[-1]
    assert ctx["price"] == snap.candles[-1].close
    assert ctx["intent"] == "LONG"
    assert ctx["indicators"]["godmode"] == last.godmode
    assert ctx["indicators"]["volume_delta"] == last.delta
    assert ctx["indicators"]["evwma_relationship"] in ("ABOVE", "BELOW")
    expected = (ctx["price"] - last.vwap) / last.vwap * 100
    assert ctx["indicators"]["vwap_distance_pct"] == pytest.approx(expected)


def test_context_requires_data():
    with pytest.raises(ValueError):
        build_advisory_context(FlowEngine().snapshot, SignalType.SHORT)


@pytest.mark.asyncio
async def test_camel_case_response_is_accepted(loaded_engine):
    oracle = StubOracle({
        "confidenceScore": 72, "sentiment": "BULLISH",
        "reasoning": "Bounce at support", "riskFactors": ["Low volume"],
    })
    res = await request_advisory(oracle, loaded_engine.snapshot, SignalType.LONG)
    assert res.sentiment == "BULLISH"
    assert res.confidence_score == 72
    assert res.risk_factors == ["Low volume"]
    assert oracle.contexts[0]["intent"] == "LONG"


@pytest.mark.asyncio
async def test_oracle_failure_falls_back_to_neutral(loaded_engine):
    before = loaded_engine.snapshot
    res = await request_advisory(StubOracle(exc=RuntimeError("down")), before, SignalType.SHORT)
    assert res.sentiment == "NEUTRAL"
    assert res.confidence_score == 0
    assert loaded_engine.snapshot is before


@pytest.mark.asyncio
async def test_timeout_falls_back_to_neutral(loaded_engine):
    oracle = StubOracle(AdvisoryResult.neutral(), delay=0.5)
    res = await request_advisory(oracle, loaded_engine.snapshot, SignalType.LONG, timeout=0.01)
    assert res.sentiment == "NEUTRAL"
    assert res.risk_factors == ["Timeout"]


@pytest.mark.asyncio
async def test_invalid_response_falls_back_to_neutral(loaded_engine):
    oracle = StubOracle({"confidenceScore": 400, "sentiment": "MOON", "reasoning": "?"})
    res = await request_advisory(oracle, loaded_engine.snapshot, SignalType.LONG)
    assert res.sentiment == "NEUTRAL"


@pytest.mark.asyncio
async def test_empty_snapshot_skips_oracle():
    oracle = StubOracle(AdvisoryResult.neutral())
    res = await request_advisory(oracle, FlowEngine().snapshot, SignalType.LONG)
    assert res.sentiment == "NEUTRAL"
    assert oracle.contexts == []
