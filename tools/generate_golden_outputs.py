#!/usr/bin/env python3
"""
Genera outputs esperados (golden snapshots) reproduciendo una sesión de ticks
a través del FlowEngine.

Uso:
    python tools/generate_golden_outputs.py tests/fixtures/synthetic_session.jsonl tests/fixtures/golden_outputs.jsonl
"""
import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List

import orjson

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from flow_engine.config import EngineConfig
from flow_engine.engine import FlowEngine


class GoldenPublisher:
    """Publisher que captura las señales publicadas y el último snapshot."""

    def __init__(self) -> None:
        self.signals: List[List[Dict[str, Any]]] = []
        self.last_snapshot: Dict[str, Any] = {}

    async def publish_snapshot(self, payload: Dict[str, Any]) -> None:
        self.last_snapshot = payload

    async def publish_signals(self, payload: List[Dict[str, Any]]) -> None:
        self.signals.append(payload)


async def replay(fixtures_path: Path, cfg: EngineConfig = EngineConfig()) -> GoldenPublisher:
    publisher = GoldenPublisher()
    engine = FlowEngine(cfg, publisher=publisher)
    with open(fixtures_path, "rb") as f:
        for line in f:
            if not line.strip():
                continue
            entry = orjson.loads(line)
            if entry.get("subject", "").startswith("md.ticks"):
                await engine.on_tick_dict(entry.get("payload", {}))
    return publisher


async def process_fixtures(fixtures_path: Path, output_path: Path, timeframe: str) -> None:
    publisher = await replay(fixtures_path, EngineConfig(timeframe=timeframe))
    snap = publisher.last_snapshot
    golden = {
        "timeframe": timeframe,
        "candles": len(snap.get("candles", [])),
        "last_indicator": (snap.get("indicators") or [None])[-1],
        "signals": snap.get("signals", []),
        "zones": snap.get("zones", []),
        "poc": snap.get("profile", {}).get("poc"),
    }
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(orjson.dumps(golden, option=orjson.OPT_INDENT_2))

    print(f"{golden['candles']} velas, {len(golden['signals'])} señales -> {output_path}")


def main():
    parser = argparse.ArgumentParser(description="Genera golden outputs desde una sesión de ticks")
    parser.add_argument("fixtures", type=Path, help="Ruta a la sesión JSONL")
    parser.add_argument("output", type=Path, help="Ruta de salida del golden (JSON)")
    parser.add_argument("--timeframe", default="1s", help="Timeframe de la vista")
    args = parser.parse_args()

    if not args.fixtures.exists():
        print(f"Error: {args.fixtures} no existe")
        return

    asyncio.run(process_fixtures(args.fixtures, args.output, args.timeframe))


if __name__ == "__main__":
    main()
