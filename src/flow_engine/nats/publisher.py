# src/flow_engine/nats/publisher.py
from __future__ import annotations
from typing import Any, Dict, List
import orjson
from nats.aio.client import Client as NATS


class SnapshotPublisher:
    """
    Publica la salida del motor en NATS. No conoce la lógica de cálculo:
    recibe dicts ya serializables.

      <prefix>.snapshot  -> snapshot completo
      <prefix>.signals   -> lista de señales (solo cuando cambia)
    """

    def __init__(self, nc: NATS, out_prefix: str = "flow", symbol: str = "-"):
        self.nc = nc
        self.out_prefix = out_prefix.rstrip(".")
        self.symbol = symbol

    @property
    def snapshot_subject(self) -> str:
        return f"{self.out_prefix}.snapshot"

    @property
    def signals_subject(self) -> str:
        return f"{self.out_prefix}.signals"

    async def publish_snapshot(self, payload: Dict[str, Any]) -> None:
        await self.nc.publish(self.snapshot_subject, orjson.dumps({**payload, "symbol": self.symbol}))

    async def publish_signals(self, payload: List[Dict[str, Any]]) -> None:
        await self.nc.publish(self.signals_subject, orjson.dumps({"symbol": self.symbol, "signals": payload}))
