"""
Estado de mercado en memoria para UN instrumento.

- base: velas al grain más fino (1s por defecto). Fuente de verdad.
- view: velas al timeframe seleccionado. Derivada: view = aggregate(base, tf).
Cada tick actualiza ambos buffers. Un solo escritor (el loop del motor);
los lectores reciben copias.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from ..core.types import Candle, Tick, TF, timeframe_to_seconds
from ..logs.logger import get_logger
from .resampler import CandleBuffer, aggregate, DEFAULT_BUFFER_CAP

logger = get_logger(__name__)


class MarketState:

    def __init__(self, timeframe: TF = "1s", base_grain: int = 1, cap: int = DEFAULT_BUFFER_CAP) -> None:
        self.base = CandleBuffer(base_grain, cap)
        self.view = CandleBuffer(timeframe_to_seconds(timeframe), cap)
        self.timeframe = timeframe
        self.last_price: Optional[float] = None
        self.total_ticks = 0
        logger.info("MarketState inicializado (base=%ds, view=%s, cap=%d)", base_grain, timeframe, cap)

    def on_tick(self, tick: Tick) -> None:
        self.base.on_tick(tick)
        self.view.on_tick(tick)
        self.last_price = tick.price
        self.total_ticks += 1

    def set_timeframe(self, timeframe: TF) -> None:
        """Re-deriva la vista desde base (no desde la vista anterior)."""
        grain = timeframe_to_seconds(timeframe)
        self.view = CandleBuffer(grain, self.view.cap)
        self.view.replace(aggregate(self.base, grain))
        self.timeframe = timeframe
        logger.info("Timeframe -> %s (%d velas en vista)", timeframe, len(self.view))

    def load(self, candles: Sequence[Candle]) -> None:
        """Sustituye el histórico (import / backfill) y re-deriva la vista."""
        self.base.replace([c.copy() for c in candles])
        self.view.replace(aggregate(self.base, self.view.grain))
        self.last_price = candles[-1].close if candles else None

    def prepend(self, older: Sequence[Candle]) -> int:
        """
        Añade histórico anterior a la primera vela base. Las velas que no
        sean estrictamente anteriores se ignoran. Solo entra lo que cabe en
        el hueco libre del buffer (las más recientes de 'older'); con el
        buffer lleno no entra nada. Devuelve cuántas entraron.
        """
        first = self.base[0].time if len(self.base) else None
        keep = [c.copy() for c in sorted(older, key=lambda c: c.time) if first is None or c.time < first]
        room = self.base.cap - len(self.base)
        keep = keep[max(0, len(keep) - room):] if room > 0 else []
        if not keep:
            return 0
        merged: List[Candle] = keep + list(self.base)
        self.base.replace(merged)
        self.view.replace(aggregate(self.base, self.view.grain))
        return len(keep)

    def reset(self) -> None:
        self.base.clear()
        self.view.clear()
        self.last_price = None
        self.total_ticks = 0

    def candles(self) -> List[Candle]:
        return self.view.to_list()

    def base_candles(self) -> List[Candle]:
        return self.base.to_list()

    def stats(self) -> dict:
        return {
            "timeframe": self.timeframe,
            "last_price": self.last_price,
            "total_ticks": self.total_ticks,
            "base_candles": len(self.base),
            "view_candles": len(self.view),
        }
