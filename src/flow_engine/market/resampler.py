"""
Resampler de ticks a velas OHLCV.

ALGORITMO (por tick):
  bucket = floor(ts / grain) * grain
  1. Buffer vacío            -> nueva vela O=H=L=C=price, V=qty
  2. bucket == última.time   -> actualiza en sitio (H/L/C/V)
  3. bucket >  última.time   -> añade vela nueva sembrada con el tick
  4. bucket <  última.time   -> tick tardío: se descarta (no se reescribe historia)

Dos buffers independientes (MarketState):
  - base: grain más fino (1s). Fuente de verdad.
  - view: timeframe seleccionado. Al cambiar de timeframe se re-deriva
    desde base con aggregate(); nunca desde velas ya re-muestreadas.
"""

from __future__ import annotations

import math
from collections import deque
from typing import Deque, Iterable, List, MutableSequence, Optional, Sequence

from ..core.types import Candle, Tick
from ..logs.logger import get_logger

logger = get_logger(__name__)

DEFAULT_BUFFER_CAP = 5000


def bucket_time(ts: float, grain: int) -> int:
    return int(math.floor(ts / grain) * grain)


def resample(tick: Tick, candles: MutableSequence[Candle], grain: int) -> MutableSequence[Candle]:
    """
    Mezcla un tick en 'candles' (in place) y devuelve la misma secuencia.
    """
    if grain <= 0:
        raise ValueError("grain debe ser > 0")
    t = bucket_time(tick.ts, grain)

    if not candles:
        candles.append(Candle(t, tick.price, tick.price, tick.price, tick.price, tick.qty))
        return candles

    last = candles[-1]
    if t == last.time:
        last.high = max(last.high, tick.price)
        last.low = min(last.low, tick.price)
        last.close = tick.price
        last.volume += tick.qty
    elif t > last.time:
        candles.append(Candle(t, tick.price, tick.price, tick.price, tick.price, tick.qty))
    else:
        logger.debug("Tick tardío descartado: ts=%s bucket=%s < última=%s", tick.ts, t, last.time)
    return candles


def _merge_into(dst: Candle, src: Candle) -> None:
    dst.high = max(dst.high, src.high)
    dst.low = min(dst.low, src.low)
    dst.close = src.close
    dst.volume += src.volume


def aggregate(candles: Iterable[Candle], grain: int) -> List[Candle]:
    """
    Re-agrupa velas (ordenadas) a un grain mayor. Devuelve velas NUEVAS;
    la entrada no se toca. Asociativo si los grains se dividen entre sí.
    """
    if grain <= 0:
        raise ValueError("grain debe ser > 0")
    out: List[Candle] = []
    for c in candles:
        t = bucket_time(c.time, grain)
        if out and out[-1].time == t:
            _merge_into(out[-1], c)
        elif not out or t > out[-1].time:
            out.append(Candle(t, c.open, c.high, c.low, c.close, c.volume))
        # t < último: vela fuera de orden, se ignora igual que un tick tardío
    return out


class CandleBuffer:
    """
    Ring buffer de velas con capacidad fija (se descartan las más antiguas).
    """

    def __init__(self, grain: int, cap: int = DEFAULT_BUFFER_CAP) -> None:
        if grain <= 0:
            raise ValueError("grain debe ser > 0")
        if cap <= 0:
            raise ValueError("cap debe ser > 0")
        self.grain = int(grain)
        self.cap = int(cap)
        self._candles: Deque[Candle] = deque(maxlen=self.cap)

    def __len__(self) -> int:
        return len(self._candles)

    def __iter__(self):
        return iter(self._candles)

    def __getitem__(self, i: int) -> Candle:
        return self._candles[i]

    @property
    def last(self) -> Optional[Candle]:
        return self._candles[-1] if self._candles else None

    def on_tick(self, tick: Tick) -> None:
        resample(tick, self._candles, self.grain)

    def replace(self, candles: Sequence[Candle]) -> None:
        """Sustituye el contenido (se conserva solo la cola más reciente)."""
        self._candles = deque(candles, maxlen=self.cap)

    def clear(self) -> None:
        self._candles.clear()

    def to_list(self) -> List[Candle]:
        """Copia profunda: lo que se entrega a los lectores no se muta después."""
        return [c.copy() for c in self._candles]
