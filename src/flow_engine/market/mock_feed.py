"""
Fuente simulada de mercado (paseo aleatorio con semilla).

Se usa como fuente por defecto cuando no hay feed real, y en tests/tools.
Los picos de volumen ocasionales alimentan los niveles "dot".
"""

from __future__ import annotations

import random
import time
from typing import Iterator, List, Optional

from ..core.types import Candle, Tick


def generate_mock_candles(
    count: int,
    interval: int = 1,
    *,
    start_price: float = 50_000.0,
    end_time: Optional[int] = None,
    seed: Optional[int] = None,
) -> List[Candle]:
    """
    Genera 'count' velas consecutivas de 'interval' segundos que terminan
    en end_time (por defecto, ahora).
    """
    rnd = random.Random(seed)
    if end_time is None:
        end_time = int(time.time())
    t = (end_time // interval) * interval - count * interval
    price = float(start_price)
    out: List[Candle] = []
    for _ in range(count):
        change = (rnd.random() - 0.5) * 20
        o = price
        c = price + change
        h = max(o, c) + rnd.random() * 8
        l = min(o, c) - rnd.random() * 8
        v = rnd.random() * 200 + (1200 if rnd.random() > 0.94 else 0)
        out.append(Candle(t, o, h, l, c, v))
        price = c
        t += interval
    return out


def iter_mock_ticks(
    start_ts: float,
    *,
    start_price: float = 50_000.0,
    ticks_per_second: int = 4,
    seed: Optional[int] = None,
) -> Iterator[Tick]:
    """Ticks infinitos (paseo aleatorio) a 'ticks_per_second' por segundo."""
    rnd = random.Random(seed)
    step_s = 1.0 / max(1, ticks_per_second)
    ts = float(start_ts)
    price = float(start_price)
    while True:
        price += (rnd.random() - 0.5) * 4
        qty = rnd.random() * 25 + (300 if rnd.random() > 0.97 else 0)
        yield Tick(ts=ts, price=round(price, 2), qty=round(qty, 4))
        ts += step_s
