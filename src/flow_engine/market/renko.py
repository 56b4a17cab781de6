from __future__ import annotations
from typing import List, Sequence

from ..core.types import Candle, RenkoBrick


def to_renko(candles: Sequence[Candle], box_size: float) -> List[RenkoBrick]:
    """
    Convierte velas en ladrillos Renko de altura fija 'box_size'. Pura, O(n).

    - Referencia inicial: round(close0 / box) * box.
    - Se acumulan high/low/volumen mientras no salte ningún ladrillo.
    - Cuando |close - ref| >= box se emiten floor(|diff| / box) ladrillos en
      la dirección del movimiento. El primero hereda los acumulados; los
      siguientes de la misma ráfaga son planos (solo el cuerpo, volumen 0).
    - Sin umbral de reversión (dos ladrillos): un único paso en ambos sentidos.
    """
    if box_size <= 0:
        raise ValueError("box_size debe ser > 0")
    if not candles:
        return []

    bricks: List[RenkoBrick] = []
    first = candles[0]
    ref = round(first.close / box_size) * box_size
    run_high, run_low, run_vol = first.high, first.low, first.volume
    start_time = first.time

    for c in candles[1:]:
        run_high = max(run_high, c.high)
        run_low = min(run_low, c.low)
        run_vol += c.volume

        diff = c.close - ref
        if abs(diff) < box_size:
            continue

        n = int(abs(diff) // box_size)
        is_up = diff > 0
        for j in range(n):
            b_open = ref
            b_close = ref + box_size if is_up else ref - box_size
            if j == 0:
                hi = max(run_high, b_open, b_close)
                lo = min(run_low, b_open, b_close)
                vol = run_vol
            else:
                hi, lo, vol = max(b_open, b_close), min(b_open, b_close), 0.0
            bricks.append(RenkoBrick(start_time, b_open, hi, lo, b_close, vol, is_up))
            ref = b_close
            run_high = run_low = b_close
            run_vol = 0.0
            start_time = c.time

    return bricks
