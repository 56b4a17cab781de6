from __future__ import annotations
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from ...core.types import SeriesBar
from ...core.utils import sign

MIN_RANGE = 1e-4  # barra sin rango (H == L)


@dataclass(slots=True)
class BarFlow:
    delta: float     # volume * sign(close - open)
    buy_vol: float   # estimación por posición del close en el rango
    sell_vol: float


def bar_delta(b: SeriesBar) -> float:
    """Proxy grueso de compra/venta, no es order-flow real."""
    return b.volume * sign(b.close - b.open)


def buy_sell_split(b: SeriesBar) -> Tuple[float, float]:
    """
    Reparto del volumen según dónde cierra la barra dentro de su rango:
      buy  = vol * (C - L) / rango
      sell = vol * (H - C) / rango
    """
    rng = (b.high - b.low) or MIN_RANGE
    return b.volume * (b.close - b.low) / rng, b.volume * (b.high - b.close) / rng


def bar_flows(series: Sequence[SeriesBar]) -> List[BarFlow]:
    out: List[BarFlow] = []
    for b in series:
        buy, sell = buy_sell_split(b)
        out.append(BarFlow(delta=bar_delta(b), buy_vol=buy, sell_vol=sell))
    return out
