"""
Overlays de subasta sobre la serie completa:
  - FVG (fair value gaps) de 3 barras
  - Estructura de mercado (swings HH / LL)
  - Trampas de absorción (pico de volumen + mecha larga que barre el extremo previo)
  - Pivote dinámico (punto medio del rango de las 'p' barras anteriores)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ...core.types import FairValueGap, SeriesBar, StructurePoint, TrapSignal
from ...core.utils import safe_div, sma_series


@dataclass(slots=True)
class AuctionConfig:
    pivot_period: int = 20
    trap_threshold: float = 1.5   # vol > SMA(vol, avg_period) * trap_threshold
    wick_body_ratio: float = 1.5
    avg_period: int = 50


@dataclass(slots=True)
class AuctionOverlays:
    fvgs: List[FairValueGap] = field(default_factory=list)
    structure: List[StructurePoint] = field(default_factory=list)
    traps: List[TrapSignal] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "fvgs": [
                {"top": g.top, "bottom": g.bottom, "start_index": g.start_index, "is_bullish": g.is_bullish}
                for g in self.fvgs
            ],
            "structure": [{"index": p.index, "price": p.price, "type": p.type} for p in self.structure],
            "traps": [
                {"index": t.index, "price": t.price, "type": t.type, "volume_intensity": t.volume_intensity}
                for t in self.traps
            ],
        }


def dynamic_pivot(series: Sequence[SeriesBar], period: int) -> List[Optional[float]]:
    out: List[Optional[float]] = [None] * len(series)
    if period < 1:
        return out
    for i in range(period, len(series)):
        win = series[i - period: i]
        out[i] = (max(b.high for b in win) + min(b.low for b in win)) / 2.0
    return out


def detect_auction(series: Sequence[SeriesBar], cfg: AuctionConfig = AuctionConfig()) -> AuctionOverlays:
    out = AuctionOverlays()
    n = len(series)
    avg_v = sma_series([b.volume for b in series], cfg.avg_period)

    for i in range(2, n):
        d, prev, prev2 = series[i], series[i - 1], series[i - 2]

        # Trampas: la subida/bajada no se sostiene con volumen de absorción
        avg = avg_v[i]
        if avg is not None and d.volume > avg * cfg.trap_threshold:
            body = abs(d.close - d.open)
            upper_wick = d.high - max(d.close, d.open)
            lower_wick = min(d.close, d.open) - d.low
            intensity = safe_div(d.volume, avg, default=0.0)
            if upper_wick > body * cfg.wick_body_ratio and d.high > prev.high:
                out.traps.append(TrapSignal(i, d.high, "BULL_TRAP", intensity))
            if lower_wick > body * cfg.wick_body_ratio and d.low < prev.low:
                out.traps.append(TrapSignal(i, d.low, "BEAR_TRAP", intensity))

        # FVG
        if prev2.high < d.low:
            out.fvgs.append(FairValueGap(top=d.low, bottom=prev2.high, start_index=i - 1, is_bullish=True))
        if prev2.low > d.high:
            out.fvgs.append(FairValueGap(top=prev2.low, bottom=d.high, start_index=i - 1, is_bullish=False))

        # Estructura: necesita una barra confirmada a la derecha
        if i + 1 < n:
            nxt = series[i + 1]
            if d.high > prev.high and d.high > prev2.high and d.high > nxt.high:
                out.structure.append(StructurePoint(i, d.high, "HH"))
            if d.low < prev.low and d.low < prev2.low and d.low < nxt.low:
                out.structure.append(StructurePoint(i, d.low, "LL"))

    return out
