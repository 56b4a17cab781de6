from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ...core.types import SeriesBar
from ...core.utils import clamp, ema_series, highest, lowest, safe_div
from ..classic.rsi import rsi_values

NEUTRAL = 50.0


@dataclass(slots=True)
class GodModeConfig:
    """
    Oscilador compuesto (rango 0..100) = media de cuatro sub-osciladores:
      - TCI  : EMA(n2) de la desviación normalizada del precio vs EMA(n1)
      - MFI  : money flow index (mfi_period)
      - Willy: %R de Williams re-escalado a 0..100 (n2)
      - RSI  : RSI de Wilder (rsi_period)
    Cada término vale 50 mientras no tenga historia suficiente.
    """
    n1: int = 9
    n2: int = 26
    mfi_period: int = 13
    rsi_period: int = 13
    tci_scale: float = 0.025


def _hlc3(b: SeriesBar) -> float:
    return (b.high + b.low + b.close) / 3.0


def tci_values(src: Sequence[float], n1: int, n2: int, scale: float = 0.025) -> List[float]:
    esa = ema_series(src, n1)
    dev = ema_series([abs(x - e) for x, e in zip(src, esa)], n1)
    ci = [safe_div(x - e, scale * d, default=0.0) for x, e, d in zip(src, esa, dev)]
    tci = ema_series(ci, n2)
    return [
        clamp(t + 50.0) if (i >= n2 - 1 and t is not None) else NEUTRAL
        for i, t in enumerate(tci)
    ]


def mfi_values(series: Sequence[SeriesBar], period: int) -> List[float]:
    tp = [_hlc3(b) for b in series]
    pos = [0.0] * len(series)
    neg = [0.0] * len(series)
    for i in range(1, len(series)):
        flow = tp[i] * series[i].volume
        if tp[i] > tp[i - 1]:
            pos[i] = flow
        elif tp[i] < tp[i - 1]:
            neg[i] = flow

    out: List[float] = []
    for i in range(len(series)):
        if i < period:
            out.append(NEUTRAL)
            continue
        p = sum(pos[i - period + 1: i + 1])
        n = sum(neg[i - period + 1: i + 1])
        if n == 0.0:
            out.append(100.0 if p > 0.0 else NEUTRAL)
            continue
        out.append(clamp(100.0 - 100.0 / (1.0 + p / n)))
    return out


def willy_values(series: Sequence[SeriesBar], period: int) -> List[float]:
    highs = [b.high for b in series]
    lows = [b.low for b in series]
    out: List[float] = []
    for i, b in enumerate(series):
        if i < period - 1:
            out.append(NEUTRAL)
            continue
        hh = highest(highs, i, period)
        ll = lowest(lows, i, period)
        rng = hh - ll
        out.append(clamp(100.0 * (b.close - ll) / rng) if rng > 0 else NEUTRAL)
    return out


class GodMode:

    def __init__(self, cfg: GodModeConfig = GodModeConfig()):
        if cfg.n1 < 1 or cfg.n2 < 1 or cfg.mfi_period < 1 or cfg.rsi_period < 1:
            raise ValueError("GodMode: todos los periodos deben ser >= 1")
        self.cfg = cfg

    def components(self, series: Sequence[SeriesBar]) -> Dict[str, List[float]]:
        cfg = self.cfg
        rsi_raw: List[Optional[float]] = rsi_values([b.close for b in series], cfg.rsi_period)
        return {
            "tci": tci_values([_hlc3(b) for b in series], cfg.n1, cfg.n2, cfg.tci_scale),
            "mfi": mfi_values(series, cfg.mfi_period),
            "willy": willy_values(series, cfg.n2),
            "rsi": [clamp(r) if r is not None else NEUTRAL for r in rsi_raw],
        }

    def compute(self, series: Sequence[SeriesBar]) -> List[Optional[float]]:
        parts = self.components(series)
        return [
            (t + m + w + r) / 4.0
            for t, m, w, r in zip(parts["tci"], parts["mfi"], parts["willy"], parts["rsi"])
        ]
