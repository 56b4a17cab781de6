from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ...core.types import SeriesBar


@dataclass(slots=True)
class RSIConfig:
    period: int = 13


def rsi_values(closes: Sequence[float], period: int) -> List[Optional[float]]:
    """
    RSI de Wilder sobre la serie completa.
    Semilla = media simple de las primeras 'period' variaciones, luego
    suavizado de Wilder. None mientras no haya 'period' variaciones.
    """
    if period < 1:
        raise ValueError("RSI period must be >= 1")
    out: List[Optional[float]] = [None] * len(closes)
    avg_gain: Optional[float] = None
    avg_loss: Optional[float] = None
    sum_gain = sum_loss = 0.0

    for i in range(1, len(closes)):
        change = closes[i] - closes[i - 1]
        gain = change if change > 0 else 0.0
        loss = -change if change < 0 else 0.0

        if avg_gain is None:
            sum_gain += gain
            sum_loss += loss
            if i < period:
                continue
            avg_gain = sum_gain / period
            avg_loss = sum_loss / period
        else:
            avg_gain = (avg_gain * (period - 1) + gain) / period
            avg_loss = (avg_loss * (period - 1) + loss) / period

        if avg_loss == 0.0:
            # Sin pérdidas: RSI 100 si hubo alguna ganancia; si no, 50 neutro
            out[i] = 100.0 if avg_gain > 0.0 else 50.0
            continue
        rs = avg_gain / avg_loss
        out[i] = 100.0 - 100.0 / (1.0 + rs)
    return out


class RSI:
    """RSI de Wilder (RMA). Devuelve float o None durante warm-up."""

    def __init__(self, cfg: RSIConfig = RSIConfig()):
        self.cfg = cfg

    @property
    def period(self) -> int:
        return self.cfg.period

    def compute(self, series: Sequence[SeriesBar]) -> List[Optional[float]]:
        return rsi_values([b.close for b in series], self.cfg.period)
