from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ...core.types import SeriesBar
from ...core.utils import sma_series


@dataclass(slots=True)
class ATRConfig:
    period: int = 14


def true_range(series: Sequence[SeriesBar]) -> List[float]:
    """TR_i = max(H-L, |H-C_prev|, |L-C_prev|); la primera barra usa H-L."""
    out: List[float] = []
    prev_close: Optional[float] = None
    for b in series:
        hl = b.high - b.low
        if prev_close is None:
            out.append(hl)
        else:
            out.append(max(hl, abs(b.high - prev_close), abs(b.low - prev_close)))
        prev_close = b.close
    return out


class ATR:
    """ATR = media simple del true range sobre 'period' barras (None antes)."""

    def __init__(self, cfg: ATRConfig = ATRConfig()):
        if cfg.period < 1:
            raise ValueError("ATR period must be >= 1")
        self.cfg = cfg

    def compute(self, series: Sequence[SeriesBar]) -> List[Optional[float]]:
        return sma_series(true_range(series), self.cfg.period)
