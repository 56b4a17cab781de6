from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ...core.types import SeriesBar
from ...core.utils import ema_series


@dataclass(slots=True)
class EMAConfig:
    period: int = 9
    source: str = "close"  # 'close' | 'hlc3'


class EMA:
    """
    EMA clásica: semilla = primer valor definido,
    ema = (x - ema) * 2/(N+1) + ema.
    """
    def __init__(self, cfg: EMAConfig = EMAConfig()):
        if cfg.period < 1:
            raise ValueError("EMA period must be >= 1")
        self.cfg = cfg

    def _src(self, b: SeriesBar) -> float:
        if self.cfg.source == "hlc3":
            return (b.high + b.low + b.close) / 3.0
        return b.close

    def compute(self, series: Sequence[SeriesBar]) -> List[Optional[float]]:
        return ema_series([self._src(b) for b in series], self.cfg.period)
