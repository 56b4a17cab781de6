from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ...core.types import SeriesBar
from ...core.utils import is_finite, safe_div


@dataclass(slots=True)
class VWAPCumConfig:
    """
    VWAP acumulado anclado al inicio de la serie (nunca se reinicia).
    - price: 'close' (por defecto) o 'typical' = (H+L+C)/3
    """
    price: str = "close"


class VWAPCum:
    def __init__(self, cfg: VWAPCumConfig = VWAPCumConfig()):
        self.cfg = cfg

    def _px(self, b: SeriesBar) -> float:
        if self.cfg.price == "typical":
            return (b.high + b.low + b.close) / 3.0
        return b.close

    def compute(self, series: Sequence[SeriesBar]) -> List[Optional[float]]:
        out: List[Optional[float]] = []
        pv_sum = 0.0
        v_sum = 0.0
        for b in series:
            vol = b.volume if is_finite(b.volume) else 0.0
            pv_sum += self._px(b) * vol
            v_sum += vol
            # sin volumen acumulado todavía -> ausencia, no 0
            out.append(safe_div(pv_sum, v_sum, default=None) if v_sum > 0.0 else None)
        return out
