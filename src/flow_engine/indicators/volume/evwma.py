from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ...core.types import SeriesBar
from ...core.utils import RingBuffer


@dataclass(slots=True)
class EVWMAConfig:
    length: int = 14


class EVWMA:
    """
    Media móvil exponencial ponderada por volumen (eVWMA).

        float_i = Σ vol[i-length+1 .. i]          (|| 1 si es 0)
        evwma_i = evwma_{i-1} * (float_i - vol_i) / float_i + vol_i * close_i / float_i

    La barra 0 se siembra con su close. El decaimiento lo marca el ratio
    volumen actual / volumen de la ventana, no un periodo fijo.
    """
    def __init__(self, cfg: EVWMAConfig = EVWMAConfig()):
        if cfg.length < 1:
            raise ValueError("eVWMA length must be >= 1")
        self.cfg = cfg

    def compute(self, series: Sequence[SeriesBar]) -> List[Optional[float]]:
        out: List[Optional[float]] = []
        window = RingBuffer(self.cfg.length)
        prev: Optional[float] = None
        for b in series:
            window.push(b.volume)
            if prev is None:
                prev = b.close
            else:
                total = window.sum() or 1.0
                prev = prev * (total - b.volume) / total + b.volume * b.close / total
            out.append(prev)
        return out
