from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ...core.types import SeriesBar
from ...core.utils import is_finite

MIN_STEP = 0.01  # ancho mínimo de bucket (rango degenerado)


@dataclass(slots=True)
class VolumeProfileConfig:
    """
    Perfil de volumen (histograma) sobre la serie visible.
    - bins: número de buckets de igual ancho entre min(low) y max(high).
    """
    bins: int = 100


@dataclass(slots=True)
class ProfileBucket:
    price: float       # borde inferior del bucket
    volume: float
    intensity: float   # volume / max(volume), solo para peso visual


@dataclass(slots=True)
class VolumeProfileResult:
    buckets: List[ProfileBucket] = field(default_factory=list)
    poc: Optional[float] = None
    step: float = 0.0

    def to_dict(self) -> dict:
        return {
            "buckets": [[b.price, b.volume, b.intensity] for b in self.buckets],
            "poc": self.poc,
            "step": self.step,
        }


def profile(series: Sequence[SeriesBar], bins: int = 100) -> VolumeProfileResult:
    """
    Cada barra reparte su volumen a partes iguales entre todos los buckets
    que abarca (de su bucket low a su bucket high, inclusivo).
    POC = precio del bucket con más volumen (empate: el más bajo).
    """
    if bins < 1:
        raise ValueError("bins debe ser >= 1")
    bars = [b for b in series if is_finite(b.low) and is_finite(b.high)]
    if not bars:
        return VolumeProfileResult()

    lo = min(b.low for b in bars)
    hi = max(b.high for b in bars)
    step = max(MIN_STEP, (hi - lo) / bins)

    def idx(price: float) -> int:
        return max(0, min(bins - 1, int((price - lo) // step)))

    vols = [0.0] * bins
    for b in bars:
        vol = b.volume if is_finite(b.volume) else 0.0
        if vol <= 0.0:
            continue
        i0, i1 = idx(b.low), idx(b.high)
        share = vol / (i1 - i0 + 1)
        for k in range(i0, i1 + 1):
            vols[k] += share

    max_v = max(vols) or 1.0
    buckets = [
        ProfileBucket(price=lo + k * step, volume=v, intensity=v / max_v)
        for k, v in enumerate(vols)
    ]
    poc_k = max(range(bins), key=lambda k: (vols[k], -k))
    return VolumeProfileResult(buckets=buckets, poc=buckets[poc_k].price, step=step)


class VolumeProfile:
    def __init__(self, cfg: VolumeProfileConfig = VolumeProfileConfig()):
        self.cfg = cfg

    def compute(self, series: Sequence[SeriesBar]) -> VolumeProfileResult:
        return profile(series, self.cfg.bins)
