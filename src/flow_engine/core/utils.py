from __future__ import annotations
import math
from typing import Iterable, List, Optional, Sequence


# ========= helpers numéricos =========

def is_finite(x) -> bool:
    try:
        return math.isfinite(float(x))
    except (TypeError, ValueError):
        return False

def safe_div(n: float, d: float, default: float = 0.0) -> float:
    if d == 0:
        return default
    v = n / d
    return v if math.isfinite(v) else default

def clamp(x: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return lo if x < lo else hi if x > hi else x

def sign(x: float) -> int:
    return (x > 0) - (x < 0)

def normalize_epoch_seconds(ts: float) -> float:
    """Acepta epoch en segundos o milisegundos (detectado por magnitud)."""
    ts = float(ts)
    if abs(ts) > 10**11:
        return ts / 1000.0
    return ts


# ========= medias exponenciales =========

def ema_step(prev: float | None, x: float, period: int) -> float:
    """
    Paso de EMA con periodo N (alpha = 2/(N+1)).
    Si prev es None -> devuelve x (semilla).
    """
    if prev is None:
        return x
    alpha = 2.0 / (period + 1.0)
    return (x - prev) * alpha + prev


# ========= series completas =========

def ema_series(values: Sequence[Optional[float]], period: int) -> List[Optional[float]]:
    """EMA sobre toda la serie; la semilla es el primer valor no-None."""
    out: List[Optional[float]] = []
    prev: Optional[float] = None
    for v in values:
        if v is None:
            out.append(prev)
            continue
        prev = ema_step(prev, v, period)
        out.append(prev)
    return out

def sma_series(values: Sequence[float], period: int) -> List[Optional[float]]:
    """Media simple; None hasta acumular 'period' muestras."""
    if period < 1:
        raise ValueError("period debe ser >= 1")
    out: List[Optional[float]] = []
    win = RingBuffer(period)
    for v in values:
        win.push(v)
        out.append(win.sum() / period if len(win) == period else None)
    return out

def stdev_series(values: Sequence[float], period: int) -> List[Optional[float]]:
    """Desviación estándar poblacional; None hasta completar la ventana."""
    if period < 1:
        raise ValueError("period debe ser >= 1")
    out: List[Optional[float]] = []
    win = RingBuffer(period)
    for v in values:
        win.push(v)
        if len(win) < period:
            out.append(None)
            continue
        vals = list(win.values())
        mean = sum(vals) / period
        out.append(math.sqrt(sum((x - mean) ** 2 for x in vals) / period))
    return out

def highest(values: Sequence[float], end: int, period: int) -> float:
    """Máximo de values[end-period+1 .. end] (ventana inclusiva)."""
    return max(values[max(0, end - period + 1): end + 1])

def lowest(values: Sequence[float], end: int, period: int) -> float:
    return min(values[max(0, end - period + 1): end + 1])


# ========= buffers simples =========

class RingBuffer:
    """Buffer circular simple para ventanas fijas."""
    __slots__ = ("size", "_buf", "_i", "_count")

    def __init__(self, size: int):
        assert size > 0
        self.size = int(size)
        self._buf = [0.0] * self.size
        self._i = 0
        self._count = 0

    def push(self, x: float) -> None:
        self._buf[self._i] = float(x)
        self._i = (self._i + 1) % self.size
        self._count = min(self._count + 1, self.size)

    def sum(self) -> float:
        return float(sum(self._buf[: self._count]))

    def __len__(self) -> int:
        return self._count

    def values(self) -> Iterable[float]:
        if self._count < self.size:
            return self._buf[: self._count]
        # orden cronológico
        i = self._i
        return self._buf[i:] + self._buf[:i]
