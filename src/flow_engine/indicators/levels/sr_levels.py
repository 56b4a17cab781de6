from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ...core.types import SeriesBar

Levels = Tuple[List[Optional[float]], List[Optional[float]]]  # (soportes, resistencias)


@dataclass(slots=True)
class PersistentLevelsConfig:
    """
    Niveles S/R persistentes a partir del oscilador compuesto.
    - upper/lower: umbrales de racha (osc > upper -> resistencia, osc < lower -> soporte)
    - streak: barras consecutivas para fijar el nivel
    """
    upper: float = 70.0
    lower: float = 30.0
    streak: int = 3


@dataclass(slots=True)
class DotLevelsConfig:
    """
    Niveles "dot": barras con volumen atípico (vol > mean + k·stdev).
    Barra alcista fija su low como soporte; bajista fija su high como resistencia.
    """
    period: int = 48
    k: float = 4.0


class PersistentLevels:
    """
    Dos contadores de racha independientes. Cuando una racha llega a
    'streak' barras se fija el high (resistencia) o low (soporte) de esa
    barra, y el nivel se arrastra hacia delante hasta que otra racha del
    mismo tipo lo sobrescribe. Una racha contraria no lo borra.
    """
    def __init__(self, cfg: PersistentLevelsConfig = PersistentLevelsConfig()):
        if cfg.streak < 1:
            raise ValueError("streak debe ser >= 1")
        self.cfg = cfg

    def compute(self, series: Sequence[SeriesBar], osc: Sequence[Optional[float]]) -> Levels:
        sup_out: List[Optional[float]] = []
        res_out: List[Optional[float]] = []
        sup_streak = res_streak = 0
        support: Optional[float] = None
        resistance: Optional[float] = None

        for b, o in zip(series, osc):
            if o is not None and o > self.cfg.upper:
                res_streak += 1
            else:
                res_streak = 0
            if o is not None and o < self.cfg.lower:
                sup_streak += 1
            else:
                sup_streak = 0

            if res_streak == self.cfg.streak:
                resistance = b.high
            if sup_streak == self.cfg.streak:
                support = b.low

            sup_out.append(support)
            res_out.append(resistance)
        return sup_out, res_out


class DotLevels:

    def __init__(self, cfg: DotLevelsConfig = DotLevelsConfig()):
        self.cfg = cfg

    def compute(
        self,
        series: Sequence[SeriesBar],
        vol_mean: Sequence[Optional[float]],
        vol_std: Sequence[Optional[float]],
    ) -> Levels:
        sup_out: List[Optional[float]] = []
        res_out: List[Optional[float]] = []
        support: Optional[float] = None
        resistance: Optional[float] = None

        for b, m, s in zip(series, vol_mean, vol_std):
            if m is not None and s is not None and b.volume > m + self.cfg.k * s:
                if b.close >= b.open:
                    support = b.low
                else:
                    resistance = b.high
            sup_out.append(support)
            res_out.append(resistance)
        return sup_out, res_out
