# src/flow_engine/pipelines/zones.py
from __future__ import annotations
from typing import List, Optional

from ..core.types import Zone, ZoneType
from ..logs.logger import get_logger

logger = get_logger(__name__)


class ZoneTracker:
    """
    Memoria de zonas soporte/resistencia derivadas de los niveles "dot".

    Por barra (step):
      1. Invalida zonas que el cierre rompe por más de k·ATR
         (soporte: close < price - k·ATR ; resistencia: close > price + k·ATR).
         La zona recibe end_index, sale del set activo y queda en el log.
      2. Si el dot de esta barra cambió respecto al de la anterior, registra
         una zona nueva (start_index = i, strength = 1).

    Los sets activos se recorren en orden de creación (el más antiguo primero)
    y se consultan por cercanía de precio, no por fuerza.
    """

    def __init__(self, invalidation_atr: float = 0.5, proximity_atr: float = 1.5, max_active: int = 10):
        self.invalidation_atr = invalidation_atr
        self.proximity_atr = proximity_atr
        self.max_active = max_active
        self.reset()

    def reset(self) -> None:
        self.log: List[Zone] = []
        self.active_support: List[Zone] = []
        self.active_resistance: List[Zone] = []

    # ---- actualización ----
    def step(
        self,
        index: int,
        close: float,
        atr: Optional[float],
        dot_support: Optional[float],
        dot_resistance: Optional[float],
        prev_dot_support: Optional[float],
        prev_dot_resistance: Optional[float],
    ) -> None:
        if atr is not None:
            self._invalidate(index, close, atr)

        if dot_support is not None and dot_support != prev_dot_support:
            self._register(ZoneType.SUPPORT, dot_support, index)
        if dot_resistance is not None and dot_resistance != prev_dot_resistance:
            self._register(ZoneType.RESISTANCE, dot_resistance, index)

    def _register(self, ztype: ZoneType, price: float, index: int) -> Zone:
        zone = Zone(type=ztype, price=price, start_index=index)
        active = self.active_support if ztype is ZoneType.SUPPORT else self.active_resistance
        active.append(zone)
        self.log.append(zone)
        if len(active) > self.max_active:
            # se retira la más antigua
            oldest = active.pop(0)
            oldest.end_index = index
        logger.debug("Zona %s @ %.5f registrada en i=%d", ztype.value, price, index)
        return zone

    def _invalidate(self, index: int, close: float, atr: float) -> None:
        band = self.invalidation_atr * atr
        broken = [z for z in self.active_support if close < z.price - band]
        for z in broken:
            z.end_index = index
            self.active_support.remove(z)
        broken_r = [z for z in self.active_resistance if close > z.price + band]
        for z in broken_r:
            z.end_index = index
            self.active_resistance.remove(z)
        if broken or broken_r:
            logger.debug("i=%d: %d soportes y %d resistencias invalidados", index, len(broken), len(broken_r))

    # ---- consultas ----
    def nearest_support(self, price: float, atr: float) -> Optional[Zone]:
        """Primer soporte activo a <= k·ATR por DEBAJO (o en) el precio."""
        limit = self.proximity_atr * atr
        for z in self.active_support:
            if price >= z.price and price - z.price <= limit:
                return z
        return None

    def nearest_resistance(self, price: float, atr: float) -> Optional[Zone]:
        """Primera resistencia activa a <= k·ATR por ENCIMA (o en) el precio."""
        limit = self.proximity_atr * atr
        for z in self.active_resistance:
            if price <= z.price and z.price - price <= limit:
                return z
        return None

    def target_above(self, price: float) -> Optional[Zone]:
        """Resistencia activa más cercana estrictamente por encima del precio."""
        above = [z for z in self.active_resistance if z.price > price]
        return min(above, key=lambda z: z.price) if above else None

    def target_below(self, price: float) -> Optional[Zone]:
        below = [z for z in self.active_support if z.price < price]
        return max(below, key=lambda z: z.price) if below else None

    @property
    def active(self) -> List[Zone]:
        return self.active_support + self.active_resistance
