from __future__ import annotations
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol, Sequence, runtime_checkable

from .types import SeriesBar


# ========= Interfaces base (para uniformidad y testeo) =========

@runtime_checkable
class SeriesIndicator(Protocol):
    """
    Contrato común para indicadores 'batch' sobre la serie completa.
    - compute(series): devuelve una lista alineada 1:1 con la serie;
      None en las barras sin historia suficiente.
    Deben ser funciones puras: recalcular sobre la misma serie da lo mismo.
    """
    def compute(self, series: Sequence[SeriesBar]) -> List[Optional[Any]]: ...


# ========= Utilidades opcionales comunes =========

@dataclass(slots=True)
class WarmupState:
    """
    Lleva la cuenta de warm-up para lógicas que requieren N barras mínimas.
    """
    need: int            # barras necesarias (p.ej. period + 1)
    seen: int = 0

    def tick(self) -> bool:
        """Incrementa y devuelve True si AÚN está en warm-up."""
        self.seen += 1
        return self.seen < self.need

