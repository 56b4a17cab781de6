from __future__ import annotations
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, List, Dict, Any, Union

from .errors import InvalidTradeError

# ==== Datos base y tipados ====

TF = str  # "1s", "1m", "5m", "15m", "1h"

TIMEFRAME_SECONDS: Dict[TF, int] = {
    "1s": 1,
    "1m": 60,
    "5m": 300,
    "15m": 900,
    "1h": 3600,
}


class ChartMode(str, Enum):
    CANDLE = "CANDLE"
    RENKO = "RENKO"


class ZoneType(str, Enum):
    SUPPORT = "SUPPORT"
    RESISTANCE = "RESISTANCE"


class SignalType(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"


class SignalStatus(str, Enum):
    OPEN = "OPEN"
    TP_HIT = "TP_HIT"
    SL_HIT = "SL_HIT"
    CLOSED = "CLOSED"


def timeframe_to_seconds(tf: TF) -> int:
    try:
        return TIMEFRAME_SECONDS[tf]
    except KeyError:
        raise ValueError(f"Timeframe no soportado: {tf!r} (esperado uno de {list(TIMEFRAME_SECONDS)})")


@dataclass(slots=True)
class Tick:
    """Tick de precio (transitorio, lo consume el resampler)."""
    ts: float     # epoch segundos (ya normalizado)
    price: float
    qty: float


@dataclass(slots=True)
class Candle:
    """
    Vela OHLCV. La última vela del buffer es mutable mientras sigan
    llegando ticks dentro de su bucket.
    """
    time: int     # epoch segundos, alineado al grain
    open: float
    high: float
    low: float
    close: float
    volume: float

    @property
    def is_up(self) -> bool:
        return self.close >= self.open

    def copy(self) -> "Candle":
        return Candle(self.time, self.open, self.high, self.low, self.close, self.volume)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class RenkoBrick:
    """Ladrillo Renko de altura fija. Nunca se modifica tras crearse."""
    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    is_up: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Serie sobre la que corre el pipeline (velas o ladrillos)
SeriesBar = Union[Candle, RenkoBrick]


@dataclass(slots=True)
class IndicatorSnapshot:
    """
    Métricas derivadas para UNA barra. Alineado 1:1 con la serie de entrada.
    None = sin historia suficiente (los consumidores lo saltan, no es 0).
    """
    ema9: Optional[float] = None
    ema20: Optional[float] = None
    ema200: Optional[float] = None
    vwap: Optional[float] = None
    evwma: Optional[float] = None
    godmode: Optional[float] = None
    norm_vol: Optional[float] = None
    delta: float = 0.0
    buy_vol: float = 0.0
    sell_vol: float = 0.0
    atr: Optional[float] = None
    sr_support: Optional[float] = None
    sr_resistance: Optional[float] = None
    dot_support: Optional[float] = None
    dot_resistance: Optional[float] = None
    dyn_pivot: Optional[float] = None
    is_vol_spike: bool = False
    is_up: bool = True
    candle_color: str = "#22c55e"
    poc: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class Zone:
    """Nivel S/R recordado. end_index se fija al invalidarse."""
    type: ZoneType
    price: float
    start_index: int
    end_index: Optional[int] = None
    strength: int = 1

    @property
    def is_active(self) -> bool:
        return self.end_index is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "price": self.price,
            "start_index": self.start_index,
            "end_index": self.end_index,
            "strength": self.strength,
        }


@dataclass(slots=True)
class TradeSignal:
    """
    Posición generada por el motor de señales.
    Solo stop_loss / sl_history cambian mientras status == OPEN;
    al finalizar (TP_HIT / SL_HIT / CLOSED) queda inmutable.
    """
    id: str
    index: int
    time: int
    type: SignalType
    entry_price: float
    stop_loss: float
    take_profit: float
    reason: str
    status: SignalStatus = SignalStatus.OPEN
    exit_price: Optional[float] = None
    exit_index: Optional[int] = None
    pnl: Optional[float] = None
    sl_history: List[float] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.status is SignalStatus.OPEN

    @property
    def risk(self) -> float:
        return abs(self.entry_price - self.stop_loss)

    def ratchet_stop(self, new_stop: float) -> bool:
        """Mueve el stop solo a favor de la posición. True si cambió."""
        if not self.is_open:
            raise InvalidTradeError(f"señal {self.id} ya finalizada ({self.status.value})", self.id)
        if self.type is SignalType.LONG:
            better = new_stop > self.stop_loss
        else:
            better = new_stop < self.stop_loss
        if better:
            self.stop_loss = new_stop
        return better

    def finalize(self, status: SignalStatus, exit_price: float, exit_index: int) -> None:
        """Cierra la señal una única vez; después es inmutable."""
        if not self.is_open:
            raise InvalidTradeError(f"señal {self.id} ya finalizada ({self.status.value})", self.id)
        if status is SignalStatus.OPEN:
            raise InvalidTradeError("no se puede finalizar con status OPEN", self.id)
        self.status = status
        self.exit_price = exit_price
        self.exit_index = exit_index
        if self.type is SignalType.LONG:
            self.pnl = exit_price - self.entry_price
        else:
            self.pnl = self.entry_price - exit_price

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "index": self.index,
            "time": self.time,
            "type": self.type.value,
            "entry_price": self.entry_price,
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
            "status": self.status.value,
            "exit_price": self.exit_price,
            "exit_index": self.exit_index,
            "pnl": self.pnl,
            "reason": self.reason,
            "sl_history": list(self.sl_history),
        }


# ==== Overlays de subasta (FVG / estructura / trampas) ====

@dataclass(frozen=True, slots=True)
class FairValueGap:
    top: float
    bottom: float
    start_index: int
    is_bullish: bool


@dataclass(frozen=True, slots=True)
class StructurePoint:
    index: int
    price: float
    type: str  # 'HH' | 'LL'


@dataclass(frozen=True, slots=True)
class TrapSignal:
    index: int
    price: float
    type: str  # 'BULL_TRAP' | 'BEAR_TRAP'
    volume_intensity: float
