"""
Validación de entrada (frontera del motor).

- TickIn: admite los alias habituales de los feeds
  (timestamp|ts|t, lastPrice|ltp|price, lastQty|ltq|qty|size).
- CandleIn: import masivo / backfill.
Ambos modelos son estrictos: numéricos sin strings ni booleanos, finitos,
y qty / volume >= 0. Todos los campos son obligatorios.

Cualquier registro inválido rechaza el lote completo (MalformedInputError);
el estado del motor no se toca.
"""

from __future__ import annotations

from typing import Any, Dict, List, Union

import orjson
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator

from .core.errors import MalformedInputError
from .core.types import Candle, Tick
from .core.utils import normalize_epoch_seconds


class TickIn(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True, allow_inf_nan=False)

    ts: float = Field(validation_alias=AliasChoices("timestamp", "ts", "t"))
    price: float = Field(validation_alias=AliasChoices("lastPrice", "ltp", "price"))
    qty: float = Field(ge=0, validation_alias=AliasChoices("lastQty", "ltq", "qty", "size"))

    def to_tick(self) -> Tick:
        return Tick(ts=normalize_epoch_seconds(self.ts), price=self.price, qty=self.qty)


class CandleIn(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True, allow_inf_nan=False)

    time: float
    open: float
    high: float
    low: float
    close: float
    volume: float = Field(ge=0)

    @model_validator(mode="after")
    def _check_range(self) -> "CandleIn":
        if self.high < self.low:
            raise ValueError(f"high ({self.high}) < low ({self.low})")
        return self

    def to_candle(self) -> Candle:
        return Candle(
            time=int(normalize_epoch_seconds(self.time)),
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
        )


def _first_error_field(e: ValidationError) -> str | None:
    errs = e.errors()
    if errs and errs[0].get("loc"):
        return ".".join(str(p) for p in errs[0]["loc"])
    return None


def parse_tick(d: Dict[str, Any]) -> Tick:
    if not isinstance(d, dict):
        raise MalformedInputError(f"tick debe ser un objeto, llegó {type(d).__name__}", value=d)
    try:
        return TickIn.model_validate(d).to_tick()
    except ValidationError as e:
        raise MalformedInputError(f"tick inválido: {e.errors()[0]['msg']}", field=_first_error_field(e), value=d)


def parse_candles(data: Union[List[Any], bytes, str]) -> List[Candle]:
    """
    Valida un lote de velas (lista o JSON). Devuelve las velas ordenadas por
    time; si hay duplicados de time se queda la última aparición.
    """
    if isinstance(data, (bytes, bytearray, str)):
        try:
            data = orjson.loads(data)
        except orjson.JSONDecodeError as e:
            raise MalformedInputError(f"JSON inválido: {e}")
    if isinstance(data, dict) and isinstance(data.get("candles"), list):
        data = data["candles"]
    if not isinstance(data, list):
        raise MalformedInputError("se esperaba una lista de velas")

    by_time: Dict[int, Candle] = {}
    for i, rec in enumerate(data):
        if not isinstance(rec, dict):
            raise MalformedInputError(f"registro {i}: se esperaba un objeto", index=i, value=rec)
        try:
            c = CandleIn.model_validate(rec).to_candle()
        except ValidationError as e:
            raise MalformedInputError(
                f"registro {i}: {e.errors()[0]['msg']}", field=_first_error_field(e), index=i, value=rec
            )
        by_time[c.time] = c
    return [by_time[t] for t in sorted(by_time)]
