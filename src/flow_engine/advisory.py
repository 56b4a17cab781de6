"""
Consulta opcional a un "oráculo" externo (p.ej. un LLM) sobre el setup actual.

El motor solo construye el contexto numérico y valida la respuesta; la
llamada real la implementa quien inyecte el AdvisoryOracle. Cualquier fallo
(timeout, excepción, respuesta inválida) devuelve un resultado NEUTRAL con
confianza 0. Nunca modifica el estado del motor.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Literal, Optional, Protocol, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .core.types import SignalType, Zone, ZoneType
from .core.utils import safe_div
from .engine import EngineSnapshot
from .logs.logger import get_logger

logger = get_logger(__name__)

Sentiment = Literal["BULLISH", "BEARISH", "NEUTRAL"]


class AdvisoryResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    confidence_score: float = Field(ge=0, le=100, validation_alias=AliasChoices("confidence_score", "confidenceScore"))
    sentiment: Sentiment
    reasoning: str
    risk_factors: List[str] = Field(default_factory=list, validation_alias=AliasChoices("risk_factors", "riskFactors"))

    @classmethod
    def neutral(cls, reason: str = "Advisory service unavailable", risk: str = "Connection error") -> "AdvisoryResult":
        return cls(confidence_score=0, sentiment="NEUTRAL", reasoning=reason, risk_factors=[risk])


class AdvisoryOracle(Protocol):
    async def analyze(self, context: Dict[str, Any]) -> Union[AdvisoryResult, Dict[str, Any]]: ...


def _nearby_zone(snapshot: EngineSnapshot, intent: SignalType) -> Optional[Zone]:
    """Zona activa del lado de la intención más cercana al último cierre."""
    bars = snapshot.series if snapshot.signal_series == "display" else snapshot.candles
    if not bars:
        return None
    price = bars[-1].close
    ztype = ZoneType.SUPPORT if intent is SignalType.LONG else ZoneType.RESISTANCE
    zones = [z for z in snapshot.active_zones if z.type is ztype]
    return min(zones, key=lambda z: abs(price - z.price)) if zones else None


def build_advisory_context(snapshot: EngineSnapshot, intent: SignalType) -> Dict[str, Any]:
    """Resume el último estado numérico para que el oráculo solo interprete."""
    series = snapshot.series
    ind = snapshot.last_indicator
    if not series or ind is None:
        raise ValueError("snapshot vacío: no hay barras que analizar")

    price = series[-1].close
    vwap_dist = safe_div(price - ind.vwap, ind.vwap, default=0.0) * 100 if ind.vwap else 0.0
    if ind.evwma is None:
        evwma_rel = "UNKNOWN"
    else:
        evwma_rel = "ABOVE" if price > ind.evwma else "BELOW"

    zone = _nearby_zone(snapshot, intent)
    zone_ctx: Union[str, Dict[str, Any]] = "NO_NEARBY_ZONE"
    if zone is not None:
        zone_ctx = {
            "type": zone.type.value,
            "zone_price": zone.price,
            "distance_from_zone": abs(price - zone.price),
        }

    return {
        "price": price,
        "intent": intent.value,
        "indicators": {
            "vwap_distance_pct": vwap_dist,
            "evwma_relationship": evwma_rel,
            "volume_delta": ind.delta,
            "godmode": ind.godmode,
            "normalized_volume": ind.norm_vol,
        },
        "zone": zone_ctx,
    }


async def request_advisory(
    oracle: AdvisoryOracle,
    snapshot: EngineSnapshot,
    intent: SignalType,
    timeout: float = 10.0,
) -> AdvisoryResult:
    try:
        context = build_advisory_context(snapshot, intent)
    except ValueError as e:
        logger.info("Advisory omitido: %s", e)
        return AdvisoryResult.neutral("Not enough data", "Empty series")

    try:
        raw = await asyncio.wait_for(oracle.analyze(context), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Advisory: timeout tras %.1fs", timeout)
        return AdvisoryResult.neutral(risk="Timeout")
    except Exception:
        logger.error("Advisory: fallo del oráculo", exc_info=True)
        return AdvisoryResult.neutral()

    if isinstance(raw, AdvisoryResult):
        return raw
    try:
        return AdvisoryResult.model_validate(raw)
    except ValidationError as e:
        logger.warning("Advisory: respuesta inválida (%d errores)", e.error_count())
        return AdvisoryResult.neutral("Invalid advisory response", "Malformed response")
