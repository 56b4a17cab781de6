# src/flow_engine/pipelines/signals.py
"""
Motor de señales (máquina de estados por posición).

    IDLE ──entrada──▶ OPEN ──▶ TP_HIT | SL_HIT | CLOSED   (terminales)

Orden por barra:
  1. Zonas: invalidación + registro (ZoneTracker.step)
  2. Posición OPEN: guarda stop en sl_history, evalúa salida (SL antes que
     TP, conservador); si sigue viva: break-even al 40% del recorrido y
     trailing por ATR. El stop nunca se afloja.
  3. Sin posición y fuera de cooldown: evalúa entrada LONG y luego SHORT.

Una sola posición no terminal a la vez. Antes de 'warmup_bars' barras de
historia solo se hace la contabilidad de zonas.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..config import SignalConfig
from ..core.base import WarmupState
from ..core.types import (
    IndicatorSnapshot,
    SeriesBar,
    SignalStatus,
    SignalType,
    TradeSignal,
    Zone,
)
from ..core.utils import safe_div
from ..logs.logger import get_logger
from .zones import ZoneTracker

logger = get_logger(__name__)


@dataclass(slots=True)
class SignalRun:
    signals: List[TradeSignal] = field(default_factory=list)
    zones: List[Zone] = field(default_factory=list)        # log completo
    active_zones: List[Zone] = field(default_factory=list)

    @property
    def open_signal(self) -> Optional[TradeSignal]:
        return next((s for s in self.signals if s.is_open), None)


class SignalEngine:

    def __init__(self, cfg: SignalConfig = SignalConfig()):
        self.cfg = cfg

    def run(self, series: Sequence[SeriesBar], indicators: Sequence[IndicatorSnapshot]) -> SignalRun:
        """
        Recorre la serie completa desde cero. Re-entrante: no guarda estado
        entre llamadas, así que puede re-ejecutarse en cada actualización.
        """
        if len(series) != len(indicators):
            raise ValueError(f"serie ({len(series)}) e indicadores ({len(indicators)}) desalineados")

        cfg = self.cfg
        tracker = ZoneTracker(cfg.invalidation_atr, cfg.zone_proximity_atr, cfg.max_active_zones)
        warmup = WarmupState(cfg.warmup_bars + 1)
        signals: List[TradeSignal] = []
        position: Optional[TradeSignal] = None
        last_exit: Optional[int] = None

        for i, (bar, ind) in enumerate(zip(series, indicators)):
            prev = indicators[i - 1] if i > 0 else None
            tracker.step(
                i, bar.close, ind.atr,
                ind.dot_support, ind.dot_resistance,
                prev.dot_support if prev else None,
                prev.dot_resistance if prev else None,
            )
            if warmup.tick():
                continue

            if position is not None:
                if self._manage(position, i, bar, ind.atr):
                    last_exit = i
                    position = None
                continue

            if last_exit is not None and i - last_exit < cfg.cooldown_bars:
                continue

            position = self._try_entry(i, bar, ind, prev, tracker)
            if position is not None:
                signals.append(position)

        return SignalRun(signals=signals, zones=list(tracker.log), active_zones=tracker.active)

    # ---- gestión de la posición abierta ----
    def _manage(self, pos: TradeSignal, i: int, bar: SeriesBar, atr: Optional[float]) -> bool:
        """Devuelve True si la posición se cerró en esta barra."""
        cfg = self.cfg
        pos.sl_history.append(pos.stop_loss)
        is_long = pos.type is SignalType.LONG

        if is_long:
            if bar.low <= pos.stop_loss:
                pos.finalize(SignalStatus.SL_HIT, pos.stop_loss, i)
            elif bar.high >= pos.take_profit:
                pos.finalize(SignalStatus.TP_HIT, pos.take_profit, i)
        else:
            if bar.high >= pos.stop_loss:
                pos.finalize(SignalStatus.SL_HIT, pos.stop_loss, i)
            elif bar.low <= pos.take_profit:
                pos.finalize(SignalStatus.TP_HIT, pos.take_profit, i)

        if not pos.is_open:
            logger.info(
                "Señal %s cerrada %s en i=%d exit=%.5f pnl=%.5f",
                pos.id, pos.status.value, i, pos.exit_price, pos.pnl,
            )
            return True

        if atr is None:
            return False

        # Break-even: al alcanzar el 40% del recorrido hasta el objetivo
        target_dist = abs(pos.take_profit - pos.entry_price)
        if is_long:
            move = bar.high - pos.entry_price
            if move >= cfg.breakeven_trigger * target_dist:
                pos.ratchet_stop(pos.entry_price + cfg.breakeven_offset_atr * atr)
            pos.ratchet_stop(bar.high - cfg.trail_atr * atr)
        else:
            move = pos.entry_price - bar.low
            if move >= cfg.breakeven_trigger * target_dist:
                pos.ratchet_stop(pos.entry_price - cfg.breakeven_offset_atr * atr)
            pos.ratchet_stop(bar.low + cfg.trail_atr * atr)
        return False

    # ---- entradas ----
    def _try_entry(
        self,
        i: int,
        bar: SeriesBar,
        ind: IndicatorSnapshot,
        prev: Optional[IndicatorSnapshot],
        tracker: ZoneTracker,
    ) -> Optional[TradeSignal]:
        atr = ind.atr
        if atr is None or atr <= 0 or prev is None:
            return None
        osc, prev_osc = ind.godmode, prev.godmode
        if osc is None or prev_osc is None:
            return None

        cfg = self.cfg
        body = abs(bar.close - bar.open)
        upper_wick = bar.high - max(bar.open, bar.close)
        lower_wick = min(bar.open, bar.close) - bar.low

        # LONG: rebote en soporte
        if osc < cfg.long_osc_max and osc > prev_osc:
            zone = tracker.nearest_support(bar.close, atr)
            rejection = lower_wick > 0 and lower_wick > body * cfg.wick_body_ratio
            if zone is not None and (rejection or bar.close > bar.open):
                entry = bar.close
                stop = zone.price - cfg.stop_atr * atr
                target_zone = tracker.target_above(entry)
                sig = self._build(
                    i, bar, SignalType.LONG, entry, stop, atr, target_zone,
                    f"Support bounce @ {zone.price:.2f} ({'wick' if rejection else 'green'})",
                )
                if sig is not None:
                    return sig

        # SHORT: rechazo en resistencia
        if osc > cfg.short_osc_min and osc < prev_osc:
            zone = tracker.nearest_resistance(bar.close, atr)
            rejection = upper_wick > 0 and upper_wick > body * cfg.wick_body_ratio
            if zone is not None and (rejection or bar.close < bar.open):
                entry = bar.close
                stop = zone.price + cfg.stop_atr * atr
                target_zone = tracker.target_below(entry)
                return self._build(
                    i, bar, SignalType.SHORT, entry, stop, atr, target_zone,
                    f"Resistance rejection @ {zone.price:.2f} ({'wick' if rejection else 'red'})",
                )
        return None

    def _build(
        self,
        i: int,
        bar: SeriesBar,
        sig_type: SignalType,
        entry: float,
        stop: float,
        atr: float,
        target_zone: Optional[Zone],
        reason: str,
    ) -> Optional[TradeSignal]:
        cfg = self.cfg
        is_long = sig_type is SignalType.LONG
        risk = entry - stop if is_long else stop - entry
        if risk <= 0:
            return None

        if target_zone is not None:
            offset = cfg.target_offset_atr * atr
            target = target_zone.price - offset if is_long else target_zone.price + offset
        else:
            target = entry + cfg.default_rr * risk if is_long else entry - cfg.default_rr * risk

        reward = target - entry if is_long else entry - target
        rr = safe_div(reward, risk, default=0.0)
        if rr <= cfg.min_rr:
            logger.debug("i=%d %s descartada: RR=%.2f <= %.2f", i, sig_type.value, rr, cfg.min_rr)
            return None

        sig = TradeSignal(
            id=f"{sig_type.value.lower()}-{i}-{bar.time}",
            index=i,
            time=bar.time,
            type=sig_type,
            entry_price=entry,
            stop_loss=stop,
            take_profit=target,
            reason=reason,
        )
        logger.info(
            "Señal %s abierta i=%d entry=%.5f SL=%.5f TP=%.5f RR=%.2f (%s)",
            sig.id, i, entry, stop, target, rr, reason,
        )
        return sig


def generate_signals(
    series: Sequence[SeriesBar],
    indicators: Sequence[IndicatorSnapshot],
    cfg: SignalConfig = SignalConfig(),
) -> SignalRun:
    return SignalEngine(cfg).run(series, indicators)
