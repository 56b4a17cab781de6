from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

import orjson

from .config import EngineConfig
from .core.errors import MalformedInputError
from .core.types import (
    Candle,
    ChartMode,
    IndicatorSnapshot,
    RenkoBrick,
    SeriesBar,
    Tick,
    TradeSignal,
    Zone,
)
from .indicators.structure.auction import AuctionOverlays, detect_auction
from .indicators.volume.volume_profile import VolumeProfile, VolumeProfileConfig, VolumeProfileResult
from .logs.logger import get_logger
from .market.market_state import MarketState
from .market.renko import to_renko
from .market.resampler import aggregate
from .pipelines import indicator_pipeline
from .pipelines.signals import SignalEngine
from .schemas import parse_candles, parse_tick

logger = get_logger(__name__)


class SnapshotSink(Protocol):
    """Lo que el motor necesita de un publicador (NATS o stub en tests)."""
    async def publish_snapshot(self, payload: Dict[str, Any]) -> None: ...
    async def publish_signals(self, payload: List[Dict[str, Any]]) -> None: ...


@dataclass(frozen=True)
class EngineSnapshot:
    """
    Salida inmutable de un recálculo. Los índices de zonas y señales se
    refieren a 'signal_series' (la serie mostrada salvo signal_source=candles).
    """
    timeframe: str
    chart_mode: ChartMode
    candles: List[Candle] = field(default_factory=list)
    renko_bricks: List[RenkoBrick] = field(default_factory=list)
    indicators: List[IndicatorSnapshot] = field(default_factory=list)
    zones: List[Zone] = field(default_factory=list)
    active_zones: List[Zone] = field(default_factory=list)
    signals: List[TradeSignal] = field(default_factory=list)
    profile: VolumeProfileResult = field(default_factory=VolumeProfileResult)
    auction: AuctionOverlays = field(default_factory=AuctionOverlays)
    signal_series: str = "display"
    heatmap_intensity: float = 1.5
    config: Dict[str, Any] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def empty(cls, cfg: EngineConfig) -> "EngineSnapshot":
        return cls(
            timeframe=cfg.timeframe,
            chart_mode=cfg.chart_mode,
            heatmap_intensity=cfg.heatmap_intensity,
            config=cfg.to_dict(),
        )

    @property
    def series(self) -> List[SeriesBar]:
        """Serie mostrada (velas o ladrillos según el modo)."""
        return list(self.renko_bricks) if self.chart_mode is ChartMode.RENKO else list(self.candles)

    @property
    def last_indicator(self) -> Optional[IndicatorSnapshot]:
        return self.indicators[-1] if self.indicators else None

    @property
    def open_signal(self) -> Optional[TradeSignal]:
        return next((s for s in self.signals if s.is_open), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timeframe": self.timeframe,
            "chart_mode": self.chart_mode.value,
            "candles": [c.to_dict() for c in self.candles],
            "renko_bricks": [b.to_dict() for b in self.renko_bricks],
            "indicators": [s.to_dict() for s in self.indicators],
            "zones": [z.to_dict() for z in self.zones],
            "active_zones": [z.to_dict() for z in self.active_zones],
            "signals": [s.to_dict() for s in self.signals],
            "profile": {**self.profile.to_dict(), "heatmap_intensity": self.heatmap_intensity},
            "auction": self.auction.to_dict(),
            "signal_series": self.signal_series,
            "config": dict(self.config),
            "stats": dict(self.stats),
        }

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_dict())


class FlowEngine:
    """
    Orquestador de un único instrumento:
      tick -> MarketState (base + vista) -> serie (velas | Renko)
           -> indicadores -> zonas/señales -> perfil + overlays -> snapshot

    Un solo escritor: todas las llamadas deben venir del mismo loop.
    Cada recálculo parte de la serie completa; si falla, se conserva el
    último snapshot válido.
    """

    def __init__(self, cfg: EngineConfig = EngineConfig(), publisher: Optional[SnapshotSink] = None):
        self.cfg = cfg
        self.pub = publisher
        self.state = MarketState(cfg.timeframe, cfg.base_grain, cfg.buffer_cap)
        self._snapshot = EngineSnapshot.empty(cfg)
        self._published_signals: List[Dict[str, Any]] = []
        logger.info("FlowEngine listo: %s", cfg.to_dict())

    @property
    def snapshot(self) -> EngineSnapshot:
        return self._snapshot

    # ---- ingesta ----
    def on_tick(self, tick: Tick) -> EngineSnapshot:
        self.state.on_tick(tick)
        return self.recompute()

    async def on_tick_dict(self, d: Dict[str, Any]) -> Optional[EngineSnapshot]:
        try:
            tick = parse_tick(d)
        except MalformedInputError as e:
            logger.warning("Tick descartado (%s): %s", e.field, e.message)
            return None
        snap = self.on_tick(tick)
        await self._publish(snap)
        return snap

    async def on_candles_dict(self, payload: Any) -> Optional[EngineSnapshot]:
        """Import masivo llegado por el bus. Un lote inválido se descarta entero."""
        try:
            snap = self.load_candles(payload)
        except MalformedInputError as e:
            logger.warning("Import de velas rechazado: %s", e.to_dict())
            return None
        await self._publish(snap)
        return snap

    def load_candles(self, records: Any) -> EngineSnapshot:
        """
        Sustituye el histórico. Valida el lote entero antes de tocar el estado
        (MalformedInputError si algún registro no es válido).
        """
        candles = parse_candles(self._as_records(records))
        self.state.load(candles)
        logger.info("Import: %d velas cargadas", len(candles))
        return self.recompute()

    def backfill(self, records: Any) -> int:
        """Añade histórico anterior a la primera vela. Devuelve cuántas entraron."""
        candles = parse_candles(self._as_records(records))
        added = self.state.prepend(candles)
        logger.info("Backfill: %d de %d velas añadidas", added, len(candles))
        if added:
            self.recompute()
        return added

    @staticmethod
    def _as_records(records: Any) -> Any:
        if isinstance(records, (list, tuple)):
            return [r.to_dict() if isinstance(r, Candle) else r for r in records]
        return records

    # ---- controles ----
    def set_timeframe(self, timeframe: str) -> EngineSnapshot:
        self.cfg = self.cfg.with_changes(timeframe=timeframe)
        self.state.set_timeframe(timeframe)
        return self.recompute()

    def set_chart_mode(self, mode: Any) -> EngineSnapshot:
        self.cfg = self.cfg.with_changes(chart_mode=mode)
        logger.info("Modo de gráfico -> %s", self.cfg.chart_mode.value)
        return self.recompute()

    def update_config(self, **changes: Any) -> EngineSnapshot:
        """Aplica cambios validados (ConfigError si alguno no es válido)."""
        old = self.cfg
        self.cfg = old.with_changes(**changes)
        if (self.cfg.base_grain, self.cfg.buffer_cap) != (old.base_grain, old.buffer_cap):
            base = aggregate(self.state.base, self.cfg.base_grain)
            self.state = MarketState(self.cfg.timeframe, self.cfg.base_grain, self.cfg.buffer_cap)
            self.state.load(base)
        elif self.cfg.timeframe != old.timeframe:
            self.state.set_timeframe(self.cfg.timeframe)
        return self.recompute()

    def reset(self) -> None:
        """Descarta todo el estado en vuelo (cambio de fuente de datos)."""
        self.state.reset()
        self._snapshot = EngineSnapshot.empty(self.cfg)
        self._published_signals = []
        logger.info("Estado reiniciado")

    # ---- cálculo ----
    def recompute(self) -> EngineSnapshot:
        try:
            self._snapshot = self._build()
        except Exception:
            logger.error("Fallo en recálculo; se mantiene el snapshot anterior", exc_info=True)
        return self._snapshot

    def _build(self) -> EngineSnapshot:
        cfg = self.cfg
        candles = self.state.candles()
        bricks = to_renko(candles, cfg.renko_box_size) if candles else []
        display: Sequence[SeriesBar] = bricks if cfg.chart_mode is ChartMode.RENKO else candles

        indicators = indicator_pipeline.compute(display, cfg.indicators)

        signal_series = "display"
        sig_bars, sig_ind = display, indicators
        if cfg.signal_source == "candles" and cfg.chart_mode is ChartMode.RENKO:
            signal_series = "candles"
            sig_bars = candles
            sig_ind = indicator_pipeline.compute(candles, cfg.indicators)
        run = SignalEngine(cfg.signals).run(sig_bars, sig_ind)

        return EngineSnapshot(
            timeframe=cfg.timeframe,
            chart_mode=cfg.chart_mode,
            candles=candles,
            renko_bricks=bricks,
            indicators=indicators,
            zones=run.zones,
            active_zones=run.active_zones,
            signals=run.signals,
            profile=VolumeProfile(VolumeProfileConfig(bins=cfg.indicators.profile_bins)).compute(display),
            auction=detect_auction(display, cfg.indicators.auction),
            signal_series=signal_series,
            heatmap_intensity=cfg.heatmap_intensity,
            config=cfg.to_dict(),
            stats=self.state.stats(),
        )

    async def _publish(self, snap: EngineSnapshot) -> None:
        if self.pub is None:
            return
        await self.pub.publish_snapshot(snap.to_dict())
        signals = [s.to_dict() for s in snap.signals]
        if signals != self._published_signals:
            await self.pub.publish_signals(signals)
            self._published_signals = signals
