"""
Configuración del motor.

Dataclasses validadas en __post_init__ (ConfigError si algo no cuadra) y
carga opcional desde INI (configparser), igual que el runner:

    [Engine]
    timeframe = 1m
    chart_mode = CANDLE
    renko_box_size = 10
    evwma_length = 14
    heatmap_intensity = 1.5
    buffer_cap = 5000
    signal_source = display

    [Overlays]
    show_heatmap = true
    ...

    [Signals]
    cooldown_bars = 10
    min_rr = 1.2
"""

from __future__ import annotations

import configparser
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Tuple

from .core.errors import ConfigError
from .core.types import TIMEFRAME_SECONDS, ChartMode
from .indicators.levels.sr_levels import DotLevelsConfig, PersistentLevelsConfig
from .indicators.oscillators.godmode import GodModeConfig
from .indicators.structure.auction import AuctionConfig
from .logs.logger import get_logger

logger = get_logger(__name__)

SIGNAL_SOURCES = ("display", "candles")

DEFAULT_OVERLAYS: Dict[str, bool] = {
    "show_heatmap": True,
    "show_evwma": True,
    "show_vwap": True,
    "show_emas": True,
    "show_vol_bubbles": True,
    "show_sr_dots": True,
    "show_vol_sr": True,
    "show_godmode": True,
    "show_fvg": False,
    "show_traps": False,
    "show_market_structure": False,
    "show_dynamic_pivot": False,
    "show_buy_sell_vol": False,
}


@dataclass(frozen=True)
class IndicatorConfig:
    ema_periods: Tuple[int, int, int] = (9, 20, 200)
    evwma_length: int = 14
    atr_period: int = 14
    vol_stats_period: int = 48     # media/stdev de volumen (norm_vol y dots)
    spike_period: int = 50
    spike_mult: float = 1.8
    profile_bins: int = 100
    godmode: GodModeConfig = field(default_factory=GodModeConfig)
    persistent: PersistentLevelsConfig = field(default_factory=PersistentLevelsConfig)
    dots: DotLevelsConfig = field(default_factory=DotLevelsConfig)
    auction: AuctionConfig = field(default_factory=AuctionConfig)

    def __post_init__(self):
        if len(self.ema_periods) != 3 or any(p < 1 for p in self.ema_periods):
            raise ConfigError("ema_periods: se esperan 3 periodos >= 1", "ema_periods")
        if self.evwma_length < 1:
            raise ConfigError("evwma_length debe ser >= 1", "evwma_length")
        if self.atr_period < 1 or self.vol_stats_period < 1 or self.spike_period < 1:
            raise ConfigError("los periodos deben ser >= 1")
        if self.profile_bins < 1:
            raise ConfigError("profile_bins debe ser >= 1", "profile_bins")


@dataclass(frozen=True)
class SignalConfig:
    warmup_bars: int = 50
    cooldown_bars: int = 10
    zone_proximity_atr: float = 1.5
    stop_atr: float = 0.5
    target_offset_atr: float = 0.2
    default_rr: float = 2.0
    min_rr: float = 1.2
    breakeven_trigger: float = 0.4   # fracción del recorrido hasta el objetivo
    breakeven_offset_atr: float = 0.1
    trail_atr: float = 2.5
    long_osc_max: float = 45.0
    short_osc_min: float = 55.0
    wick_body_ratio: float = 1.5
    invalidation_atr: float = 0.5
    max_active_zones: int = 10

    def __post_init__(self):
        if self.warmup_bars < 1:
            raise ConfigError("warmup_bars debe ser >= 1", "warmup_bars")
        if self.cooldown_bars < 0:
            raise ConfigError("cooldown_bars debe ser >= 0", "cooldown_bars")
        if self.min_rr <= 0 or self.default_rr <= 0:
            raise ConfigError("min_rr / default_rr deben ser > 0")
        if self.max_active_zones < 1:
            raise ConfigError("max_active_zones debe ser >= 1", "max_active_zones")


@dataclass(frozen=True)
class EngineConfig:
    timeframe: str = "1s"
    chart_mode: ChartMode = ChartMode.CANDLE
    renko_box_size: float = 10.0
    heatmap_intensity: float = 1.5
    buffer_cap: int = 5000
    base_grain: int = 1
    signal_source: str = "display"
    overlays: Dict[str, bool] = field(default_factory=lambda: dict(DEFAULT_OVERLAYS))
    indicators: IndicatorConfig = field(default_factory=IndicatorConfig)
    signals: SignalConfig = field(default_factory=SignalConfig)

    def __post_init__(self):
        if self.timeframe not in TIMEFRAME_SECONDS:
            raise ConfigError(
                f"timeframe {self.timeframe!r} no soportado (usa {', '.join(TIMEFRAME_SECONDS)})", "timeframe"
            )
        try:
            object.__setattr__(self, "chart_mode", ChartMode(str(getattr(self.chart_mode, "value", self.chart_mode)).upper()))
        except ValueError:
            raise ConfigError(f"chart_mode {self.chart_mode!r} no soportado (CANDLE|RENKO)", "chart_mode")
        if not self.renko_box_size > 0:
            raise ConfigError("renko_box_size debe ser > 0", "renko_box_size")
        if self.heatmap_intensity < 0:
            raise ConfigError("heatmap_intensity debe ser >= 0", "heatmap_intensity")
        if self.buffer_cap < 1:
            raise ConfigError("buffer_cap debe ser >= 1", "buffer_cap")
        if self.base_grain < 1 or TIMEFRAME_SECONDS[self.timeframe] % self.base_grain:
            raise ConfigError("base_grain debe ser >= 1 y dividir el timeframe", "base_grain")
        if self.signal_source not in SIGNAL_SOURCES:
            raise ConfigError(f"signal_source debe ser uno de {SIGNAL_SOURCES}", "signal_source")
        unknown = set(self.overlays) - set(DEFAULT_OVERLAYS)
        if unknown:
            raise ConfigError(f"overlays desconocidos: {sorted(unknown)}", "overlays")

    @property
    def evwma_length(self) -> int:
        return self.indicators.evwma_length

    @property
    def grain(self) -> int:
        return TIMEFRAME_SECONDS[self.timeframe]

    def with_changes(self, **changes: Any) -> "EngineConfig":
        """
        Copia validada. Acepta claves propias, de IndicatorConfig / SignalConfig
        (p.ej. evwma_length, cooldown_bars) y flags de overlay (show_*).
        """
        own = {f.name for f in fields(self)}
        ind_keys = {f.name for f in fields(IndicatorConfig)}
        sig_keys = {f.name for f in fields(SignalConfig)}
        top: Dict[str, Any] = {}
        ind: Dict[str, Any] = {}
        sig: Dict[str, Any] = {}
        ovl: Dict[str, bool] = {}
        for k, v in changes.items():
            if k in own:
                top[k] = v
            elif k in ind_keys:
                ind[k] = v
            elif k in sig_keys:
                sig[k] = v
            elif k in DEFAULT_OVERLAYS:
                ovl[k] = bool(v)
            else:
                raise ConfigError(f"opción desconocida: {k}", k)
        if ind:
            top["indicators"] = replace(top.get("indicators", self.indicators), **ind)
        if sig:
            top["signals"] = replace(top.get("signals", self.signals), **sig)
        if ovl:
            top["overlays"] = {**top.get("overlays", self.overlays), **ovl}
        return replace(self, **top)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timeframe": self.timeframe,
            "chart_mode": self.chart_mode.value,
            "renko_box_size": self.renko_box_size,
            "evwma_length": self.evwma_length,
            "heatmap_intensity": self.heatmap_intensity,
            "signal_source": self.signal_source,
            "overlays": dict(self.overlays),
        }

    # ---- INI ----
    @classmethod
    def from_ini(cls, path: str) -> "EngineConfig":
        cp = configparser.ConfigParser()
        if not cp.read(path):
            raise FileNotFoundError(f"No se pudo leer el INI: {path}")
        return cls.from_parser(cp)

    @classmethod
    def from_parser(cls, cp: configparser.ConfigParser) -> "EngineConfig":
        changes: Dict[str, Any] = {}
        try:
            if cp.has_section("Engine"):
                e = cp["Engine"]
                for key in ("timeframe", "chart_mode", "signal_source"):
                    if key in e:
                        changes[key] = e.get(key).strip()
                for key in ("renko_box_size", "heatmap_intensity"):
                    if key in e:
                        changes[key] = e.getfloat(key)
                for key in ("buffer_cap", "base_grain", "evwma_length"):
                    if key in e:
                        changes[key] = e.getint(key)
            if cp.has_section("Overlays"):
                for key in cp["Overlays"]:
                    changes[key] = cp["Overlays"].getboolean(key)
            if cp.has_section("Signals"):
                s = cp["Signals"]
                for f in fields(SignalConfig):
                    if f.name in s:
                        conv = s.getint if f.type in (int, "int") else s.getfloat
                        changes[f.name] = conv(f.name)
        except ValueError as e:
            raise ConfigError(f"valor inválido en INI: {e}")
        cfg = cls().with_changes(**changes)
        logger.info("Config cargada: %s", cfg.to_dict())
        return cfg
