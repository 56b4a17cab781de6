# src/flow_engine/pipelines/indicator_pipeline.py
from __future__ import annotations
from typing import List, Optional, Sequence

from ..config import IndicatorConfig
from ..core.types import IndicatorSnapshot, SeriesBar
from ..core.utils import safe_div, sma_series, stdev_series
from ..indicators.classic.atr import ATR, ATRConfig
from ..indicators.classic.ema import EMA, EMAConfig
from ..indicators.levels.sr_levels import DotLevels, PersistentLevels
from ..indicators.oscillators.godmode import GodMode
from ..indicators.orderflow.delta import bar_flows
from ..indicators.structure.auction import dynamic_pivot
from ..indicators.volume.evwma import EVWMA, EVWMAConfig
from ..indicators.volume.volume_profile import profile
from ..indicators.volume.vwap_cum import VWAPCum

UP_COLOR = "#22c55e"
DOWN_COLOR = "#ef4444"


def compute(series: Sequence[SeriesBar], cfg: IndicatorConfig = IndicatorConfig()) -> List[IndicatorSnapshot]:
    """
    Recalcula TODAS las métricas sobre la serie completa (velas o ladrillos).
    Función pura: misma serie -> mismas salidas. Índice alineado 1:1.
    """
    n = len(series)
    if n == 0:
        return []

    p_fast, p_mid, p_slow = cfg.ema_periods
    ema_fast = EMA(EMAConfig(period=p_fast)).compute(series)
    ema_mid = EMA(EMAConfig(period=p_mid)).compute(series)
    ema_slow = EMA(EMAConfig(period=p_slow)).compute(series)
    vwap = VWAPCum().compute(series)
    evwma = EVWMA(EVWMAConfig(length=cfg.evwma_length)).compute(series)
    atr = ATR(ATRConfig(period=cfg.atr_period)).compute(series)
    osc = GodMode(cfg.godmode).compute(series)

    volumes = [b.volume for b in series]
    vol_mean = sma_series(volumes, cfg.vol_stats_period)
    vol_std = stdev_series(volumes, cfg.vol_stats_period)
    spike_avg = sma_series(volumes, cfg.spike_period)

    sr_sup, sr_res = PersistentLevels(cfg.persistent).compute(series, osc)
    dot_sup, dot_res = DotLevels(cfg.dots).compute(series, vol_mean, vol_std)
    flows = bar_flows(series)
    pivot = dynamic_pivot(series, cfg.auction.pivot_period)
    poc = profile(series, cfg.profile_bins).poc

    out: List[IndicatorSnapshot] = []
    for i, b in enumerate(series):
        m, s = vol_mean[i], vol_std[i]
        norm_vol: Optional[float] = None
        if m is not None and s is not None:
            # stdev 0 (volumen constante) -> 0, nunca inf/NaN
            norm_vol = safe_div(b.volume - m, s, default=0.0)
        is_up = b.close >= b.open
        out.append(IndicatorSnapshot(
            ema9=ema_fast[i],
            ema20=ema_mid[i],
            ema200=ema_slow[i],
            vwap=vwap[i],
            evwma=evwma[i],
            godmode=osc[i],
            norm_vol=norm_vol,
            delta=flows[i].delta,
            buy_vol=flows[i].buy_vol,
            sell_vol=flows[i].sell_vol,
            atr=atr[i],
            sr_support=sr_sup[i],
            sr_resistance=sr_res[i],
            dot_support=dot_sup[i],
            dot_resistance=dot_res[i],
            dyn_pivot=pivot[i],
            is_vol_spike=spike_avg[i] is not None and b.volume > spike_avg[i] * cfg.spike_mult,
            is_up=is_up,
            candle_color=UP_COLOR if is_up else DOWN_COLOR,
            poc=poc,
        ))
    return out
