from __future__ import annotations
import asyncio, configparser, os

from ..config import EngineConfig
from ..engine import FlowEngine
from ..logs.logger import get_logger
from ..market.mock_feed import generate_mock_candles
from .publisher import SnapshotPublisher
from .subscriber import TickSubscriber

logger = get_logger("runner")


async def main():
    ini = os.getenv("ENGINE_INI", "settings.ini")
    cp = configparser.ConfigParser()
    if not cp.read(ini):
        raise FileNotFoundError(f"No se pudo leer el INI: {ini}")

    # Componentes
    sub = TickSubscriber(cp)
    await sub.connect()

    pub = SnapshotPublisher(
        sub.nc,
        out_prefix=cp.get("SubjectsOut", "prefix", fallback="flow"),
        symbol=cp.get("Engine", "symbol", fallback="-"),
    )
    eng = FlowEngine(EngineConfig.from_parser(cp), publisher=pub)

    # Histórico simulado hasta que llegue un import real
    mock = cp.getint("Engine", "mock_candles", fallback=0)
    if mock > 0:
        eng.load_candles(generate_mock_candles(mock, eng.cfg.base_grain))

    # Wirear callbacks
    sub.cb_tick = eng.on_tick_dict
    sub.cb_candles = eng.on_candles_dict

    try:
        await sub.run()
    finally:
        logger.info("Runner detenido (%s)", eng.state.stats())


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
