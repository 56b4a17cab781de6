import asyncio
import itertools
import sys
import time
from pathlib import Path

import orjson
from nats.aio.client import Client as NATS

sys.path.insert(0, str(Path(__file__).parent / "src"))

from flow_engine.market.mock_feed import generate_mock_candles, iter_mock_ticks

NATS_URL = "nats://127.0.0.1:4222"
N_TICKS = 400


async def main():
    nc = NATS()
    await nc.connect(NATS_URL)
    print(f"✅ Dummy conectado a: {nc.connected_url.geturl()}")

    # Histórico inicial (import masivo) que termina justo antes de ahora
    now = int(time.time())
    history = [c.to_dict() for c in generate_mock_candles(300, 1, end_time=now, seed=1)]
    await nc.publish("md.candles.import", orjson.dumps(history))
    print(f"✅ Import enviado: {len(history)} velas de 1s")

    start_price = history[-1]["close"]
    for i, t in enumerate(itertools.islice(iter_mock_ticks(now, start_price=start_price, seed=2), N_TICKS)):
        msg = {"timestamp": int(t.ts * 1000), "lastPrice": t.price, "lastQty": t.qty}
        await nc.publish("md.ticks", orjson.dumps(msg))
        if i % 50 == 0:
            print(f"✅ Tick {i+1:03d}/{N_TICKS}:", msg)
        await asyncio.sleep(0.01)

    await nc.flush()
    await nc.drain()
    print(f"🎯 Listo: {N_TICKS} ticks publicados.")

if __name__ == "__main__":
    asyncio.run(main())
