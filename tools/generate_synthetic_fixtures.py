#!/usr/bin/env python3
"""
Genera una sesión sintética de ticks (JSONL) para testing sin feed real.

Cada línea: {"subject": "md.ticks", "ts_iso": ..., "payload": {timestamp, lastPrice, lastQty}}

Uso:
    python tools/generate_synthetic_fixtures.py --output tests/fixtures/synthetic_session.jsonl
"""
import argparse
import itertools
import sys
from datetime import datetime, timezone
from pathlib import Path

import orjson

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from flow_engine.market.mock_feed import iter_mock_ticks


def generate_synthetic_fixtures(
    output_path: Path,
    num_events: int = 2000,
    start_price: float = 50_000.0,
    seed: int = 7,
) -> None:
    start_ts = int(datetime.now(timezone.utc).timestamp()) - num_events
    ticks = itertools.islice(iter_mock_ticks(start_ts, start_price=start_price, seed=seed), num_events)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    n = 0
    with open(output_path, "wb") as f:
        for t in ticks:
            entry = {
                "subject": "md.ticks",
                "ts_iso": datetime.fromtimestamp(t.ts, tz=timezone.utc).isoformat(),
                # milisegundos, como los feeds reales
                "payload": {"timestamp": int(t.ts * 1000), "lastPrice": round(t.price, 2), "lastQty": t.qty},
            }
            f.write(orjson.dumps(entry) + b"\n")
            n += 1

    print(f"Generados {n} ticks sintéticos en {output_path}")


def main():
    parser = argparse.ArgumentParser(description="Genera una sesión sintética de ticks")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("tests/fixtures/synthetic_session.jsonl"),
        help="Ruta de salida",
    )
    parser.add_argument("--num-events", type=int, default=2000, help="Número de ticks a generar")
    parser.add_argument("--price", type=float, default=50_000.0, help="Precio inicial")
    parser.add_argument("--seed", type=int, default=7, help="Semilla del paseo aleatorio")
    args = parser.parse_args()

    generate_synthetic_fixtures(args.output, args.num_events, args.price, args.seed)


if __name__ == "__main__":
    main()
