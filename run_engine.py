#!/usr/bin/env python3
"""
Script de inicio para el Flow Engine
"""

import os
import sys
from pathlib import Path

# Añadir src al path
src_dir = Path(__file__).parent / "src"
sys.path.insert(0, str(src_dir))

def main():
    """Ejecuta el Flow Engine contra NATS."""

    ini = os.getenv("ENGINE_INI", "settings.ini")
    if not Path(ini).exists():
        print(f"❌ No existe el INI: {ini} (define ENGINE_INI)")
        sys.exit(1)

    from flow_engine.nats.runner import run

    print(f"🚀 Iniciando Flow Engine ({ini})...")
    print("📊 Presiona Ctrl+C para detener")
    print("-" * 50)

    try:
        run()
    except KeyboardInterrupt:
        print("\n🛑 Engine detenido por el usuario")

if __name__ == "__main__":
    main()
