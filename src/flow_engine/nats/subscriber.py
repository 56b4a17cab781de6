from __future__ import annotations
import asyncio, configparser
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

import orjson
from nats.aio.client import Client as NATS
from nats.aio.msg import Msg

from ..logs.logger import get_logger

log = get_logger("subscriber")

Callback = Callable[[Any], Awaitable[Any]]


class FeedStatus(str, Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    ERROR = "ERROR"


class TickSubscriber:
    """
    Encargado de:
      - leer settings.ini ([NATS], [SubjectsIn])
      - conectar a NATS y exponer el estado del feed (FeedStatus)
      - suscribirse a ticks e imports de velas
      - enrutar mensajes a callbacks (ya decodificados con orjson)

    No valida el contenido: eso lo hace el motor en su frontera.
    """
    def __init__(self, ini: Union[str, configparser.ConfigParser]):
        if isinstance(ini, configparser.ConfigParser):
            self.cfg = ini
        else:
            self.cfg = configparser.ConfigParser()
            if not self.cfg.read(ini):
                raise FileNotFoundError(f"No se pudo leer el INI: {ini}")

        self.url = self.cfg.get("NATS", "url", fallback="nats://127.0.0.1:4222")
        self.subj_ticks = self.cfg.get("SubjectsIn", "ticks", fallback="md.ticks")
        self.subj_candles = self.cfg.get("SubjectsIn", "candles", fallback="md.candles.import")

        self.nc = NATS()
        self.status = FeedStatus.IDLE
        self.on_status: Optional[Callable[[FeedStatus], None]] = None

        # Callbacks (se asignan desde fuera)
        self.cb_tick: Optional[Callback] = None
        self.cb_candles: Optional[Callback] = None

    def _set_status(self, status: FeedStatus) -> None:
        if status is self.status:
            return
        log.info("[feed] %s -> %s", self.status.value, status.value)
        self.status = status
        if self.on_status:
            self.on_status(status)

    async def connect(self):
        self._set_status(FeedStatus.CONNECTING)
        try:
            await self.nc.connect(
                servers=[self.url],
                disconnected_cb=self._on_disconnected,
                reconnected_cb=self._on_reconnected,
                error_cb=self._on_error,
            )
        except Exception:
            self._set_status(FeedStatus.ERROR)
            log.error("[NATS] no se pudo conectar a %s", self.url, exc_info=True)
            raise
        self._set_status(FeedStatus.CONNECTED)
        log.info("[NATS] Conectado → %s", self.url)

    async def _on_disconnected(self):
        self._set_status(FeedStatus.DISCONNECTED)

    async def _on_reconnected(self):
        self._set_status(FeedStatus.CONNECTED)

    async def _on_error(self, e: Exception):
        log.error("[NATS] error: %s", e)
        self._set_status(FeedStatus.ERROR)

    async def _dispatch(self, name: str, cb: Optional[Callback], msg: Msg):
        try:
            d = orjson.loads(msg.data)
        except orjson.JSONDecodeError as e:
            log.warning("[%s] payload no es JSON (%s): %r", name, e, msg.data[:200])
            return
        if cb is None:
            return
        try:
            await cb(d)
        except Exception as e:
            log.error("[%s] callback error: %s", name, e, exc_info=True)

    async def _handle_tick(self, msg: Msg):
        await self._dispatch("tick", self.cb_tick, msg)

    async def _handle_candles(self, msg: Msg):
        await self._dispatch("candles", self.cb_candles, msg)

    async def run(self):
        await self.nc.subscribe(self.subj_ticks, cb=self._handle_tick)
        await self.nc.subscribe(self.subj_candles, cb=self._handle_candles)

        log.info("Suscripciones activas:")
        log.info("  • %s", self.subj_ticks)
        log.info("  • %s", self.subj_candles)

        try:
            while True:
                await asyncio.sleep(5)
        except asyncio.CancelledError:
            pass
        finally:
            await self.nc.drain()
            self._set_status(FeedStatus.DISCONNECTED)
            log.info("[NATS] cerrado")
