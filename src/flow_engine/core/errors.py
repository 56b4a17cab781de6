"""
Excepciones del motor.

JERARQUÍA:
    FlowEngineError (base)
    ├── MalformedInputError   tick / vela con campos ausentes o no numéricos
    ├── ConfigError           opción de configuración inválida
    └── InvalidTradeError     transición ilegal sobre una señal finalizada

La falta de historia NO es un error: se representa con None.
"""

from __future__ import annotations

from typing import Any, Optional


class FlowEngineError(Exception):
    """Excepción base del motor."""

    def __init__(self, message: str, code: str = "ENGINE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
        }


class MalformedInputError(FlowEngineError, ValueError):
    """Entrada rechazada en la frontera; el estado del motor no cambia."""

    def __init__(self, message: str, field: Optional[str] = None, index: Optional[int] = None, value: Any = None):
        super().__init__(message, code="MALFORMED_INPUT")
        self.field = field
        self.index = index
        self.value = value

    def to_dict(self) -> dict:
        d = super().to_dict()
        if self.field is not None:
            d["field"] = self.field
        if self.index is not None:
            d["index"] = self.index
        return d


class ConfigError(FlowEngineError, ValueError):
    def __init__(self, message: str, option: Optional[str] = None):
        super().__init__(message, code="CONFIG_ERROR")
        self.option = option


class InvalidTradeError(FlowEngineError):
    """Se intentó mutar una señal que ya no está OPEN."""

    def __init__(self, message: str, signal_id: Optional[str] = None):
        super().__init__(message, code="INVALID_TRADE")
        self.signal_id = signal_id
