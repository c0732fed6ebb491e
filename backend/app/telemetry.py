from __future__ import annotations

from collections.abc import Mapping, Set
from dataclasses import dataclass
from typing import Any, Literal, Protocol

import structlog

TelemetryValue = bool | int | float | str | None

# Search queries, continuation cursors and upstream session material stay in
# the process; a key containing any of these tokens is reported as redacted.
_REDACTED_KEY_TOKENS: tuple[str, ...] = (
    "authorization",
    "continuation",
    "cookie",
    "cursor",
    "description",
    "po_token",
    "query",
    "secret",
    "session",
    "token",
    "visitor_data",
)
_REDACTED = "[redacted]"
_MAX_STRING_LENGTH = 160


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        ...


class NoOpTelemetrySink:
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        _ = (event_name, attributes)


class StructuredLogTelemetrySink:
    """Writes each event to the `tubelens.telemetry` logger.

    Event names follow `platform.<component>.<outcome>`; the component is
    bound as its own field.
    """

    def __init__(self) -> None:
        self._logger = structlog.get_logger("tubelens.telemetry")

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self._logger.info(
            "telemetry",
            telemetry_event=event_name,
            component=_event_component(event_name),
            **dict(attributes),
        )


@dataclass(frozen=True)
class TelemetryClient:
    enabled: bool
    sink: TelemetrySink

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls(enabled=False, sink=NoOpTelemetrySink())

    def emit(self, event_name: str, **attributes: Any) -> None:
        if not self.enabled:
            return
        cleaned: dict[str, TelemetryValue] = {}
        for raw_key, raw_value in attributes.items():
            key = raw_key.strip().lower()
            if key:
                cleaned[key] = _REDACTED if _is_redacted(key) else _flatten(raw_value)
        self.sink.emit(event_name=event_name, attributes=cleaned)


def build_telemetry_client(*, enabled: bool, sink: Literal["none", "log"]) -> TelemetryClient:
    if enabled and sink == "log":
        return TelemetryClient(enabled=True, sink=StructuredLogTelemetrySink())
    return TelemetryClient.disabled()


def _event_component(event_name: str) -> str | None:
    parts = event_name.split(".")
    return parts[1] if len(parts) > 2 else None


def _is_redacted(key: str) -> bool:
    return any(token in key for token in _REDACTED_KEY_TOKENS)


def _flatten(value: Any) -> TelemetryValue:
    if value is None or isinstance(value, bool | int | float):
        return value
    if isinstance(value, str):
        compact = " ".join(value.split())
        if len(compact) > _MAX_STRING_LENGTH:
            return f"{compact[:_MAX_STRING_LENGTH]}..."
        return compact
    # Id lists are reported by size only.
    if isinstance(value, list | tuple | Set):
        return len(value)
    return type(value).__name__
