from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from structlog.testing import capture_logs

from backend.app.telemetry import (
    StructuredLogTelemetrySink,
    TelemetryClient,
    build_telemetry_client,
)


class _CaptureSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self.events.append((event_name, dict(attributes)))


def test_telemetry_client_redacts_sensitive_fields() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=True, sink=sink)

    client.emit(
        "platform.pagination.walked",
        collection_id="UCcurrentchannel00000001",
        query="my private search",
        continuation_cursor="4qmFsgKr...",
        Visitor_Data="abc",
        item_ids=["a", "b", "c"],
        page=3,
        exhausted=True,
        note="  spaced    out  ",
    )

    assert len(sink.events) == 1
    event_name, attributes = sink.events[0]
    assert event_name == "platform.pagination.walked"
    assert attributes["collection_id"] == "UCcurrentchannel00000001"
    assert attributes["query"] == "[redacted]"
    assert attributes["continuation_cursor"] == "[redacted]"
    assert attributes["visitor_data"] == "[redacted]"
    assert attributes["item_ids"] == 3
    assert attributes["page"] == 3
    assert attributes["exhausted"] is True
    assert attributes["note"] == "spaced out"


def test_telemetry_client_truncates_long_strings() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=True, sink=sink)

    client.emit("platform.item.degraded", message="x" * 500, details={"nested": True})

    _, attributes = sink.events[0]
    assert attributes["message"].endswith("...")
    assert len(attributes["message"]) == 163
    assert attributes["details"] == "dict"


def test_disabled_telemetry_client_does_not_emit() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=False, sink=sink)

    client.emit("platform.discovery.resolved", collection_id="UC1")
    assert sink.events == []


def test_build_telemetry_client_sinks() -> None:
    assert build_telemetry_client(enabled=True, sink="none").enabled is False
    assert build_telemetry_client(enabled=False, sink="log").enabled is False

    log_client = build_telemetry_client(enabled=True, sink="log")
    assert log_client.enabled is True
    assert isinstance(log_client.sink, StructuredLogTelemetrySink)


def test_structured_log_sink_binds_event_component() -> None:
    with capture_logs() as captured:
        client = build_telemetry_client(enabled=True, sink="log")
        client.emit("platform.discovery.resolved", collection_id="UC1", item_ids={"a", "b"})
        client.emit("heartbeat")

    assert captured[0]["telemetry_event"] == "platform.discovery.resolved"
    assert captured[0]["component"] == "discovery"
    assert captured[0]["collection_id"] == "UC1"
    assert captured[0]["item_ids"] == 2
    assert captured[1]["component"] is None
