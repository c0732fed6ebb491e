from __future__ import annotations

import logging
import re
import sys
from pathlib import Path

import structlog
from structlog.typing import EventDict, Processor

from backend.app.config import AppSettings

LOGGER_NAMESPACE = "tubelens"
TELEMETRY_LOGGER_NAME = f"{LOGGER_NAMESPACE}.telemetry"
LOG_FILE_NAME = "tubelens.log"
TELEMETRY_LOG_FILE_NAME = "tubelens-telemetry.log"

# Service messages end in `key=value` pairs; a value runs until the next key.
_MESSAGE_FIELD_PATTERN = re.compile(r"\s(?P<key>[a-z][a-z_]*)=(?P<value>.*?)(?=\s[a-z][a-z_]*=|$)")


def configure_application_logging(settings: AppSettings) -> Path:
    """Route the `tubelens` logger tree to stdout and JSON-lines files.

    Service messages go to the console at the configured level and to
    `tubelens.log` at DEBUG, with their trailing `key=value` pairs lifted into
    JSON fields. Telemetry events go only to
    `tubelens-telemetry.log`. Calling this again replaces the handlers.
    """
    log_dir = settings.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    console_handler = logging.StreamHandler(stream=sys.stdout)
    console_handler.setLevel(resolve_log_level(settings.log_level))
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_pre_chain(),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.dev.ConsoleRenderer(colors=_stream_supports_color(sys.stdout)),
            ],
        )
    )
    _install_handlers(
        LOGGER_NAMESPACE,
        logging.DEBUG,
        console_handler,
        _json_file_handler(log_file, logging.DEBUG),
    )
    _install_handlers(
        TELEMETRY_LOGGER_NAME,
        logging.INFO,
        _json_file_handler(log_dir / TELEMETRY_LOG_FILE_NAME, logging.INFO),
    )

    logging.getLogger(f"{LOGGER_NAMESPACE}.logging").info(
        "logging configured console_level=%s path=%s",
        settings.log_level.upper(),
        log_file,
    )
    return log_file


def resolve_log_level(raw_level: str) -> int:
    resolved = logging.getLevelName(raw_level.strip().upper())
    if isinstance(resolved, int):
        return resolved
    return logging.INFO


def _install_handlers(logger_name: str, level: int, *handlers: logging.Handler) -> None:
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)


def _json_file_handler(path: Path, level: int) -> logging.FileHandler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[*_pre_chain(), _lift_message_fields],
            processors=[
                _add_source_location,
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(sort_keys=True),
            ],
        )
    )
    return handler


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        _add_component,
    ]


def _add_component(
    _logger: logging.Logger | None,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    # tubelens.pagination -> pagination
    logger_name = event_dict.get("logger")
    if isinstance(logger_name, str) and logger_name.startswith(f"{LOGGER_NAMESPACE}."):
        event_dict.setdefault("component", logger_name.split(".", 2)[1])
    return event_dict


def _lift_message_fields(
    _logger: logging.Logger | None,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event = event_dict.get("event")
    if not isinstance(event, str):
        return event_dict
    matches = list(_MESSAGE_FIELD_PATTERN.finditer(event))
    if not matches:
        return event_dict

    for matched in matches:
        value = matched.group("value").strip()
        event_dict.setdefault(matched.group("key"), int(value) if value.isdigit() else value)
    event_dict["event"] = event[: matches[0].start()].strip()
    return event_dict


def _add_source_location(
    _logger: logging.Logger | None,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict["module"] = record.module
        event_dict["lineno"] = record.lineno
    return event_dict


def _stream_supports_color(stream: object) -> bool:
    isatty = getattr(stream, "isatty", None)
    if not callable(isatty):
        return False
    try:
        return bool(isatty())
    except (OSError, ValueError):
        return False
