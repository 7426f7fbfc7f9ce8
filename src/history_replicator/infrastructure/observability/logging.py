"""
Structured logging for history-replicator.

Every entry carries the layer that produced it and, where it applies, the
store or upstream resource it concerns, so one batch can be followed from
the fetcher through the coordinator into each adapter:

    {"app": "history-replicator", "layer": "storage", "component": "leveldb-adapter",
     "store": "leveldb", "event": "batch_written", "severity": "INFO", ...}

Layers: infrastructure, ingestion, replication, storage, api.
"""

import logging
import sys
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor

APP_NAME = "history-replicator"

Layer = Literal["infrastructure", "ingestion", "replication", "storage", "api"]

_HANDLER_NAME = "history-replicator-stdout"


def stamp_service(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag the entry with the app name and an upper-case ``severity``."""
    event_dict["app"] = APP_NAME
    level = event_dict.get("level")
    event_dict["severity"] = level.upper() if isinstance(level, str) else "INFO"
    return event_dict


def resolve_level(level: str) -> int:
    """Map a level name to its number; unknown names mean INFO."""
    return logging.getLevelNamesMapping().get(str(level).upper(), logging.INFO)


def _install_root_handler(log_level: int) -> None:
    # Replace only our own handler so repeated setup (CLI, API lifespan, tests)
    # does not stack outputs and leaves foreign handlers in place.
    root = logging.getLogger()
    for handler in list(root.handlers):
        if handler.get_name() == _HANDLER_NAME:
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(log_level)


def setup_logging(
    level: str = "INFO",
    json_logs: bool = True,
    include_timestamp: bool = True,
) -> None:
    """
    Configure stdlib logging and structlog for the whole process.

    Args:
        level: Root level name; unknown names fall back to INFO
        json_logs: JSON lines when True, colored console output otherwise
        include_timestamp: Prefix entries with an ISO timestamp
    """
    _install_root_handler(resolve_level(level))

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        stamp_service,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if include_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(exception_formatter=structlog.dev.plain_traceback)
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _layer_logger(layer: Layer, component: str, **context: Any) -> structlog.stdlib.BoundLogger:
    bound = {k: v for k, v in context.items() if v is not None}
    return structlog.get_logger(f"history_replicator.{layer}").bind(
        layer=layer, component=component, **bound
    )


def get_infrastructure_logger(component: str, **context: Any) -> structlog.stdlib.BoundLogger:
    """Registry, CLI and cursor persistence."""
    return _layer_logger("infrastructure", component, **context)


def get_ingestion_logger(
    component: str, resource: str | None = None, **context: Any
) -> structlog.stdlib.BoundLogger:
    """Fetcher, cursor and polling loop; ``resource`` names the upstream endpoint."""
    return _layer_logger("ingestion", component, resource=resource, **context)


def get_replication_logger(
    component: str = "coordinator", **context: Any
) -> structlog.stdlib.BoundLogger:
    return _layer_logger("replication", component, **context)


def get_storage_logger(
    component: str, store: str | None = None, **context: Any
) -> structlog.stdlib.BoundLogger:
    """Store adapters and the read service; ``store`` is the store id."""
    return _layer_logger("storage", component, store=store, **context)


def get_api_logger(component: str = "fastapi", **context: Any) -> structlog.stdlib.BoundLogger:
    return _layer_logger("api", component, **context)
