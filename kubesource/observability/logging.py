"""Structured logging for kubesource.

Every event is a JSON line on stderr carrying the ``service`` and the
watched ``namespace``. Property values and raw resource data never reach the
log: the ``_drop_payload_fields`` processor replaces them with their size.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

_SERVICE_NAME = "kubesource"

# Fields that may carry ConfigMap/Secret content.
_PAYLOAD_FIELDS = frozenset({"data", "payload", "properties", "value", "values"})


def _drop_payload_fields(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    for key in _PAYLOAD_FIELDS & event_dict.keys():
        value = event_dict.pop(key)
        event_dict[f"{key}_size"] = len(value) if hasattr(value, "__len__") else 1
    return event_dict


def setup_logging(level: str = "info", namespace: str = "") -> None:
    """Configure structlog and bind the process-wide context."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            _drop_payload_fields,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=_SERVICE_NAME)
    if namespace:
        structlog.contextvars.bind_contextvars(namespace=namespace)


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(component=component)  # type: ignore[no-any-return]
