"""
Structured logging for the token verification SDK.

The SDK never configures logging on import. Host applications call
``configure_logging`` once, or route ``structlog`` through their own setup.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
project_id_var: ContextVar[Optional[str]] = ContextVar('project_id', default=None)

EventDict = Dict[str, Any]


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Render SDK log events as JSON lines through the stdlib root logger."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _bind_service_name(service_name),
            add_component,
            add_correlation_context,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def _bind_service_name(service_name: str):
    def processor(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("sdk_service", service_name)
        return event_dict
    return processor


def add_component(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag events with the SDK area taken from a ``<area>.<module>`` logger name."""
    area, sep, _ = event_dict.get("logger", "").partition(".")
    if sep:
        event_dict["component"] = area
    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    for key, var in (("request_id", request_id_var), ("project_id", project_id_var)):
        value = var.get()
        if value:
            event_dict.setdefault(key, value)
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a correlation id for the current verification call."""
    request_id = request_id or str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_project_context(project_id: Optional[str] = None) -> None:
    if project_id:
        project_id_var.set(project_id)


def clear_context() -> None:
    request_id_var.set(None)
    project_id_var.set(None)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
