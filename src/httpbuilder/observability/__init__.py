"""Observability module for httpbuilder.

This module provides structured logging for the request pipeline.

Features:
- JSON lines (HTTPBUILDER_LOG_FORMAT=json) or colored console output
- Context binding for per-request values
- Masking of credentials in logged URLs, headers and request properties

Example:
    >>> from httpbuilder.observability import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("httpbuilder.request.started", request_id=1, method="GET")
"""

from httpbuilder.observability.logging import (
    bind_context,
    clear_context,
    configure_logging,
    env_flag,
    get_logger,
    is_debug_mode,
    redact_request_fields,
    sanitize_for_logging,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "env_flag",
    "get_logger",
    "is_debug_mode",
    "redact_request_fields",
    "sanitize_for_logging",
]
