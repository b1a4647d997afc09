"""Observability module for fedrp.

Structured logging (structlog) shared by the trust validator, the discovery
service and the credential store.

Example:
    >>> from fedrp.observability import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("fedrp.trust.validated", op_entity_id="https://op.example.com")
"""

from fedrp.observability.logging import (
    REDACTED_PLACEHOLDER,
    StructuredLogger,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    is_debug_mode,
    sanitize_for_logging,
)

__all__ = [
    "REDACTED_PLACEHOLDER",
    "StructuredLogger",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "is_debug_mode",
    "sanitize_for_logging",
]
