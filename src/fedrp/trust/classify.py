"""Mapping from resolver exceptions to trust validation errors.

This is the only place where exception *text* is inspected. Typed errors
from :mod:`fedrp.errors` and well-known exception classes are matched
first; the text markers are a fallback for resolvers that raise plain
exceptions.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from fedrp.errors import TrustChainResolutionError
from fedrp.trust.models import ValidationErrorCode, ValidationFailure

# Substrings (matched case-insensitively) that mark an exception as a network failure.
NETWORK_ERROR_MARKERS: tuple[str, ...] = (
    "fetch",
    "econnrefused",
    "enotfound",
    "etimedout",
    "unreachable",
    "connection refused",
    "connection reset",
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
)


def classify_resolution_error(exc: BaseException) -> ValidationErrorCode:
    """Return the validation error code for an exception raised while resolving.

    Args:
        exc: Exception raised by a trust chain resolver.

    Returns:
        The code of a typed resolver error; ``timeout`` for timeouts;
        ``network_error`` for transport failures or network-looking text;
        ``validation_error`` otherwise.

    Example:
        >>> classify_resolution_error(RuntimeError("connect ECONNREFUSED 10.0.0.1:443"))
        <ValidationErrorCode.NETWORK_ERROR: 'network_error'>
    """
    if isinstance(exc, TrustChainResolutionError):
        try:
            return ValidationErrorCode(exc.code)
        except ValueError:
            return ValidationErrorCode.VALIDATION_ERROR
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)):
        return ValidationErrorCode.TIMEOUT
    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return ValidationErrorCode.NETWORK_ERROR

    text = str(exc).lower()
    if any(marker in text for marker in NETWORK_ERROR_MARKERS):
        return ValidationErrorCode.NETWORK_ERROR
    return ValidationErrorCode.VALIDATION_ERROR


def failure_from_exception(exc: BaseException, op_entity_id: str) -> ValidationFailure:
    """Build the ValidationFailure reported for ``exc``."""
    code = classify_resolution_error(exc)
    reason = str(exc) or type(exc).__name__
    if code in (ValidationErrorCode.NETWORK_ERROR, ValidationErrorCode.OP_UNREACHABLE):
        message = f"OP entity configuration could not be fetched: {reason}"
    elif code is ValidationErrorCode.VALIDATION_ERROR:
        message = f"Trust chain validation failed: {reason}"
    else:
        message = reason
    details: dict[str, Any] = {"error": reason, "error_type": type(exc).__name__}
    if isinstance(exc, TrustChainResolutionError):
        reserved = {*details, "op_entity_id", "timestamp"}
        details.update({k: v for k, v in exc.details.items() if k not in reserved})
    return ValidationFailure.create(code, message, op_entity_id, **details)


def timeout_failure(op_entity_id: str, timeout_seconds: float) -> ValidationFailure:
    """Build the ValidationFailure reported when resolution loses the race against its deadline."""
    return ValidationFailure.create(
        ValidationErrorCode.TIMEOUT,
        f"OP entity configuration fetch timed out after {timeout_seconds:g} seconds",
        op_entity_id,
        timeout=f"{timeout_seconds:g}s",
    )
