"""Entity identifier validation.

OpenID Federation entity identifiers (OP, RP and trust anchor ids) are
absolute URLs. ``https`` is required; plain ``http`` is accepted only when the
host is literally ``localhost`` (with or without a port), for development.
Fragments are never allowed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit

LOCALHOST = "localhost"


@dataclass(frozen=True)
class EntityIdError:
    code: str
    message: str


@dataclass(frozen=True)
class EntityIdValidation:
    """Outcome of :func:`validate_entity_id`.

    Attributes:
        is_valid: True when no errors were found.
        entity_id: The value that was checked (as given).
        errors: Problems found, empty when valid.
        scheme: Parsed URL scheme, when the value parsed as a URL.
        hostname: Parsed host, when the value parsed as a URL.
    """

    is_valid: bool
    entity_id: Any
    errors: list[EntityIdError] = field(default_factory=list)
    scheme: str | None = None
    hostname: str | None = None


def validate_entity_id(entity_id: Any) -> EntityIdValidation:
    """Validate an entity identifier URL.

    Args:
        entity_id: Candidate identifier (any type; non-strings are rejected).

    Returns:
        EntityIdValidation with error codes MISSING_ENTITY_ID, EMPTY_ENTITY_ID,
        INVALID_URL_FORMAT, INSECURE_PROTOCOL, INVALID_PROTOCOL or
        FRAGMENT_NOT_ALLOWED.

    Example:
        >>> validate_entity_id("https://op.example.com").is_valid
        True
        >>> validate_entity_id("http://op.example.com").errors[0].code
        'INSECURE_PROTOCOL'
    """
    if not entity_id or not isinstance(entity_id, str):
        return EntityIdValidation(
            is_valid=False,
            entity_id=entity_id,
            errors=[EntityIdError("MISSING_ENTITY_ID", "Entity ID is required and must be a string")],
        )

    if not entity_id.strip():
        return EntityIdValidation(
            is_valid=False,
            entity_id=entity_id,
            errors=[EntityIdError("EMPTY_ENTITY_ID", "Entity ID cannot be empty")],
        )

    try:
        parts = urlsplit(entity_id)
        hostname = parts.hostname
        parts.port  # noqa: B018 - raises ValueError on a malformed port
    except ValueError as exc:
        return EntityIdValidation(
            is_valid=False,
            entity_id=entity_id,
            errors=[EntityIdError("INVALID_URL_FORMAT", f"Entity ID must be a valid URL: {exc}")],
        )

    if not parts.scheme or not hostname or entity_id != entity_id.strip():
        return EntityIdValidation(
            is_valid=False,
            entity_id=entity_id,
            errors=[
                EntityIdError(
                    "INVALID_URL_FORMAT",
                    "Entity ID must be a valid absolute URL with scheme and host",
                )
            ],
        )

    errors: list[EntityIdError] = []
    scheme = parts.scheme.lower()
    if scheme == "http" and hostname != LOCALHOST:
        errors.append(
            EntityIdError(
                "INSECURE_PROTOCOL",
                "Entity ID must use HTTPS protocol (HTTP is only allowed for localhost)",
            )
        )
    elif scheme not in ("https", "http"):
        errors.append(
            EntityIdError("INVALID_PROTOCOL", f"Entity ID must use HTTPS protocol, got: {scheme}:")
        )

    if parts.fragment or entity_id.endswith("#"):
        errors.append(
            EntityIdError("FRAGMENT_NOT_ALLOWED", "Entity ID must not contain URL fragments (#)")
        )

    return EntityIdValidation(
        is_valid=not errors,
        entity_id=entity_id,
        errors=errors,
        scheme=scheme,
        hostname=hostname,
    )


def is_valid_entity_id(entity_id: Any) -> bool:
    """Return True if ``entity_id`` is a valid entity identifier."""
    return validate_entity_id(entity_id).is_valid


def is_secure_url(url: Any) -> bool:
    """Return True for an ``https`` URL or an ``http://localhost[:port]`` URL."""
    if not isinstance(url, str) or not url:
        return False
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return False
    if not hostname:
        return False
    scheme = parts.scheme.lower()
    return scheme == "https" or (scheme == "http" and hostname == LOCALHOST)
