"""fedrp error taxonomy.

This module defines the error hierarchy for the federation RP trust layer,
providing structured error handling with specific error codes and context
information.

Three families are defined here:

- Discovery errors, raised by :class:`fedrp.discovery.DiscoveryService`
  (``OP_UNREACHABLE``, ``DISCOVERY_TIMEOUT``, ``INVALID_DISCOVERY_RESPONSE``,
  ``DISCOVERY_FAILED``).
- Typed trust chain resolution errors, raised by resolver implementations and
  translated by the trust validator into ``ValidationFailure`` entries.
- Store, configuration and login gate errors.
"""

from __future__ import annotations

from typing import Any


class FedRPError(Exception):
    """Base exception for all fedrp errors.

    Attributes:
        code: Machine-readable error code
        message: Human-readable error message
        details: Optional additional error context
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(FedRPError):
    """Raised when a component is constructed with missing or insecure configuration."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(code="fedrp:config/invalid", message=message, details=details or {})


# --- Discovery ---


class DiscoveryError(FedRPError):
    """Base class for OP discovery failures.

    Attributes:
        op_entity_id: The OP whose discovery document could not be used.
    """

    def __init__(
        self,
        code: str,
        op_entity_id: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            details={"op_entity_id": op_entity_id, **(details or {})},
        )
        self.op_entity_id = op_entity_id


class OPUnreachableError(DiscoveryError):
    """Raised when the OP host cannot be connected to."""

    def __init__(self, op_entity_id: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="OP_UNREACHABLE",
            op_entity_id=op_entity_id,
            message=(
                f"Could not connect to OP at {op_entity_id}. "
                "Please check the URL and try again."
            ),
            details={"reason": reason, **(details or {})},
        )


class DiscoveryTimeoutError(DiscoveryError):
    """Raised when the discovery request does not complete in time.

    Attributes:
        timeout_seconds: The timeout that was exceeded.
    """

    def __init__(
        self,
        op_entity_id: str,
        timeout_seconds: float,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            code="DISCOVERY_TIMEOUT",
            op_entity_id=op_entity_id,
            message=(
                f"Discovery request to {op_entity_id} timed out after {timeout_seconds:g} seconds."
            ),
            details={"timeout_seconds": timeout_seconds, **(details or {})},
        )
        self.timeout_seconds = timeout_seconds


class InvalidDiscoveryResponseError(DiscoveryError):
    """Raised for a non-success status, a non-object body, or missing required fields.

    Attributes:
        status_code: HTTP status when the OP answered with a non-success status.
        missing_fields: Required fields absent from the document, in canonical order.
    """

    def __init__(
        self,
        op_entity_id: str,
        message: str,
        *,
        status_code: int | None = None,
        missing_fields: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details_dict: dict[str, Any] = {}
        if status_code is not None:
            details_dict["status_code"] = status_code
        if missing_fields:
            details_dict["missing_fields"] = list(missing_fields)
        if details:
            details_dict.update(details)
        super().__init__(
            code="INVALID_DISCOVERY_RESPONSE",
            op_entity_id=op_entity_id,
            message=message,
            details=details_dict,
        )
        self.status_code = status_code
        self.missing_fields = list(missing_fields or [])


class DiscoveryFailedError(DiscoveryError):
    """Catch-all for discovery failures that fit no other category."""

    def __init__(self, op_entity_id: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="DISCOVERY_FAILED",
            op_entity_id=op_entity_id,
            message=f"Discovery failed for {op_entity_id}: {reason}",
            details={"reason": reason, **(details or {})},
        )


# --- Trust chain resolution (raised by resolver implementations) ---


class TrustChainResolutionError(FedRPError):
    """Base class for typed failures a trust chain resolver may raise.

    The ``code`` of every subclass is one of the trust validator's error
    codes, so the validator can map it without inspecting message text.
    """

    default_code = "validation_error"

    def __init__(
        self,
        message: str,
        entity_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details_dict = dict(details or {})
        if entity_id is not None:
            details_dict.setdefault("entity_id", entity_id)
        super().__init__(code=self.default_code, message=message, details=details_dict)
        self.entity_id = entity_id


class EntityUnreachableError(TrustChainResolutionError):
    """An entity configuration in the chain could not be fetched."""

    default_code = "op_unreachable"


class InvalidSignatureError(TrustChainResolutionError):
    """A statement in the chain failed signature verification."""

    default_code = "invalid_signature"


class MissingAuthorityHintsError(TrustChainResolutionError):
    """An entity has no authority hints, so the chain cannot be walked upwards."""

    default_code = "missing_authority_hints"


class TrustChainInvalidError(TrustChainResolutionError):
    """The chain could not be assembled into a valid path to a trust anchor."""

    default_code = "trust_chain_invalid"


# --- Credential store ---


class CredentialsStorageError(FedRPError):
    """Raised when the credential store cannot persist its state to disk.

    This is the only store error that propagates: there is no useful
    degraded answer to "the secret could not be saved".

    Attributes:
        path: The credentials file that could not be written.
    """

    def __init__(self, path: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="CREDENTIALS_STORAGE_FAILED",
            message=f"Failed to save credentials to {path}: {reason}",
            details={"path": path, "reason": reason, **(details or {})},
        )
        self.path = path
        self.reason = reason


# --- Login gate ---


class UntrustedOPError(FedRPError):
    """Raised by the login gate when an OP failed trust validation.

    Carries the OP identifier and the full error list so the caller can
    display them; no authentication step may proceed past this error.

    Attributes:
        op_entity_id: The rejected OP.
        errors: Serialized validation failures (``{code, message, details}``).
    """

    def __init__(self, op_entity_id: str, errors: list[dict[str, Any]]) -> None:
        codes = ", ".join(e.get("code", "?") for e in errors) or "unknown"
        super().__init__(
            code="fedrp:trust/untrusted_op",
            message=f"OP {op_entity_id} is not trusted ({codes})",
            details={"op_entity_id": op_entity_id, "errors": errors},
        )
        self.op_entity_id = op_entity_id
        self.errors = errors
