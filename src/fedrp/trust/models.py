"""Records exchanged by the trust validator.

- ``TrustChain`` / ``EntityStatement``: what a resolver hands back, already
  signature-checked by the resolver (leaf first, trust anchor last).
- ``ValidationFailure``: one ``{code, message, details}`` error.
- ``ValidationRecord``: the immutable cache slot for one OP.
- ``ValidationResult``: the caller-facing answer of ``validate()``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import Field

from fedrp.models.base import FedRPBaseModel


class ValidationErrorCode(str, Enum):
    """Error codes reported by the trust validator.

    Example:
        >>> ValidationErrorCode.TIMEOUT.value
        'timeout'
    """

    OP_UNREACHABLE = "op_unreachable"
    INVALID_SIGNATURE = "invalid_signature"
    MISSING_AUTHORITY_HINTS = "missing_authority_hints"
    TRUST_CHAIN_INVALID = "trust_chain_invalid"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    VALIDATION_ERROR = "validation_error"


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ValidationFailure(FedRPBaseModel):
    """A single trust validation error.

    Attributes:
        code: Error category.
        message: Human-readable explanation.
        details: Context; always carries ``op_entity_id`` and an ISO ``timestamp``.
    """

    code: ValidationErrorCode
    message: str
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def create(
        cls,
        code: ValidationErrorCode,
        message: str,
        op_entity_id: str,
        **details: Any,
    ) -> "ValidationFailure":
        payload = {k: v for k, v in details.items() if v is not None}
        payload["op_entity_id"] = op_entity_id
        payload["timestamp"] = _iso_now()
        return cls(code=code, message=message, details=payload)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "details": dict(self.details)}


class EntityStatement(FedRPBaseModel):
    """One link of a resolved trust chain.

    Attributes:
        iss: Issuer of the statement.
        sub: Subject the statement is about (iss == sub for entity configurations).
        authority_hints: Superiors the subject names.
        signature_verified: Whether the resolver verified this statement's signature.
        metadata: Pass-through statement metadata.
    """

    iss: str
    sub: str
    authority_hints: list[str] = Field(default_factory=list)
    signature_verified: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict)


class TrustChain(FedRPBaseModel):
    """A resolved trust chain, ordered from the leaf entity up to its terminus."""

    entity_id: str
    statements: list[EntityStatement] = Field(default_factory=list)

    @property
    def leaf(self) -> Optional[EntityStatement]:
        return self.statements[0] if self.statements else None

    @property
    def terminus(self) -> Optional[str]:
        """Issuer of the last statement, i.e. where the chain ends."""
        return self.statements[-1].iss if self.statements else None

    def __len__(self) -> int:
        return len(self.statements)


class ValidationRecord(FedRPBaseModel):
    """Cached trust decision for one OP.

    A record is never updated in place: a new validation writes a new
    record. ``expires_at`` is always ``timestamp + ttl``.
    """

    op_id: str
    is_valid: bool
    trust_anchor: Optional[str] = None
    errors: list[ValidationFailure] = Field(default_factory=list)
    timestamp: float
    expires_at: float

    @classmethod
    def create(
        cls,
        op_id: str,
        *,
        is_valid: bool,
        timestamp: float,
        ttl: float,
        trust_anchor: Optional[str] = None,
        errors: Optional[list[ValidationFailure]] = None,
    ) -> "ValidationRecord":
        return cls(
            op_id=op_id,
            is_valid=is_valid,
            trust_anchor=trust_anchor if is_valid else None,
            errors=list(errors or []),
            timestamp=timestamp,
            expires_at=timestamp + ttl,
        )


class ValidationResult(FedRPBaseModel):
    """Answer to "is this OP trusted under our trust anchor?".

    Attributes:
        op_entity_id: The OP that was validated.
        is_valid: True only when the chain terminates at the configured anchor.
        trust_anchor: The anchor the chain terminated at (valid results only).
        errors: Every failure found; empty when valid.
        cached: True when served from the validation cache.
        timestamp: When the underlying validation was performed (epoch seconds).
    """

    op_entity_id: str
    is_valid: bool
    trust_anchor: Optional[str] = None
    errors: list[ValidationFailure] = Field(default_factory=list)
    cached: bool = False
    timestamp: float

    @classmethod
    def from_record(cls, record: ValidationRecord, *, cached: bool) -> "ValidationResult":
        return cls(
            op_entity_id=record.op_id,
            is_valid=record.is_valid,
            trust_anchor=record.trust_anchor,
            errors=list(record.errors),
            cached=cached,
            timestamp=record.timestamp,
        )

    @property
    def error_codes(self) -> list[str]:
        return [e.code.value for e in self.errors]

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase keys used by the RP's web layer."""
        data: dict[str, Any] = {
            "opEntityId": self.op_entity_id,
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "cached": self.cached,
            "timestamp": self.timestamp,
        }
        if self.trust_anchor is not None:
            data["trustAnchor"] = self.trust_anchor
        return data
