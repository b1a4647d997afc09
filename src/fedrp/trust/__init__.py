"""Trust chain validation against a configured trust anchor.

Example:
    >>> from fedrp.trust import TrustValidator
    >>> validator = TrustValidator(resolver, "https://ta.example.com")
    >>> result = await validator.validate("https://op.example.com")
"""

from fedrp.trust.classify import (
    NETWORK_ERROR_MARKERS,
    classify_resolution_error,
    failure_from_exception,
    timeout_failure,
)
from fedrp.trust.models import (
    EntityStatement,
    TrustChain,
    ValidationErrorCode,
    ValidationFailure,
    ValidationRecord,
    ValidationResult,
)
from fedrp.trust.resolver import TrustChainResolver
from fedrp.trust.termination import check_chain_termination
from fedrp.trust.validator import TrustValidator

__all__ = [
    "NETWORK_ERROR_MARKERS",
    "EntityStatement",
    "TrustChain",
    "TrustChainResolver",
    "TrustValidator",
    "ValidationErrorCode",
    "ValidationFailure",
    "ValidationRecord",
    "ValidationResult",
    "check_chain_termination",
    "classify_resolution_error",
    "failure_from_exception",
    "timeout_failure",
]
