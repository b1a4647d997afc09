"""Trust chain resolution capability.

Fetching entity configurations, walking authority hints and verifying
statement signatures is done by an external resolver; the trust validator
only consumes its result. Any object with a matching
``resolve_trust_chain`` coroutine satisfies :class:`TrustChainResolver`.

Resolvers should report failures with the typed errors from
:mod:`fedrp.errors` (``EntityUnreachableError``, ``InvalidSignatureError``,
``MissingAuthorityHintsError``, ``TrustChainInvalidError``). Untyped
exceptions are still accepted and classified from their text.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from fedrp.trust.models import TrustChain


@runtime_checkable
class TrustChainResolver(Protocol):
    """Resolves the trust chain of an entity.

    The call must be free of side effects for the RP: the validator may stop
    waiting for it (timeout) and discard a late result.
    """

    async def resolve_trust_chain(self, entity_id: str) -> TrustChain:
        """Resolve the chain from ``entity_id`` up to a trust anchor.

        Args:
            entity_id: The OP entity identifier.

        Returns:
            TrustChain ordered leaf first, terminus last.

        Raises:
            TrustChainResolutionError: Typed failure (preferred).
            Exception: Any other failure; classified by the validator.
        """
        ...
