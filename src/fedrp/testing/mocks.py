"""Mock trust chain resolver and chain builders for fedrp tests.

Features:
    - Pre-set chains per entity id, or a default chain.
    - Pre-set failures per entity id, or for every call.
    - Configurable delay for timeout and concurrency tests.
    - Call recording for "was the resolver contacted?" assertions.
    - MockClock for deterministic cache expiry.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Optional

from fedrp.trust.models import EntityStatement, TrustChain


def build_chain(
    op_entity_id: str,
    trust_anchor: str,
    intermediates: Iterable[str] = (),
    *,
    unverified: Iterable[str] = (),
) -> TrustChain:
    """Build a consistent chain OP -> intermediates -> trust anchor.

    Each link is a self-issued entity configuration naming the next entity as
    its only authority hint.

    Args:
        op_entity_id: Leaf entity.
        trust_anchor: Terminal entity.
        intermediates: Entities between leaf and anchor, bottom up.
        unverified: Entities whose statement is marked as failing signature
            verification.

    Example:
        >>> chain = build_chain("https://op.example.com", "https://ta.example.com")
        >>> chain.terminus
        'https://ta.example.com'
    """
    path = [op_entity_id, *intermediates, trust_anchor]
    bad = set(unverified)
    statements = [
        EntityStatement(
            iss=entity,
            sub=entity,
            authority_hints=[superior] if superior else [],
            signature_verified=entity not in bad,
        )
        for entity, superior in zip(path, [*path[1:], None])
    ]
    return TrustChain(entity_id=op_entity_id, statements=statements)


class MockClock:
    """Controllable clock for cache expiry tests (call it like time.time)."""

    def __init__(self, initial: float = 1000.0) -> None:
        self.current = initial

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class MockTrustChainResolver:
    """Scriptable trust chain resolver.

    Failures are not cleared after being raised, so repeated validations of
    the same OP keep failing until ``set_failure(..., None)`` or ``clear()``.

    Attributes:
        calls: Entity ids passed to resolve_trust_chain(), in call order.
    """

    def __init__(self, default_chain: Optional[TrustChain] = None) -> None:
        self._chains: dict[str, TrustChain] = {}
        self._failures: dict[str, BaseException] = {}
        self._default_chain = default_chain
        self._default_failure: Optional[BaseException] = None
        self._delay_seconds: float = 0.0
        self.calls: list[str] = []

    def set_chain(self, entity_id: str, chain: TrustChain) -> None:
        self._chains[entity_id] = chain

    def set_default_chain(self, chain: Optional[TrustChain]) -> None:
        self._default_chain = chain

    def set_failure(self, entity_id: str, exception: Optional[BaseException]) -> None:
        """Raise ``exception`` when ``entity_id`` is resolved (None to disable)."""
        if exception is None:
            self._failures.pop(entity_id, None)
        else:
            self._failures[entity_id] = exception

    def set_default_failure(self, exception: Optional[BaseException]) -> None:
        self._default_failure = exception

    def set_delay(self, seconds: float) -> None:
        """Sleep before answering. Useful for timeout and de-duplication tests."""
        self._delay_seconds = max(0.0, seconds)

    def call_count(self, entity_id: Optional[str] = None) -> int:
        if entity_id is None:
            return len(self.calls)
        return self.calls.count(entity_id)

    async def resolve_trust_chain(self, entity_id: str) -> TrustChain:
        self.calls.append(entity_id)
        if self._delay_seconds > 0:
            await asyncio.sleep(self._delay_seconds)

        failure = self._failures.get(entity_id, self._default_failure)
        if failure is not None:
            raise failure
        chain = self._chains.get(entity_id, self._default_chain)
        if chain is None:
            raise LookupError(f"No trust chain configured for {entity_id}")
        return chain

    def clear(self) -> None:
        """Clear recorded calls, pre-set chains, failures, and delay."""
        self.calls.clear()
        self._chains.clear()
        self._failures.clear()
        self._default_chain = None
        self._default_failure = None
        self._delay_seconds = 0.0


__all__ = ["MockClock", "MockTrustChainResolver", "build_chain"]
