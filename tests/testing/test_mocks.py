"""Unit tests for fedrp.testing.mocks."""

import asyncio

import pytest

from fedrp.errors import InvalidSignatureError
from fedrp.testing import MockClock, MockTrustChainResolver, build_chain

OP = "https://op.example.com"
IA = "https://ia.example.com"
TA = "https://ta.example.com"


class TestBuildChain:
    def test_statements_link_to_the_anchor(self) -> None:
        chain = build_chain(OP, TA, [IA])

        assert [s.iss for s in chain.statements] == [OP, IA, TA]
        assert chain.leaf is not None
        assert chain.leaf.sub == OP
        assert chain.terminus == TA
        assert len(chain) == 3

    def test_unverified_entities_are_flagged(self) -> None:
        chain = build_chain(OP, TA, [IA], unverified=[IA])

        assert [s.signature_verified for s in chain.statements] == [True, False, True]


class TestMockClock:
    def test_advance(self) -> None:
        clock = MockClock()

        clock.advance(2.5)

        assert clock() == 1002.5


class TestMockTrustChainResolver:
    async def test_returns_configured_chain_and_records_calls(self) -> None:
        chain = build_chain(OP, TA)
        resolver = MockTrustChainResolver()
        resolver.set_chain(OP, chain)

        assert await resolver.resolve_trust_chain(OP) is chain
        assert resolver.calls == [OP]
        assert resolver.call_count(OP) == 1
        assert resolver.call_count("https://other.example.com") == 0

    async def test_default_chain(self) -> None:
        chain = build_chain(OP, TA)
        resolver = MockTrustChainResolver(default_chain=chain)

        assert await resolver.resolve_trust_chain("https://any.example.com") is chain

    async def test_unconfigured_entity_raises(self) -> None:
        with pytest.raises(LookupError):
            await MockTrustChainResolver().resolve_trust_chain(OP)

    async def test_failure_is_raised_on_every_call(self) -> None:
        resolver = MockTrustChainResolver(default_chain=build_chain(OP, TA))
        resolver.set_failure(OP, InvalidSignatureError("bad"))

        for _ in range(2):
            with pytest.raises(InvalidSignatureError):
                await resolver.resolve_trust_chain(OP)

        resolver.set_failure(OP, None)
        assert (await resolver.resolve_trust_chain(OP)).terminus == TA

    async def test_default_failure(self) -> None:
        resolver = MockTrustChainResolver()
        resolver.set_default_failure(ConnectionError("refused"))

        with pytest.raises(ConnectionError):
            await resolver.resolve_trust_chain(OP)

    async def test_delay(self) -> None:
        resolver = MockTrustChainResolver(default_chain=build_chain(OP, TA))
        resolver.set_delay(1.0)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(resolver.resolve_trust_chain(OP), timeout=0.01)

    async def test_clear(self) -> None:
        resolver = MockTrustChainResolver(default_chain=build_chain(OP, TA))
        await resolver.resolve_trust_chain(OP)

        resolver.clear()

        assert resolver.calls == []
        with pytest.raises(LookupError):
            await resolver.resolve_trust_chain(OP)
