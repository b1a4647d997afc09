"""Property-based tests for validation caching and discovery document checks."""

from __future__ import annotations

import asyncio

from hypothesis import given, settings
from hypothesis import strategies as st

from fedrp.discovery import REQUIRED_FIELDS, build_discovery_url, missing_required_fields
from fedrp.testing import MockClock, MockTrustChainResolver, build_chain
from fedrp.trust import TrustValidator

TA = "https://ta.example.com"
OP = "https://op.example.com"


@settings(max_examples=50)
@given(missing=st.sets(st.sampled_from(REQUIRED_FIELDS)))
def test_missing_fields_are_named_exactly(missing: set[str]) -> None:
    document = {name: f"https://op.example.com/{name}" for name in REQUIRED_FIELDS}
    for name in missing:
        del document[name]

    assert missing_required_fields(document) == [f for f in REQUIRED_FIELDS if f in missing]


@given(slashes=st.integers(min_value=0, max_value=5))
def test_discovery_url_ignores_trailing_slashes(slashes: int) -> None:
    assert build_discovery_url(OP + "/" * slashes) == build_discovery_url(OP)


@settings(max_examples=25, deadline=None)
@given(
    terminus=st.sampled_from([TA, "https://other.example.com"]),
    within=st.floats(min_value=0, max_value=3599),
    after=st.floats(min_value=3600, max_value=100_000),
)
def test_cached_result_is_identical_until_ttl(terminus: str, within: float, after: float) -> None:
    async def scenario() -> None:
        clock = MockClock()
        resolver = MockTrustChainResolver(build_chain(OP, terminus))
        validator = TrustValidator(resolver, TA, cache_ttl=3600, clock=clock)

        first = await validator.validate(OP)
        clock.advance(within)
        second = await validator.validate(OP)
        clock.current = 1000.0 + after
        third = await validator.validate(OP)
        await validator.aclose()

        assert second.cached is True
        assert second.model_dump(exclude={"cached"}) == first.model_dump(exclude={"cached"})
        assert third.cached is False
        assert third.timestamp > first.timestamp
        assert third.is_valid == first.is_valid

    asyncio.run(scenario())
