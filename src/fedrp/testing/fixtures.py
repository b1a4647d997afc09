"""Pytest fixtures for fedrp tests.

Fixtures (use with pytest):
    mock_clock: MockClock starting at 1000.0.
    mock_resolver: MockTrustChainResolver with no chains configured.
    capturing_logger: structlog CapturingLogger to assert on emitted events.
    trust_validator: TrustValidator wired to the three fixtures above.
"""

from typing import AsyncIterator

import pytest
from structlog.testing import CapturingLogger

from fedrp.testing.mocks import MockClock, MockTrustChainResolver
from fedrp.trust import TrustValidator

TEST_TRUST_ANCHOR = "https://ta.example.com"


@pytest.fixture
def mock_clock() -> MockClock:
    return MockClock()


@pytest.fixture
def mock_resolver() -> MockTrustChainResolver:
    """Create a fresh MockTrustChainResolver for the test."""
    return MockTrustChainResolver()


@pytest.fixture
def capturing_logger() -> CapturingLogger:
    """Logger that records ``(method_name, args, kwargs)`` for every call."""
    return CapturingLogger()


@pytest.fixture
async def trust_validator(
    mock_resolver: MockTrustChainResolver,
    mock_clock: MockClock,
    capturing_logger: CapturingLogger,
) -> AsyncIterator[TrustValidator]:
    """Provide a TrustValidator anchored at TEST_TRUST_ANCHOR; closed after the test."""
    validator = TrustValidator(
        mock_resolver,
        TEST_TRUST_ANCHOR,
        cache_ttl=3600.0,
        clock=mock_clock,
        logger=capturing_logger,
    )
    async with validator:
        yield validator
