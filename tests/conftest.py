"""Shared pytest fixtures for fedrp tests."""

from __future__ import annotations

import pytest

from fedrp.testing import build_chain
from fedrp.trust import TrustChain
from tests.factories import INTERMEDIATE, OP_ID, OTHER_ANCHOR, TRUST_ANCHOR

# Load fedrp.testing fixtures (mock_clock, mock_resolver, capturing_logger, trust_validator)
pytest_plugins = ["fedrp.testing.fixtures"]


@pytest.fixture
def valid_chain() -> TrustChain:
    """OP -> intermediate -> TRUST_ANCHOR."""
    return build_chain(OP_ID, TRUST_ANCHOR, [INTERMEDIATE])


@pytest.fixture
def foreign_chain() -> TrustChain:
    """OP chain that terminates at OTHER_ANCHOR."""
    return build_chain(OP_ID, OTHER_ANCHOR)
