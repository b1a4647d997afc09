"""fedrp testing utilities.

Example:
    >>> from fedrp.testing import MockTrustChainResolver, build_chain
    >>> resolver = MockTrustChainResolver(
    ...     build_chain("https://op.example.com", "https://ta.example.com")
    ... )
"""

from fedrp.testing.mocks import MockClock, MockTrustChainResolver, build_chain

__all__ = ["MockClock", "MockTrustChainResolver", "build_chain"]
