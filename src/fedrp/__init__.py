"""fedrp: OpenID Federation trust layer for relying parties.

Before an RP redirects a user to an OpenID Provider it must know that the
OP is part of its federation. This package provides:

- ``TrustValidator``: cached, time-boxed trust chain validation against a
  configured trust anchor.
- ``DiscoveryService``: cached OpenID Connect discovery of OP endpoints.
- ``MultiOPCredentialStore``: per-OP client secrets persisted to JSON.
- ``LoginGate``: runs the three in the order a login requires.
"""

__version__ = "0.1.0"

from fedrp.config import FederationRPConfig
from fedrp.credentials import CredentialRecord, MultiOPCredentialStore
from fedrp.discovery import DiscoveryService, OPMetadata
from fedrp.errors import (
    ConfigurationError,
    CredentialsStorageError,
    DiscoveryError,
    FedRPError,
    UntrustedOPError,
)
from fedrp.login import LoginContext, LoginGate, build_login_gate
from fedrp.trust import TrustChainResolver, TrustValidator, ValidationResult

__all__ = [
    "ConfigurationError",
    "CredentialRecord",
    "CredentialsStorageError",
    "DiscoveryError",
    "DiscoveryService",
    "FedRPError",
    "FederationRPConfig",
    "LoginContext",
    "LoginGate",
    "MultiOPCredentialStore",
    "OPMetadata",
    "TrustChainResolver",
    "TrustValidator",
    "UntrustedOPError",
    "ValidationResult",
    "__version__",
]
