"""Per-OP client credentials persisted for one RP.

Example:
    >>> from fedrp.credentials import MultiOPCredentialStore
    >>> store = MultiOPCredentialStore("https://rp.example.com", ".op-credentials.json")
    >>> store.has_credentials("https://op.example.com")
    False
"""

from fedrp.credentials.models import (
    CredentialRecord,
    CredentialsFile,
    LegacyCredentials,
    OPCredentialEntry,
)
from fedrp.credentials.store import MultiOPCredentialStore

__all__ = [
    "CredentialRecord",
    "CredentialsFile",
    "LegacyCredentials",
    "MultiOPCredentialStore",
    "OPCredentialEntry",
]
