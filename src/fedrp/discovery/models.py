"""OpenID Provider metadata model."""

from __future__ import annotations

from typing import Any

from pydantic import ConfigDict, Field

from fedrp.models.base import FedRPBaseModel

DISCOVERY_PATH = "/.well-known/openid-configuration"

# Canonical order; missing fields are always reported in this order.
REQUIRED_FIELDS: tuple[str, ...] = (
    "issuer",
    "authorization_endpoint",
    "token_endpoint",
    "jwks_uri",
)


class OPMetadata(FedRPBaseModel):
    """OpenID Provider metadata from the discovery document.

    Only the endpoints the RP needs are declared; every other field of the
    document (``scopes_supported``, ``userinfo_endpoint``, ...) is kept as an
    extra attribute and returned by :meth:`to_dict`.

    Attributes:
        issuer: Provider issuer identifier.
        authorization_endpoint: Where the user is sent to authenticate.
        token_endpoint: Where the authorization code is exchanged.
        jwks_uri: Provider key set for ID token verification.
        discovered_at: Epoch seconds when the document was fetched.
        cached: True when served from the discovery cache.
    """

    model_config = ConfigDict(extra="allow")

    issuer: str = Field(..., description="Provider issuer identifier")
    authorization_endpoint: str = Field(..., description="Authorization endpoint URL")
    token_endpoint: str = Field(..., description="Token endpoint URL")
    jwks_uri: str = Field(..., description="JWKS endpoint URL")
    discovered_at: float = Field(..., description="Fetch time (epoch seconds)")
    cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return the discovery document plus ``discovered_at`` and ``cached``."""
        return self.model_dump()


def missing_required_fields(document: dict[str, Any]) -> list[str]:
    """Return the required fields that are absent or empty, in canonical order.

    Example:
        >>> missing_required_fields({"issuer": "https://op.example.com", "jwks_uri": ""})
        ['authorization_endpoint', 'token_endpoint', 'jwks_uri']
    """
    return [name for name in REQUIRED_FIELDS if not document.get(name)]


def build_discovery_url(op_entity_id: str) -> str:
    """Return the discovery document URL of an OP.

    All trailing slashes are stripped before the well-known path is appended;
    an OP identifier with a path keeps it.

    Example:
        >>> build_discovery_url("https://op.example.com//")
        'https://op.example.com/.well-known/openid-configuration'
        >>> build_discovery_url("https://example.com/tenant-a/")
        'https://example.com/tenant-a/.well-known/openid-configuration'
    """
    return op_entity_id.rstrip("/") + DISCOVERY_PATH
