"""Configuration for the federation RP trust layer.

Settings are held in a frozen pydantic model. ``FederationRPConfig.from_env``
reads them from ``FEDRP_*`` environment variables; explicit keyword
overrides win over the environment.

Environment Variables:
    FEDRP_TRUST_ANCHOR_URL: Trust anchor entity id (required, https or http://localhost)
    FEDRP_RP_ENTITY_ID: This RP's entity id (owner of the credentials file)
    FEDRP_CREDENTIALS_FILE: Path of the multi-OP credentials file
    FEDRP_LEGACY_CREDENTIALS_FILE: Path of a single-OP credentials file to migrate
    FEDRP_DEFAULT_OP: OP that legacy credentials belong to
    FEDRP_VALIDATION_CACHE_TTL: Trust validation cache TTL in seconds
    FEDRP_DISCOVERY_CACHE_TTL: Discovery metadata cache TTL in seconds
    FEDRP_DISCOVERY_TIMEOUT: Discovery HTTP timeout in seconds
    FEDRP_SWEEP_INTERVAL: Expired cache entry sweep interval in seconds
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from pydantic import Field, ValidationError, field_validator

from fedrp.entity_id import is_secure_url, validate_entity_id
from fedrp.errors import ConfigurationError
from fedrp.models.base import FedRPBaseModel

# Fixed deadline for one trust chain resolution.
VALIDATION_TIMEOUT_SECONDS = 10.0

DEFAULT_VALIDATION_CACHE_TTL = 3600.0
DEFAULT_DISCOVERY_CACHE_TTL = 3600.0
DEFAULT_DISCOVERY_TIMEOUT = 10.0
DEFAULT_SWEEP_INTERVAL = 600.0
DEFAULT_RP_ENTITY_ID = "https://localhost:3006"
DEFAULT_CREDENTIALS_FILE = ".op-credentials.json"

ENV_TRUST_ANCHOR_URL = "FEDRP_TRUST_ANCHOR_URL"
ENV_RP_ENTITY_ID = "FEDRP_RP_ENTITY_ID"
ENV_CREDENTIALS_FILE = "FEDRP_CREDENTIALS_FILE"
ENV_LEGACY_CREDENTIALS_FILE = "FEDRP_LEGACY_CREDENTIALS_FILE"
ENV_DEFAULT_OP = "FEDRP_DEFAULT_OP"
ENV_VALIDATION_CACHE_TTL = "FEDRP_VALIDATION_CACHE_TTL"
ENV_DISCOVERY_CACHE_TTL = "FEDRP_DISCOVERY_CACHE_TTL"
ENV_DISCOVERY_TIMEOUT = "FEDRP_DISCOVERY_TIMEOUT"
ENV_SWEEP_INTERVAL = "FEDRP_SWEEP_INTERVAL"

_ENV_FIELDS: dict[str, str] = {
    "trust_anchor_url": ENV_TRUST_ANCHOR_URL,
    "rp_entity_id": ENV_RP_ENTITY_ID,
    "credentials_file": ENV_CREDENTIALS_FILE,
    "legacy_credentials_file": ENV_LEGACY_CREDENTIALS_FILE,
    "default_op_id": ENV_DEFAULT_OP,
    "validation_cache_ttl": ENV_VALIDATION_CACHE_TTL,
    "discovery_cache_ttl": ENV_DISCOVERY_CACHE_TTL,
    "discovery_timeout": ENV_DISCOVERY_TIMEOUT,
    "sweep_interval": ENV_SWEEP_INTERVAL,
}


def require_trust_anchor(trust_anchor_url: Any) -> str:
    """Return ``trust_anchor_url`` if usable as a trust anchor, else raise.

    Raises:
        ConfigurationError: If the URL is missing or neither https nor
            http://localhost.
    """
    if not trust_anchor_url or not isinstance(trust_anchor_url, str):
        raise ConfigurationError("Trust Anchor URL is required")
    if not is_secure_url(trust_anchor_url):
        raise ConfigurationError(
            "Trust Anchor URL must use HTTPS protocol (or http://localhost for development)",
            details={"trust_anchor_url": trust_anchor_url},
        )
    return trust_anchor_url


class FederationRPConfig(FedRPBaseModel):
    """Settings shared by the trust validator, discovery service and credential store.

    Attributes:
        trust_anchor_url: Root authority every OP trust chain must terminate at.
        rp_entity_id: Entity id of this RP; owner of the credentials file.
        credentials_file: Where per-OP client secrets are persisted.
        legacy_credentials_file: Optional single-OP credentials file to migrate.
        default_op_id: OP the legacy credentials were registered with.
        validation_cache_ttl: Seconds a trust decision (positive or negative) is cached.
        discovery_cache_ttl: Seconds OP discovery metadata is cached.
        discovery_timeout: Seconds before a discovery request times out.
        sweep_interval: Seconds between sweeps of expired cache entries.
    """

    trust_anchor_url: str = Field(..., description="Trust anchor entity id")
    rp_entity_id: str = Field(default=DEFAULT_RP_ENTITY_ID, description="This RP's entity id")
    credentials_file: Path = Field(default=Path(DEFAULT_CREDENTIALS_FILE))
    legacy_credentials_file: Optional[Path] = None
    default_op_id: Optional[str] = None
    validation_cache_ttl: float = Field(default=DEFAULT_VALIDATION_CACHE_TTL, gt=0)
    discovery_cache_ttl: float = Field(default=DEFAULT_DISCOVERY_CACHE_TTL, gt=0)
    discovery_timeout: float = Field(default=DEFAULT_DISCOVERY_TIMEOUT, gt=0)
    sweep_interval: float = Field(default=DEFAULT_SWEEP_INTERVAL, gt=0)

    @field_validator("trust_anchor_url")
    @classmethod
    def validate_trust_anchor_url(cls, v: str) -> str:
        if not is_secure_url(v):
            raise ValueError(
                "Trust Anchor URL must use HTTPS protocol (or http://localhost for development)"
            )
        return v

    @field_validator("rp_entity_id", "default_op_id")
    @classmethod
    def validate_entity_ids(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        result = validate_entity_id(v)
        if not result.is_valid:
            raise ValueError("; ".join(e.message for e in result.errors))
        return v

    @property
    def validation_timeout(self) -> float:
        return VALIDATION_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls, **overrides: Any) -> "FederationRPConfig":
        """Build a config from FEDRP_* environment variables.

        Args:
            **overrides: Field values that take precedence over the environment.

        Returns:
            Validated FederationRPConfig.

        Raises:
            ConfigurationError: If the trust anchor is missing or insecure, or a
                value cannot be parsed.
        """
        values: dict[str, Any] = {}
        for field_name, env_name in _ENV_FIELDS.items():
            raw = os.environ.get(env_name)
            if raw is not None and raw.strip():
                values[field_name] = raw.strip()
        values.update({k: v for k, v in overrides.items() if v is not None})

        if not values.get("trust_anchor_url"):
            raise ConfigurationError(
                f"Trust Anchor URL is required (set {ENV_TRUST_ANCHOR_URL})",
                details={"env": ENV_TRUST_ANCHOR_URL},
            )
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise ConfigurationError(
                f"Invalid configuration: {e.errors()[0]['msg']}",
                details={"fields": fields},
            ) from e
