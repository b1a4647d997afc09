"""Credential records and the on-disk credentials file format.

File layout (camelCase on disk)::

    {
      "rpEntityId": "https://rp.example.com",
      "ops": {
        "https://op1.example.com": {
          "clientSecret": "...",
          "registeredAt": "2026-01-01T00:00:00Z"
        }
      }
    }

An entry that cannot be parsed is kept on disk unchanged until its OP is
stored again or cleared. A legacy single-OP file has ``entityId``, ``clientSecret`` and
``registeredAt`` at the top level and no ``ops`` key.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import ConfigDict, Field

from fedrp.models.base import FedRPBaseModel


class OPCredentialEntry(FedRPBaseModel):
    """Per-OP slot of the credentials file. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    client_secret: str = Field(..., alias="clientSecret", min_length=1, repr=False)
    registered_at: datetime = Field(..., alias="registeredAt")


class CredentialsFile(FedRPBaseModel):
    """Whole credentials file, owned by one RP."""

    model_config = ConfigDict(extra="ignore")

    rp_entity_id: str = Field(..., alias="rpEntityId")
    ops: dict[str, OPCredentialEntry] = Field(default_factory=dict)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class LegacyCredentials(FedRPBaseModel):
    """Single-OP credentials file written before multi-OP support."""

    model_config = ConfigDict(extra="ignore")

    entity_id: str = Field(..., alias="entityId", min_length=1)
    client_secret: str = Field(..., alias="clientSecret", min_length=1, repr=False)
    registered_at: Optional[str] = Field(default=None, alias="registeredAt")

    @classmethod
    def matches(cls, data: Any) -> bool:
        """Return True if ``data`` has the legacy shape (and is not a new-format file)."""
        return (
            isinstance(data, dict)
            and "ops" not in data
            and bool(data.get("entityId"))
            and bool(data.get("clientSecret"))
        )


class CredentialRecord(FedRPBaseModel):
    """Client credentials this RP holds for one OP.

    Attributes:
        op_entity_id: The OP the client was registered with.
        client_secret: Secret issued at registration (never logged or repr'd).
        registered_at: When the secret was stored (UTC).
        rp_entity_id: This RP's entity id.
    """

    op_entity_id: str
    client_secret: str = Field(..., repr=False)
    registered_at: datetime
    rp_entity_id: str
