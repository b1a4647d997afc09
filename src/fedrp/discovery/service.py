"""OpenID Connect discovery for federated OPs.

Fetches ``{op}/.well-known/openid-configuration``, checks the endpoints the
RP needs and caches the result per OP for ``cache_ttl`` seconds. Failures
are raised as :class:`~fedrp.errors.DiscoveryError` subclasses whose
``code`` tells the caller what went wrong.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from fedrp.cache import Clock, ExpiringCache
from fedrp.config import DEFAULT_DISCOVERY_CACHE_TTL, DEFAULT_DISCOVERY_TIMEOUT
from fedrp.discovery.models import OPMetadata, build_discovery_url, missing_required_fields
from fedrp.errors import (
    DiscoveryError,
    DiscoveryFailedError,
    DiscoveryTimeoutError,
    InvalidDiscoveryResponseError,
    OPUnreachableError,
)
from fedrp.observability import StructuredLogger, get_logger


class DiscoveryService:
    """OpenID Connect discovery client with a per-OP metadata cache.

    Example:
        >>> discovery = DiscoveryService(timeout=5.0)
        >>> metadata = await discovery.discover("https://op.example.com")
        >>> metadata.authorization_endpoint
        'https://op.example.com/authorize'
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_DISCOVERY_TIMEOUT,
        cache_ttl: float = DEFAULT_DISCOVERY_CACHE_TTL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Clock] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        """Initialize the discovery client.

        Args:
            timeout: HTTP timeout in seconds for one discovery request.
            cache_ttl: Seconds discovered metadata stays cached.
            transport: Optional httpx transport for testing.
            clock: Time source for cache expiry (defaults to ``time.time``).
            logger: Structured logger; defaults to this module's structlog logger.
        """
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.timeout = timeout
        self._transport = transport
        self._clock: Clock = clock or time.time
        self._cache: ExpiringCache[OPMetadata] = ExpiringCache(
            default_ttl=cache_ttl, clock=self._clock
        )
        self._logger: StructuredLogger = logger or get_logger(__name__)

    @property
    def cache(self) -> ExpiringCache[OPMetadata]:
        return self._cache

    async def discover(self, op_entity_id: str) -> OPMetadata:
        """Return the OP's metadata, from the cache when still fresh.

        Args:
            op_entity_id: OP entity identifier (base URL).

        Returns:
            OPMetadata with ``cached`` set when served from the cache.

        Raises:
            OPUnreachableError: The OP host refused or could not be resolved.
            DiscoveryTimeoutError: The request did not complete in time.
            InvalidDiscoveryResponseError: Non-2xx status, a body that is not a
                JSON object, or missing required fields.
            DiscoveryFailedError: Any other failure.
        """
        cached = self.get_cached_metadata(op_entity_id)
        if cached is not None:
            self._logger.info("fedrp.discovery.cache_hit", op_entity_id=op_entity_id)
            return cached.model_copy(update={"cached": True})

        url = build_discovery_url(op_entity_id)
        self._logger.info("fedrp.discovery.fetching", op_entity_id=op_entity_id, url=url)
        try:
            metadata = await self._fetch(op_entity_id, url)
        except DiscoveryError as e:
            self._logger.error(
                "fedrp.discovery.failed",
                op_entity_id=op_entity_id,
                url=url,
                error_code=e.code,
                error=e.message,
            )
            raise

        entry = self._cache.put(op_entity_id, metadata)
        self._logger.info(
            "fedrp.discovery.fetched",
            op_entity_id=op_entity_id,
            issuer=metadata.issuer,
            expires_at=entry.expires_at,
        )
        return metadata

    def get_cached_metadata(self, op_entity_id: str) -> Optional[OPMetadata]:
        """Return cached metadata for the OP, or None if absent or expired."""
        return self._cache.get(op_entity_id)

    def clear_cache(self, op_entity_id: Optional[str] = None) -> None:
        """Drop the cached metadata of one OP, or of every OP when none is given."""
        if op_entity_id is not None:
            self._cache.evict(op_entity_id)
            self._logger.info("fedrp.discovery.cache_cleared", op_entity_id=op_entity_id)
        else:
            self._cache.clear()
            self._logger.info("fedrp.discovery.cache_cleared", op_entity_id=None)

    def cache_stats(self) -> dict[str, Any]:
        """Return ``{"size": n, "entries": [op ids]}``."""
        keys = self._cache.keys()
        return {"size": len(keys), "entries": keys}

    def sweep_expired(self) -> int:
        return self._cache.sweep()

    async def _fetch(self, op_entity_id: str, url: str) -> OPMetadata:
        kwargs: dict[str, Any] = {"timeout": httpx.Timeout(self.timeout)}
        if self._transport is not None:
            kwargs["transport"] = self._transport

        try:
            async with httpx.AsyncClient(**kwargs) as client:
                resp = await client.get(url, headers={"Accept": "application/json"})
        except httpx.TimeoutException as e:
            raise DiscoveryTimeoutError(op_entity_id, self.timeout) from e
        except httpx.ConnectError as e:
            raise OPUnreachableError(op_entity_id, str(e) or type(e).__name__) from e
        except Exception as e:
            raise DiscoveryFailedError(op_entity_id, str(e) or type(e).__name__) from e

        if not resp.is_success:
            raise InvalidDiscoveryResponseError(
                op_entity_id,
                f"OP returned {resp.status_code} {resp.reason_phrase}".rstrip(),
                status_code=resp.status_code,
            )

        try:
            document = resp.json()
        except ValueError as e:
            raise InvalidDiscoveryResponseError(
                op_entity_id,
                f"Discovery response from {op_entity_id} is not valid JSON",
            ) from e
        if not isinstance(document, dict):
            raise InvalidDiscoveryResponseError(
                op_entity_id,
                f"Discovery response from {op_entity_id} is not a JSON object",
            )

        missing = missing_required_fields(document)
        if missing:
            raise InvalidDiscoveryResponseError(
                op_entity_id,
                f"Discovery response from {op_entity_id} is missing required fields: "
                f"{', '.join(missing)}",
                missing_fields=missing,
            )

        try:
            return OPMetadata.model_validate(
                {**document, "discovered_at": self._clock(), "cached": False}
            )
        except ValidationError as e:
            raise InvalidDiscoveryResponseError(
                op_entity_id,
                f"Discovery response from {op_entity_id} has malformed fields: "
                f"{e.errors()[0]['msg']}",
                details={"fields": [".".join(str(p) for p in err["loc"]) for err in e.errors()]},
            ) from e
