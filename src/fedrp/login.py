"""Login gate: the order in which an RP may talk to a federated OP.

Trust comes first. An OP whose trust chain does not terminate at the
configured trust anchor is rejected with :class:`~fedrp.errors.UntrustedOPError`
before its discovery document is fetched or any credential is read or
registered. Only then is metadata discovered and a client secret looked up
(or obtained from the registrar and stored).

Example:
    >>> config = FederationRPConfig.from_env()
    >>> async with build_login_gate(config, resolver) as gate:
    ...     login = await gate.prepare("https://op.example.com", {"session_id": "s1"})
    ...     redirect_to(login.metadata.authorization_endpoint)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from fedrp.cache import CacheSweeper
from fedrp.config import FederationRPConfig
from fedrp.credentials import CredentialRecord, MultiOPCredentialStore
from fedrp.discovery import DiscoveryService, OPMetadata
from fedrp.errors import UntrustedOPError
from fedrp.observability import StructuredLogger, get_logger
from fedrp.trust import TrustChainResolver, TrustValidator, ValidationResult

# (op_entity_id, metadata) -> new client secret
Registrar = Callable[[str, OPMetadata], Awaitable[str]]


@dataclass(frozen=True)
class LoginContext:
    """Everything needed to start an authorization request against one OP."""

    op_entity_id: str
    validation: ValidationResult
    metadata: OPMetadata
    credentials: Optional[CredentialRecord]


class LoginGate:
    """Runs trust validation, discovery and credential lookup in that order."""

    def __init__(
        self,
        validator: TrustValidator,
        discovery: DiscoveryService,
        credentials: MultiOPCredentialStore,
        *,
        registrar: Optional[Registrar] = None,
        sweep_interval: Optional[float] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.validator = validator
        self.discovery = discovery
        self.credentials = credentials
        self._registrar = registrar
        self._logger: StructuredLogger = logger or get_logger(__name__)
        self._sweeper = CacheSweeper(
            [validator.cache, discovery.cache],
            sweep_interval or validator.sweeper.interval,
            name="login_gate",
            logger=self._logger,
        )

    async def ensure_trusted(
        self,
        op_entity_id: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> ValidationResult:
        """Return the validation result, or raise if the OP is not trusted.

        Raises:
            UntrustedOPError: Carries the OP id and every validation error.
        """
        result = await self.validator.validate(op_entity_id, context)
        if not result.is_valid:
            self._logger.warning(
                "fedrp.login.op_rejected",
                op_entity_id=op_entity_id,
                error_codes=result.error_codes,
                cached=result.cached,
            )
            raise UntrustedOPError(op_entity_id, [e.to_dict() for e in result.errors])
        return result

    async def prepare(
        self,
        op_entity_id: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> LoginContext:
        """Validate, discover and load credentials for an OP.

        Args:
            op_entity_id: The OP the user selected.
            context: Request metadata forwarded to trust validation logs.

        Returns:
            LoginContext. ``credentials`` is None only when no secret is stored
            and no registrar is configured.

        Raises:
            UntrustedOPError: Trust validation failed; nothing else was attempted.
            DiscoveryError: The OP's discovery document could not be used.
            CredentialsStorageError: A newly registered secret could not be saved.
        """
        validation = await self.ensure_trusted(op_entity_id, context)
        metadata = await self.discovery.discover(op_entity_id)

        credentials = self.credentials.get_credentials(op_entity_id)
        if credentials is None and self._registrar is not None:
            self._logger.info("fedrp.login.registering", op_entity_id=op_entity_id)
            client_secret = await self._registrar(op_entity_id, metadata)
            credentials = self.credentials.store_credentials(op_entity_id, client_secret)

        self._logger.info(
            "fedrp.login.prepared",
            op_entity_id=op_entity_id,
            validation_cached=validation.cached,
            metadata_cached=metadata.cached,
            has_credentials=credentials is not None,
        )
        return LoginContext(
            op_entity_id=op_entity_id,
            validation=validation,
            metadata=metadata,
            credentials=credentials,
        )

    def start(self) -> None:
        self._sweeper.start()

    async def aclose(self) -> None:
        await self._sweeper.stop()
        await self.validator.aclose()

    async def __aenter__(self) -> "LoginGate":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def build_login_gate(
    config: FederationRPConfig,
    resolver: TrustChainResolver,
    *,
    registrar: Optional[Registrar] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    logger: Optional[StructuredLogger] = None,
) -> LoginGate:
    """Build a LoginGate and its components from configuration.

    When ``config.legacy_credentials_file`` and ``config.default_op_id`` are
    both set, the legacy secret is migrated into the credential store.
    """
    validator = TrustValidator(
        resolver,
        config.trust_anchor_url,
        cache_ttl=config.validation_cache_ttl,
        timeout=config.validation_timeout,
        sweep_interval=config.sweep_interval,
        logger=logger,
    )
    discovery = DiscoveryService(
        timeout=config.discovery_timeout,
        cache_ttl=config.discovery_cache_ttl,
        transport=transport,
        logger=logger,
    )
    store = MultiOPCredentialStore(config.rp_entity_id, config.credentials_file, logger=logger)
    if config.legacy_credentials_file is not None and config.default_op_id:
        store.migrate_from_old_format(config.legacy_credentials_file, config.default_op_id)
    return LoginGate(
        validator,
        discovery,
        store,
        registrar=registrar,
        sweep_interval=config.sweep_interval,
        logger=logger,
    )
