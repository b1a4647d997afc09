"""Trust chain validation for OpenID Providers.

Before the RP talks to an OP it asks :class:`TrustValidator` whether the OP's
trust chain terminates at the configured trust anchor. Resolution itself is
delegated to a :class:`~fedrp.trust.resolver.TrustChainResolver`; this module
adds:

- a per-instance result cache (positive and negative results share one TTL,
  reads never extend expiry);
- a fixed deadline raced against each resolution;
- de-duplication of concurrent validations of the same OP;
- mapping of resolver exceptions to validation error codes.

Example:
    >>> validator = TrustValidator(resolver, "https://ta.example.com")
    >>> async with validator:
    ...     result = await validator.validate("https://op.example.com")
    ...     result.is_valid
    True
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from contextlib import suppress
from functools import partial
from typing import Any, Optional

from fedrp.cache import CacheSweeper, CacheStats, Clock, ExpiringCache
from fedrp.config import (
    DEFAULT_SWEEP_INTERVAL,
    DEFAULT_VALIDATION_CACHE_TTL,
    VALIDATION_TIMEOUT_SECONDS,
    require_trust_anchor,
)
from fedrp.entity_id import validate_entity_id
from fedrp.errors import ConfigurationError
from fedrp.observability import StructuredLogger, get_logger, sanitize_for_logging
from fedrp.trust.classify import failure_from_exception, timeout_failure
from fedrp.trust.models import (
    TrustChain,
    ValidationErrorCode,
    ValidationFailure,
    ValidationRecord,
    ValidationResult,
)
from fedrp.trust.resolver import TrustChainResolver
from fedrp.trust.termination import check_chain_termination


class TrustValidator:
    """Validates OP trust chains against a single trust anchor.

    Attributes:
        trust_anchor: The configured trust anchor entity id.
        timeout: Seconds a resolution may take before it is reported as ``timeout``.
    """

    def __init__(
        self,
        resolver: TrustChainResolver,
        trust_anchor: str,
        *,
        cache_ttl: float = DEFAULT_VALIDATION_CACHE_TTL,
        timeout: float = VALIDATION_TIMEOUT_SECONDS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        clock: Optional[Clock] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        """Create a validator.

        Args:
            resolver: Trust chain resolver.
            trust_anchor: Trust anchor entity id (https, or http://localhost).
            cache_ttl: Seconds a validation result stays cached.
            timeout: Resolution deadline in seconds.
            sweep_interval: Seconds between sweeps of expired results.
            clock: Time source for cache expiry (defaults to ``time.time``).
            logger: Structured logger; defaults to this module's structlog logger.

        Raises:
            ConfigurationError: If the trust anchor is missing or insecure, or
                the resolver does not implement ``resolve_trust_chain``.
        """
        self.trust_anchor = require_trust_anchor(trust_anchor)
        if not isinstance(resolver, TrustChainResolver):
            raise ConfigurationError(
                "Trust chain resolver must implement resolve_trust_chain()",
                details={"resolver_type": type(resolver).__name__},
            )
        if timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {timeout}")
        self.timeout = timeout
        self._resolver = resolver
        self._logger: StructuredLogger = logger or get_logger(__name__)
        self._cache: ExpiringCache[ValidationRecord] = ExpiringCache(
            default_ttl=cache_ttl, clock=clock
        )
        self._sweeper = CacheSweeper(
            [self._cache], sweep_interval, name="trust_validation", logger=self._logger
        )
        self._inflight: dict[str, asyncio.Task[ValidationRecord]] = {}
        self._late: set[asyncio.Future[TrustChain]] = set()

    @property
    def cache(self) -> ExpiringCache[ValidationRecord]:
        return self._cache

    @property
    def sweeper(self) -> CacheSweeper:
        return self._sweeper

    async def validate(
        self,
        op_id: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> ValidationResult:
        """Validate the trust chain of ``op_id``.

        Never raises: every failure is reported in ``result.errors``.

        Args:
            op_id: OP entity identifier.
            context: Request metadata (session id, user agent, ...) added to
                log events only.

        Returns:
            ValidationResult; ``cached`` is True when served from the cache.
        """
        log_ctx = {**sanitize_for_logging(dict(context or {})), "op_entity_id": op_id}
        self._emit("info", "fedrp.trust.validation_started", log_ctx)

        id_check = validate_entity_id(op_id)
        if not id_check.is_valid:
            failure = ValidationFailure.create(
                ValidationErrorCode.VALIDATION_ERROR,
                f"Invalid OP entity identifier: {id_check.errors[0].message}",
                str(op_id),
                error=id_check.errors[0].code,
            )
            self._emit("warning", "fedrp.trust.invalid_op_id", log_ctx, error=id_check.errors[0].code)
            return ValidationResult(
                op_entity_id=str(op_id),
                is_valid=False,
                errors=[failure],
                cached=False,
                timestamp=self._cache.now(),
            )

        entry = self._cache.get_entry(op_id)
        if entry is not None:
            self._emit(
                "info",
                "fedrp.trust.cache_hit",
                log_ctx,
                is_valid=entry.value.is_valid,
                expires_in=round(entry.expires_at - self._cache.now(), 3),
            )
            return ValidationResult.from_record(entry.value, cached=True)

        pending = self._inflight.get(op_id)
        if pending is None:
            pending = asyncio.get_running_loop().create_task(self._resolve_and_record(op_id, log_ctx))
            self._inflight[op_id] = pending
            pending.add_done_callback(partial(self._forget_inflight, op_id))
        else:
            self._emit("debug", "fedrp.trust.inflight_joined", log_ctx)

        try:
            record = await asyncio.shield(pending)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # _resolve_and_record reports resolver failures itself; this is a bug path
            self._emit("error", "fedrp.trust.validation_crashed", log_ctx, error=str(e))
            return ValidationResult(
                op_entity_id=op_id,
                is_valid=False,
                errors=[failure_from_exception(e, op_id)],
                cached=False,
                timestamp=self._cache.now(),
            )
        return ValidationResult.from_record(record, cached=False)

    def is_validated(self, op_id: str) -> bool:
        """Return True if a positive, unexpired result for ``op_id`` is cached."""
        record = self._cache.get(op_id)
        return record is not None and record.is_valid

    def clear_cache(self) -> None:
        """Drop every cached validation result."""
        count = len(self._cache)
        self._cache.clear()
        self._logger.info("fedrp.trust.cache_cleared", cleared_count=count)

    def cache_stats(self) -> CacheStats:
        return self._cache.stats()

    def start(self) -> None:
        """Start the periodic sweep of expired results (requires a running loop)."""
        self._sweeper.start()

    async def aclose(self) -> None:
        """Stop the sweeper and cancel resolutions that are still running."""
        await self._sweeper.stop()
        tasks = [*self._inflight.values(), *self._late]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError, Exception):
                await task
        self._inflight.clear()
        self._late.clear()

    async def __aenter__(self) -> "TrustValidator":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _resolve_and_record(self, op_id: str, log_ctx: dict[str, Any]) -> ValidationRecord:
        self._emit("info", "fedrp.trust.cache_miss", log_ctx)
        try:
            resolution = asyncio.ensure_future(self._resolver.resolve_trust_chain(op_id))
        except Exception as e:
            return self._record_exception(op_id, e, log_ctx)

        try:
            done, _ = await asyncio.wait({resolution}, timeout=self.timeout)
        except asyncio.CancelledError:
            resolution.cancel()
            raise

        if not done:
            self._abandon(resolution, op_id)
            self._emit("error", "fedrp.trust.resolution_timeout", log_ctx, timeout_seconds=self.timeout)
            return self._record(op_id, is_valid=False, errors=[timeout_failure(op_id, self.timeout)])

        try:
            chain = resolution.result()
        except Exception as e:
            return self._record_exception(op_id, e, log_ctx)

        if not isinstance(chain, TrustChain):
            return self._record_exception(
                op_id,
                TypeError(f"resolver returned {type(chain).__name__}, expected TrustChain"),
                log_ctx,
            )

        failures = check_chain_termination(chain, self.trust_anchor, op_id)
        if failures:
            self._emit(
                "warning",
                "fedrp.trust.validation_failed",
                log_ctx,
                error_codes=[f.code.value for f in failures],
                terminus=chain.terminus,
                chain_length=len(chain),
            )
            return self._record(op_id, is_valid=False, errors=failures)

        self._emit(
            "info",
            "fedrp.trust.validated",
            log_ctx,
            trust_anchor=self.trust_anchor,
            chain_length=len(chain),
        )
        return self._record(op_id, is_valid=True)

    def _record_exception(
        self, op_id: str, exc: Exception, log_ctx: dict[str, Any]
    ) -> ValidationRecord:
        failure = failure_from_exception(exc, op_id)
        self._emit(
            "error",
            "fedrp.trust.resolution_failed",
            log_ctx,
            error=str(exc),
            error_type=type(exc).__name__,
            error_code=failure.code.value,
        )
        return self._record(op_id, is_valid=False, errors=[failure])

    def _record(
        self,
        op_id: str,
        *,
        is_valid: bool,
        errors: Optional[list[ValidationFailure]] = None,
    ) -> ValidationRecord:
        now = self._cache.now()
        record = ValidationRecord.create(
            op_id,
            is_valid=is_valid,
            timestamp=now,
            ttl=self._cache.default_ttl,
            trust_anchor=self.trust_anchor,
            errors=errors,
        )
        self._cache.put(op_id, record, now=now)
        self._logger.debug(
            "fedrp.trust.result_cached",
            op_entity_id=op_id,
            is_valid=is_valid,
            expires_at=record.expires_at,
        )
        return record

    def _abandon(self, resolution: asyncio.Future[TrustChain], op_id: str) -> None:
        self._late.add(resolution)
        resolution.add_done_callback(partial(self._discard_late, op_id))

    def _discard_late(self, op_id: str, task: asyncio.Future[TrustChain]) -> None:
        self._late.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        self._logger.debug(
            "fedrp.trust.late_result_discarded",
            op_entity_id=op_id,
            outcome="error" if exc is not None else "chain",
        )

    def _forget_inflight(self, op_id: str, task: asyncio.Task[ValidationRecord]) -> None:
        if self._inflight.get(op_id) is task:
            del self._inflight[op_id]

    def _emit(self, level: str, event: str, log_ctx: dict[str, Any], **fields: Any) -> None:
        getattr(self._logger, level)(event, **{**log_ctx, **fields})
