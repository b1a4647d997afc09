"""Multi-OP client credential store persisted to a JSON file.

Holds one client secret per OP for a single RP. The file is read once on
construction and rewritten in full (temp file, then atomic replace) on every
mutation. Write failures raise :class:`~fedrp.errors.CredentialsStorageError`;
read failures only log:

- an entry that does not parse is skipped and written back unchanged;
- an unreadable file leaves an empty store, and is copied to
  ``<file>.bak`` before the first save overwrites it.
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError

from fedrp.credentials.models import (
    CredentialRecord,
    CredentialsFile,
    LegacyCredentials,
    OPCredentialEntry,
)
from fedrp.errors import CredentialsStorageError
from fedrp.observability import StructuredLogger, get_logger

PathLike = Union[str, os.PathLike[str]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MultiOPCredentialStore:
    """Client secrets for every OP this RP has registered with.

    A credentials file written for a different RP entity id is ignored (the
    store starts empty and will overwrite it on the first mutation).

    Example:
        >>> store = MultiOPCredentialStore("https://rp.example.com", ".op-credentials.json")
        >>> record = store.store_credentials("https://op.example.com", "s3cret")
        >>> store.get_credentials("https://op.example.com").client_secret
        's3cret'
    """

    def __init__(
        self,
        rp_entity_id: str,
        credentials_file: PathLike,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.rp_entity_id = rp_entity_id
        self.credentials_file = Path(credentials_file)
        self._clock = clock or _utc_now
        self._logger: StructuredLogger = logger or get_logger(__name__)
        self._ops: dict[str, OPCredentialEntry] = {}
        # Raw file entries that failed to parse, written back as-is
        self._unparsed: dict[str, Any] = {}
        self._backup_on_save = False
        self._load()
        self._logger.info(
            "fedrp.credentials.initialized",
            rp_entity_id=self.rp_entity_id,
            credentials_file=str(self.credentials_file),
            registered_ops=len(self._ops),
        )

    def store_credentials(self, op_entity_id: str, client_secret: str) -> CredentialRecord:
        """Store (or replace) the client secret for an OP and persist.

        ``registered_at`` is refreshed to now on every call.

        Raises:
            ValueError: If ``op_entity_id`` or ``client_secret`` is empty.
            CredentialsStorageError: If the file cannot be written.
        """
        if not op_entity_id:
            raise ValueError("op_entity_id is required")
        if not client_secret:
            raise ValueError("client_secret is required")
        entry = OPCredentialEntry(client_secret=client_secret, registered_at=self._clock())
        previous = self._ops.get(op_entity_id)
        previous_raw = self._unparsed.pop(op_entity_id, None)
        self._ops[op_entity_id] = entry
        try:
            self._save()
        except CredentialsStorageError:
            if previous is None:
                del self._ops[op_entity_id]
            else:
                self._ops[op_entity_id] = previous
            if previous_raw is not None:
                self._unparsed[op_entity_id] = previous_raw
            raise
        self._logger.info(
            "fedrp.credentials.stored",
            op_entity_id=op_entity_id,
            registered_at=entry.registered_at.isoformat(),
        )
        return self._record(op_entity_id, entry)

    def get_credentials(self, op_entity_id: str) -> Optional[CredentialRecord]:
        entry = self._ops.get(op_entity_id)
        if entry is None:
            self._logger.debug("fedrp.credentials.not_found", op_entity_id=op_entity_id)
            return None
        return self._record(op_entity_id, entry)

    def has_credentials(self, op_entity_id: str) -> bool:
        return op_entity_id in self._ops

    def clear_credentials(self, op_entity_id: str) -> bool:
        """Remove the credentials of one OP.

        Returns:
            True if credentials were removed, False if there were none.
        """
        entry = self._ops.pop(op_entity_id, None)
        raw = self._unparsed.pop(op_entity_id, None)
        if entry is None and raw is None:
            self._logger.debug("fedrp.credentials.nothing_to_clear", op_entity_id=op_entity_id)
            return False
        try:
            self._save()
        except CredentialsStorageError:
            if entry is not None:
                self._ops[op_entity_id] = entry
            if raw is not None:
                self._unparsed[op_entity_id] = raw
            raise
        self._logger.info("fedrp.credentials.cleared", op_entity_id=op_entity_id)
        return True

    def clear_all(self) -> int:
        """Remove the credentials of every OP and return how many were removed."""
        previous, previous_raw = self._ops, self._unparsed
        self._ops, self._unparsed = {}, {}
        try:
            self._save()
        except CredentialsStorageError:
            self._ops, self._unparsed = previous, previous_raw
            raise
        self._logger.info("fedrp.credentials.cleared_all", ops_count=len(previous))
        return len(previous)

    def get_registered_ops(self) -> list[str]:
        return list(self._ops)

    def stats(self) -> dict[str, Any]:
        """Return ``{"rp_entity_id", "total_ops", "ops"}``."""
        return {
            "rp_entity_id": self.rp_entity_id,
            "total_ops": len(self._ops),
            "ops": list(self._ops),
        }

    def migrate_from_old_format(self, legacy_file: PathLike, op_entity_id: str) -> bool:
        """Import the secret of a legacy single-OP credentials file.

        The secret is stored under ``op_entity_id`` (the legacy format does not
        record which OP issued it), with ``registered_at`` set to now.

        Args:
            legacy_file: Path of the legacy file.
            op_entity_id: OP the legacy secret belongs to.

        Returns:
            True if a secret was imported. False if the file is absent,
            unreadable, not in the legacy shape, or its secret is already
            stored for ``op_entity_id``.

        Raises:
            CredentialsStorageError: If the imported secret cannot be persisted.
        """
        path = Path(legacy_file)
        if not path.exists():
            self._logger.debug("fedrp.credentials.migration_skipped", reason="no_legacy_file")
            return False
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            self._logger.error(
                "fedrp.credentials.migration_failed", file=str(path), error=str(e)
            )
            return False
        if not LegacyCredentials.matches(data):
            self._logger.info(
                "fedrp.credentials.migration_skipped", file=str(path), reason="not_legacy_format"
            )
            return False
        try:
            legacy = LegacyCredentials.model_validate(data)
        except ValidationError as e:
            self._logger.error(
                "fedrp.credentials.migration_failed", file=str(path), error=str(e)
            )
            return False

        existing = self._ops.get(op_entity_id)
        if existing is not None and existing.client_secret == legacy.client_secret:
            self._logger.info(
                "fedrp.credentials.migration_skipped",
                op_entity_id=op_entity_id,
                reason="already_migrated",
            )
            return False

        self.store_credentials(op_entity_id, legacy.client_secret)
        self._logger.info(
            "fedrp.credentials.migrated",
            op_entity_id=op_entity_id,
            legacy_entity_id=legacy.entity_id,
            legacy_registered_at=legacy.registered_at,
        )
        return True

    def _record(self, op_entity_id: str, entry: OPCredentialEntry) -> CredentialRecord:
        return CredentialRecord(
            op_entity_id=op_entity_id,
            client_secret=entry.client_secret,
            registered_at=entry.registered_at,
            rp_entity_id=self.rp_entity_id,
        )

    def _load(self) -> None:
        path = self.credentials_file
        if not path.exists():
            self._logger.info("fedrp.credentials.no_file", credentials_file=str(path))
            return
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            self._logger.error(
                "fedrp.credentials.load_failed", credentials_file=str(path), error=str(e)
            )
            self._backup_on_save = True
            return
        if not isinstance(data, dict) or data.get("rpEntityId") != self.rp_entity_id:
            self._logger.info(
                "fedrp.credentials.foreign_file",
                credentials_file=str(path),
                file_rp_entity_id=data.get("rpEntityId") if isinstance(data, dict) else None,
                rp_entity_id=self.rp_entity_id,
            )
            return
        raw_ops = data.get("ops", {})
        if not isinstance(raw_ops, dict):
            self._logger.error(
                "fedrp.credentials.load_failed",
                credentials_file=str(path),
                error="malformed credentials file: ops is not an object",
            )
            self._backup_on_save = True
            return
        for op_entity_id, raw in raw_ops.items():
            try:
                self._ops[op_entity_id] = OPCredentialEntry.model_validate(raw)
            except ValidationError as e:
                self._logger.warning(
                    "fedrp.credentials.entry_skipped",
                    credentials_file=str(path),
                    op_entity_id=op_entity_id,
                    error=f"{e.error_count()} invalid field(s)",
                )
                self._unparsed[op_entity_id] = raw
        self._logger.info(
            "fedrp.credentials.loaded",
            credentials_file=str(path),
            ops_count=len(self._ops),
            skipped_count=len(self._unparsed),
        )

    def _save(self) -> None:
        target = self.credentials_file
        snapshot = CredentialsFile(rp_entity_id=self.rp_entity_id, ops=self._ops).to_json_dict()
        snapshot["ops"] = {**self._unparsed, **snapshot["ops"]}
        content = json.dumps(snapshot, indent=2) + "\n"
        temp_dir = target.parent if target.parent != Path() else Path.cwd()
        try:
            if self._backup_on_save and target.exists():
                backup = target.with_name(f"{target.name}.bak")
                shutil.copy2(target, backup)
                self._logger.warning(
                    "fedrp.credentials.backed_up",
                    credentials_file=str(target),
                    backup_file=str(backup),
                )
            fd, tmp = tempfile.mkstemp(dir=temp_dir, prefix=f".{target.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                Path(tmp).replace(target)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            self._logger.error(
                "fedrp.credentials.save_failed", credentials_file=str(target), error=str(e)
            )
            raise CredentialsStorageError(str(target), str(e)) from e
        self._backup_on_save = False
        self._logger.debug(
            "fedrp.credentials.saved", credentials_file=str(target), ops_count=len(self._ops)
        )
