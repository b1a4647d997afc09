"""Tests for the multi-OP credential store and legacy migration."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from structlog.testing import CapturingLogger

from fedrp.credentials import MultiOPCredentialStore
from fedrp.errors import CredentialsStorageError
from tests.factories import OP_ID, OTHER_OP_ID, RP_ID, event_fields, events

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
THIRD_OP_ID = "https://op3.example.com"
FOURTH_OP_ID = "https://op4.example.com"


class StepClock:
    """datetime clock that moves forward one minute per call."""

    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def __call__(self) -> datetime:
        now = self.current
        self.current += timedelta(minutes=1)
        return now


@pytest.fixture
def creds_file(tmp_path: Path) -> Path:
    return tmp_path / ".op-credentials.json"


def _store(path: Path, rp_id: str = RP_ID, **kwargs: object) -> MultiOPCredentialStore:
    return MultiOPCredentialStore(rp_id, path, **kwargs)  # type: ignore[arg-type]


class TestStoreAndGet:
    def test_store_then_get(self, creds_file: Path) -> None:
        store = _store(creds_file, clock=StepClock())

        store.store_credentials(OP_ID, "s3cret")
        record = store.get_credentials(OP_ID)

        assert record is not None
        assert record.op_entity_id == OP_ID
        assert record.client_secret == "s3cret"
        assert record.rp_entity_id == RP_ID
        assert record.registered_at == T0

    def test_unknown_op_returns_none(self, creds_file: Path) -> None:
        store = _store(creds_file)

        assert store.get_credentials(OP_ID) is None
        assert store.has_credentials(OP_ID) is False

    def test_restore_replaces_secret_and_refreshes_timestamp(self, creds_file: Path) -> None:
        store = _store(creds_file, clock=StepClock())

        store.store_credentials(OP_ID, "old")
        store.store_credentials(OP_ID, "new")
        record = store.get_credentials(OP_ID)

        assert record is not None
        assert record.client_secret == "new"
        assert record.registered_at == T0 + timedelta(minutes=1)
        assert store.get_registered_ops() == [OP_ID]

    def test_empty_secret_is_rejected(self, creds_file: Path) -> None:
        with pytest.raises(ValueError, match="client_secret"):
            _store(creds_file).store_credentials(OP_ID, "")

    def test_secret_is_not_in_repr_or_logs(self, creds_file: Path) -> None:
        logger = CapturingLogger()
        store = _store(creds_file, logger=logger)

        record = store.store_credentials(OP_ID, "do-not-print")

        assert "do-not-print" not in repr(record)
        assert "do-not-print" not in repr(logger.calls)

    def test_stats(self, creds_file: Path) -> None:
        store = _store(creds_file)
        store.store_credentials(OP_ID, "a")
        store.store_credentials(OTHER_OP_ID, "b")

        assert store.stats() == {
            "rp_entity_id": RP_ID,
            "total_ops": 2,
            "ops": [OP_ID, OTHER_OP_ID],
        }


class TestScenarioMultiOp:
    """Register with two OPs, clear one, restart, check the other survives."""

    def test_clear_one_op_and_reload(self, creds_file: Path) -> None:
        store = _store(creds_file)
        store.store_credentials(OP_ID, "s1")
        store.store_credentials(OTHER_OP_ID, "s2")

        assert store.clear_credentials(OP_ID) is True

        reloaded = _store(creds_file)
        assert reloaded.has_credentials(OP_ID) is False
        assert reloaded.has_credentials(OTHER_OP_ID) is True
        assert reloaded.get_credentials(OTHER_OP_ID).client_secret == "s2"  # type: ignore[union-attr]

    def test_clear_unknown_op_is_noop(self, creds_file: Path) -> None:
        store = _store(creds_file)

        assert store.clear_credentials(OP_ID) is False
        assert not creds_file.exists()

    def test_clear_all(self, creds_file: Path) -> None:
        store = _store(creds_file)
        store.store_credentials(OP_ID, "s1")
        store.store_credentials(OTHER_OP_ID, "s2")

        assert store.clear_all() == 2
        assert store.get_registered_ops() == []
        assert _store(creds_file).get_registered_ops() == []


class TestPersistence:
    def test_file_format(self, creds_file: Path) -> None:
        store = _store(creds_file, clock=StepClock())
        store.store_credentials(OP_ID, "s1")

        data = json.loads(creds_file.read_text(encoding="utf-8"))

        assert data == {
            "rpEntityId": RP_ID,
            "ops": {OP_ID: {"clientSecret": "s1", "registeredAt": "2026-01-01T12:00:00Z"}},
        }

    def test_reload_reproduces_secrets_and_timestamps(self, creds_file: Path) -> None:
        store = _store(creds_file, clock=StepClock())
        store.store_credentials(OP_ID, "s1")
        store.store_credentials(OTHER_OP_ID, "s2")

        reloaded = _store(creds_file)

        for op_id in (OP_ID, OTHER_OP_ID):
            assert reloaded.get_credentials(op_id) == store.get_credentials(op_id)

    def test_reads_file_written_by_other_tools(self, creds_file: Path) -> None:
        creds_file.write_text(
            json.dumps(
                {
                    "rpEntityId": RP_ID,
                    "ops": {
                        OP_ID: {"clientSecret": "s1", "registeredAt": "2025-03-04T05:06:07.123Z"}
                    },
                }
            ),
            encoding="utf-8",
        )

        record = _store(creds_file).get_credentials(OP_ID)

        assert record is not None
        assert record.registered_at == datetime(2025, 3, 4, 5, 6, 7, 123000, tzinfo=timezone.utc)

    def test_foreign_file_is_ignored(self, creds_file: Path) -> None:
        _store(creds_file, rp_id="https://other-rp.example.com").store_credentials(OP_ID, "s1")
        logger = CapturingLogger()

        store = _store(creds_file, logger=logger)

        assert store.get_registered_ops() == []
        assert "fedrp.credentials.foreign_file" in events(logger)

    def test_corrupt_file_starts_fresh(self, creds_file: Path) -> None:
        creds_file.write_text("{not json", encoding="utf-8")
        logger = CapturingLogger()

        store = _store(creds_file, logger=logger)

        assert store.get_registered_ops() == []
        assert "fedrp.credentials.load_failed" in events(logger, "error")

    def test_corrupt_file_is_backed_up_before_overwrite(self, creds_file: Path) -> None:
        creds_file.write_text("{not json", encoding="utf-8")
        logger = CapturingLogger()
        store = _store(creds_file, logger=logger)

        store.store_credentials(OP_ID, "s1")
        store.store_credentials(OTHER_OP_ID, "s2")

        backup = creds_file.with_name(f"{creds_file.name}.bak")
        assert backup.read_text(encoding="utf-8") == "{not json"
        assert events(logger, "warning").count("fedrp.credentials.backed_up") == 1
        assert _store(creds_file).get_registered_ops() == [OP_ID, OTHER_OP_ID]

    def test_malformed_entry_is_skipped_and_kept_on_disk(self, creds_file: Path) -> None:
        bad_entry = {"clientSecret": 42}
        creds_file.write_text(
            json.dumps({"rpEntityId": RP_ID, "ops": {OP_ID: bad_entry}}), encoding="utf-8"
        )
        logger = CapturingLogger()
        store = _store(creds_file, logger=logger)

        store.store_credentials(OTHER_OP_ID, "s2")

        assert store.get_registered_ops() == [OTHER_OP_ID]
        [skipped] = event_fields(logger, "fedrp.credentials.entry_skipped")
        assert skipped["op_entity_id"] == OP_ID
        assert 42 not in skipped.values()
        on_disk = json.loads(creds_file.read_text(encoding="utf-8"))["ops"]
        assert on_disk[OP_ID] == bad_entry
        assert on_disk[OTHER_OP_ID]["clientSecret"] == "s2"

    def test_one_bad_entry_does_not_lose_other_secrets(self, creds_file: Path) -> None:
        creds_file.write_text(
            json.dumps(
                {
                    "rpEntityId": RP_ID,
                    "ops": {
                        OP_ID: {"clientSecret": "s1", "registeredAt": "2025-01-01T00:00:00Z"},
                        OTHER_OP_ID: {
                            "clientSecret": "s2",
                            "registeredAt": "2025-01-01T00:00:00Z",
                            "clientId": "x",
                        },
                        THIRD_OP_ID: {"clientSecret": "s3"},
                    },
                }
            ),
            encoding="utf-8",
        )
        store = _store(creds_file)

        store.store_credentials(FOURTH_OP_ID, "s4")

        reloaded = _store(creds_file)
        assert reloaded.get_registered_ops() == [OP_ID, OTHER_OP_ID, FOURTH_OP_ID]
        on_disk = json.loads(creds_file.read_text(encoding="utf-8"))["ops"]
        assert on_disk[THIRD_OP_ID] == {"clientSecret": "s3"}
        assert {op: entry["clientSecret"] for op, entry in on_disk.items()} == {
            OP_ID: "s1",
            OTHER_OP_ID: "s2",
            THIRD_OP_ID: "s3",
            FOURTH_OP_ID: "s4",
        }

    def test_storing_over_a_malformed_entry_replaces_it(self, creds_file: Path) -> None:
        creds_file.write_text(
            json.dumps({"rpEntityId": RP_ID, "ops": {OP_ID: {"clientSecret": ""}}}),
            encoding="utf-8",
        )
        store = _store(creds_file, clock=StepClock())

        store.store_credentials(OP_ID, "fresh")

        record = _store(creds_file).get_credentials(OP_ID)
        assert record is not None
        assert record.client_secret == "fresh"

    def test_clearing_a_malformed_entry_removes_it(self, creds_file: Path) -> None:
        creds_file.write_text(
            json.dumps({"rpEntityId": RP_ID, "ops": {OP_ID: "garbage"}}), encoding="utf-8"
        )
        store = _store(creds_file)

        assert store.clear_credentials(OP_ID) is True
        assert json.loads(creds_file.read_text(encoding="utf-8"))["ops"] == {}

    def test_no_temp_files_left_behind(self, creds_file: Path) -> None:
        store = _store(creds_file)
        store.store_credentials(OP_ID, "s1")
        store.clear_credentials(OP_ID)

        assert [p.name for p in creds_file.parent.iterdir()] == [creds_file.name]

    def test_write_failure_raises_and_keeps_memory_state(self, tmp_path: Path) -> None:
        store = _store(tmp_path / "missing-dir" / "creds.json")

        with pytest.raises(CredentialsStorageError) as exc_info:
            store.store_credentials(OP_ID, "s1")

        assert exc_info.value.code == "CREDENTIALS_STORAGE_FAILED"
        assert exc_info.value.details["path"].endswith("creds.json")
        assert store.has_credentials(OP_ID) is False


class TestMigration:
    def _write_legacy(self, path: Path, secret: str = "legacy-secret") -> Path:
        path.write_text(
            json.dumps(
                {
                    "entityId": RP_ID,
                    "clientSecret": secret,
                    "registeredAt": "2024-06-01T00:00:00.000Z",
                }
            ),
            encoding="utf-8",
        )
        return path

    def test_migrates_legacy_file(self, creds_file: Path, tmp_path: Path) -> None:
        legacy = self._write_legacy(tmp_path / ".client-credentials.json")
        store = _store(creds_file, clock=StepClock())

        assert store.migrate_from_old_format(legacy, OP_ID) is True

        record = _store(creds_file).get_credentials(OP_ID)
        assert record is not None
        assert record.client_secret == "legacy-secret"
        assert record.registered_at == T0

    def test_migration_is_idempotent(self, creds_file: Path, tmp_path: Path) -> None:
        legacy = self._write_legacy(tmp_path / "legacy.json")
        store = _store(creds_file)

        assert store.migrate_from_old_format(legacy, OP_ID) is True
        assert store.migrate_from_old_format(legacy, OP_ID) is False
        assert store.get_registered_ops() == [OP_ID]

    def test_missing_legacy_file(self, creds_file: Path, tmp_path: Path) -> None:
        assert _store(creds_file).migrate_from_old_format(tmp_path / "nope.json", OP_ID) is False

    def test_new_format_file_is_not_migrated(self, creds_file: Path, tmp_path: Path) -> None:
        other = tmp_path / "new.json"
        _store(other).store_credentials(OP_ID, "s1")

        assert _store(creds_file).migrate_from_old_format(other, OP_ID) is False

    def test_unreadable_legacy_file(self, creds_file: Path, tmp_path: Path) -> None:
        legacy = tmp_path / "legacy.json"
        legacy.write_text("nope", encoding="utf-8")

        assert _store(creds_file).migrate_from_old_format(legacy, OP_ID) is False
