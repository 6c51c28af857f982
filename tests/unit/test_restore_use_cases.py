"""
Tests unitarios para la restauración desde el log de operaciones.
"""
import json

import pytest

from airtable_mirror.application.use_cases.restore_use_cases import RestoreUseCases
from airtable_mirror.shared.constants.operation_constants import OperationType


@pytest.fixture
def restore(records, operations, fake_source) -> RestoreUseCases:
    return RestoreUseCases(
        source=fake_source,
        records=records,
        operations=operations,
        disallowed_fields=["Airtable Record ID"],
    )


def _log_delete(operations, airtable_id: str, fields: dict, table_name: str = "Items") -> None:
    operations.append(airtable_id, OperationType.DELETE, fields, table_name=table_name)


class TestRestoreRecords:
    def test_restore_creates_snapshot_minus_disallowed_fields(
        self, restore: RestoreUseCases, operations, fake_source
    ) -> None:
        _log_delete(operations, "rec1", {"title": "X", "Airtable Record ID": "rec1"})

        result = restore.restore_records(["rec1"])

        assert fake_source.create_calls == [("Items", {"title": "X"})]
        assert result.restored == 1
        assert result.restored_ids == {"rec1": "recNEW001"}

    def test_restored_record_is_mirrored_and_logged(
        self, restore: RestoreUseCases, records, operations
    ) -> None:
        _log_delete(operations, "rec1", {"title": "X"})

        restore.restore_records(["rec1"])

        assert records.get_record("Items", "recNEW001").fields == {"title": "X"}
        assert operations.latest_entry("recNEW001").operation_type == OperationType.CREATE

    def test_restores_into_the_table_it_was_deleted_from(
        self, restore: RestoreUseCases, operations, fake_source
    ) -> None:
        _log_delete(operations, "rec9", {"name": "Ada"}, table_name="Entities")

        restore.restore_records(["rec9"])

        assert fake_source.create_calls[0][0] == "Entities"

    def test_dry_run_only_counts_snapshots(
        self, restore: RestoreUseCases, records, operations, fake_source
    ) -> None:
        _log_delete(operations, "rec1", {"title": "X"})
        before = operations.count()

        result = restore.restore_records(["rec1", "recMissing"], dry_run=True)

        assert result.found == 1
        assert result.restored == 0
        assert fake_source.create_calls == []
        assert operations.count() == before

    def test_id_without_log_entry_is_skipped(self, restore: RestoreUseCases, operations, fake_source) -> None:
        _log_delete(operations, "rec1", {"title": "X"})

        result = restore.restore_records(["recMissing", "rec1"])

        assert result.skipped == 1
        assert result.restored == 1
        assert len(fake_source.create_calls) == 1

    def test_duplicate_ids_are_restored_once(self, restore: RestoreUseCases, operations, fake_source) -> None:
        _log_delete(operations, "rec1", {"title": "X"})

        result = restore.restore_records(["rec1", "rec1"])

        assert result.requested == 1
        assert len(fake_source.create_calls) == 1

    def test_remote_failure_does_not_stop_other_records(
        self, restore: RestoreUseCases, operations, fake_source
    ) -> None:
        _log_delete(operations, "rec1", {"title": "X"}, table_name="Broken")
        _log_delete(operations, "rec2", {"title": "Y"})
        fake_source.create_failures = {"Broken"}

        result = restore.restore_records(["rec1", "rec2"])

        assert result.restored == 1
        assert result.skipped == 1
        assert "422" in result.errors["rec1"]
        assert list(result.restored_ids) == ["rec2"]

    def test_uses_latest_entry_even_if_not_delete(
        self, restore: RestoreUseCases, operations, fake_source
    ) -> None:
        operations.append("rec1", OperationType.CREATE, {"title": "old"}, table_name="Items")
        operations.append("rec1", OperationType.UPDATE, {"title": "new"}, table_name="Items")

        restore.restore_records(["rec1"])

        assert fake_source.create_calls == [("Items", {"title": "new"})]

    def test_restore_keeps_error_file_from_previous_sync(
        self, restore: RestoreUseCases, records, operations, settings, make_record
    ) -> None:
        records.upsert_batch("Items", [make_record("recOk"), {"id": "recBAD"}])
        _log_delete(operations, "recOld", {"title": "X"})

        restore.restore_records(["recOld"])

        error_file = settings.errors_dir / "Items.json"
        assert error_file.exists()
        saved = json.loads(error_file.read_text(encoding="utf-8"))
        assert [entry["record"]["id"] for entry in saved] == ["recBAD"]
