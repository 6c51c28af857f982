"""
Tests unitarios para RecordRepository (upsert por sub-lotes y lecturas).
"""
import json

from airtable_mirror.infrastructure.repositories.operation_repository import OperationRepository
from airtable_mirror.infrastructure.repositories.record_repository import RecordRepository
from airtable_mirror.shared.constants.operation_constants import OperationType


class TestUpsertBatch:
    """Escritura idempotente con last-write-wins."""

    def test_write_then_read(self, records: RecordRepository, make_record) -> None:
        result = records.upsert_batch("Items", [make_record("rec1", {"title": "X", "year": 1910})])

        assert result.written == 1
        assert result.failed == []
        stored = records.get_record("Items", "rec1")
        assert stored is not None
        assert stored.fields == {"title": "X", "year": 1910}
        assert stored.created_time == "2024-01-01T00:00:00.000Z"

    def test_last_write_wins(self, records: RecordRepository, make_record) -> None:
        records.upsert_batch("Items", [make_record("rec1", {"title": "X", "old": True})])
        records.upsert_batch("Items", [make_record("rec1", {"title": "Y"})])

        assert records.count("Items") == 1
        # El registro se reemplaza completo, no se mezclan fields
        assert records.get_record("Items", "rec1").fields == {"title": "Y"}

    def test_field_order_is_preserved(self, records: RecordRepository, make_record) -> None:
        fields = {"z": 1, "a": 2, "m": 3}
        records.upsert_batch("Items", [make_record("rec1", fields)])

        assert list(records.get_record("Items", "rec1").fields) == ["z", "a", "m"]

    def test_malformed_record_is_reported_and_valid_one_written(
        self, records: RecordRepository, make_record
    ) -> None:
        malformed = {"createdTime": "2024-01-01T00:00:00.000Z", "fields": {"title": "sin id"}}

        result = records.upsert_batch("Items", [make_record("rec1", {"title": "ok"}), malformed])

        assert result.written == 1
        assert len(result.failed) == 1
        assert result.failed[0].record is malformed
        assert records.list_records("Items")[0].record_id == "rec1"

    def test_missing_created_time_or_fields_is_rejected(self, records: RecordRepository) -> None:
        result = records.upsert_batch(
            "Items",
            [{"id": "rec1", "fields": {}}, {"id": "rec2", "createdTime": "2024-01-01T00:00:00.000Z"}],
        )

        assert result.written == 0
        assert len(result.failed) == 2

    def test_failed_sub_batch_is_rolled_back_and_others_continue(
        self, records: RecordRepository, make_record
    ) -> None:
        """Un valor no serializable hace fallar su sub-lote completo, no los demás."""
        batch = [
            make_record("rec1", {"title": "A"}),
            make_record("rec2", {"title": object()}),
            make_record("rec3", {"title": "C"}),
        ]

        result = records.upsert_batch("Items", batch, batch_size=2)

        assert result.written == 1
        assert len(result.failed) == 2
        assert records.get_record("Items", "rec1") is None
        assert records.get_record("Items", "rec3") is not None

    def test_failures_are_saved_to_error_file(self, records: RecordRepository, settings) -> None:
        records.upsert_batch("Item Admin Info", [{"id": "rec1"}])

        error_file = settings.errors_dir / "Item_Admin_Info.json"
        assert error_file.exists()
        saved = json.loads(error_file.read_text(encoding="utf-8"))
        assert saved[0]["record"] == {"id": "rec1"}
        assert "Registro inválido" in saved[0]["reason"]

    def test_clean_run_keeps_error_file(self, records: RecordRepository, settings, make_record) -> None:
        """Una llamada sin fallidos no borra los fallidos de corridas anteriores."""
        records.upsert_batch("Items", [make_record("rec1"), {"id": "recBAD"}])

        records.upsert_batch("Items", [make_record("rec2")])

        saved = json.loads((settings.errors_dir / "Items.json").read_text(encoding="utf-8"))
        assert [entry["record"]["id"] for entry in saved] == ["recBAD"]

    def test_failures_accumulate_across_runs(self, records: RecordRepository, settings) -> None:
        records.upsert_batch("Items", [{"id": "recA"}])
        records.upsert_batch("Items", [{"id": "recB"}, {"id": "recA", "fields": {}}])

        saved = json.loads((settings.errors_dir / "Items.json").read_text(encoding="utf-8"))
        # recA vuelve a fallar: se reemplaza su entrada, no se duplica
        assert sorted(entry["record"]["id"] for entry in saved) == ["recA", "recB"]

    def test_rewritten_record_is_dropped_from_error_file(
        self, records: RecordRepository, settings, make_record
    ) -> None:
        records.upsert_batch("Items", [{"id": "rec1"}, {"id": "rec2"}])

        records.upsert_batch("Items", [make_record("rec1")])

        saved = json.loads((settings.errors_dir / "Items.json").read_text(encoding="utf-8"))
        assert [entry["record"]["id"] for entry in saved] == ["rec2"]


class TestOperationLogging:
    """El upsert registra CREATE/UPDATE en la misma transacción."""

    def test_new_record_logs_create(
        self, records: RecordRepository, operations: OperationRepository, make_record
    ) -> None:
        result = records.upsert_batch("Items", [make_record("rec1", {"title": "X"})])

        assert result.created == 1
        entry = operations.latest_entry("rec1")
        assert entry.operation_type == OperationType.CREATE
        assert entry.table_name == "Items"
        assert entry.snapshot == {"title": "X"}

    def test_changed_record_logs_update(
        self, records: RecordRepository, operations: OperationRepository, make_record
    ) -> None:
        records.upsert_batch("Items", [make_record("rec1", {"title": "X"})])
        result = records.upsert_batch("Items", [make_record("rec1", {"title": "Y"})])

        assert result.updated == 1
        assert operations.latest_entry("rec1").operation_type == OperationType.UPDATE

    def test_unchanged_record_logs_nothing(
        self, records: RecordRepository, operations: OperationRepository, make_record
    ) -> None:
        records.upsert_batch("Items", [make_record("rec1", {"title": "X"})])
        records.upsert_batch("Items", [make_record("rec1", {"title": "X"})])

        assert operations.count() == 1

    def test_repository_without_log_writes_records_only(
        self, context, registry, operations: OperationRepository, make_record
    ) -> None:
        repo = RecordRepository(context.engine, registry)

        result = repo.upsert_batch("Items", [make_record("rec1")])

        assert result.written == 1
        assert operations.count() == 0


class TestReadsAndDeletes:
    def test_get_records_skips_missing_ids(self, records: RecordRepository, make_record) -> None:
        records.upsert_batch("Items", [make_record("rec1"), make_record("rec2")])

        found = records.get_records("Items", ["rec1", "recX"])

        assert set(found) == {"rec1"}

    def test_delete_records_returns_deleted_count(self, records: RecordRepository, make_record) -> None:
        records.upsert_batch("Items", [make_record("rec1"), make_record("rec2")])

        assert records.delete_records("Items", ["rec1", "recX"]) == 1
        assert records.count("Items") == 1

    def test_delete_with_no_ids_is_noop(self, records: RecordRepository) -> None:
        assert records.delete_records("Items", []) == 0
