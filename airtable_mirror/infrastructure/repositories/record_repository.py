"""
Repositorio del espejo de registros (una tabla SQLite por tabla Airtable).

- UPSERT por airtable_id en sub-lotes atómicos
- lecturas por id
- borrado dentro de la transacción del caller (flujo de borrado)
"""
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.schema import Table

from airtable_mirror.infrastructure.database.session import transaction
from airtable_mirror.infrastructure.database.table_registry import TableRegistry
from airtable_mirror.infrastructure.external.airtable.types import AirtableRecord
from airtable_mirror.infrastructure.files.json_writer import JsonWriter
from airtable_mirror.infrastructure.repositories.operation_repository import OperationRepository
from airtable_mirror.shared.constants.operation_constants import OperationType
from airtable_mirror.shared.exceptions import StorageError, ValidationError
from airtable_mirror.shared.utils.batching import chunked

DEFAULT_BATCH_SIZE = 50


@dataclass(frozen=True)
class FailedRecord:
    """Registro que no se pudo escribir y el motivo."""

    record: Any
    reason: str


@dataclass
class UpsertResult:
    table_name: str
    written: int = 0
    created: int = 0
    updated: int = 0
    failed: List[FailedRecord] = field(default_factory=list)


class RecordRepository:
    """
    Espejo local de registros Airtable.

    Si se construye con un OperationRepository, cada sub-lote registra en el
    log un CREATE por id nuevo y un UPDATE por id cuyos fields cambiaron,
    dentro de la misma transacción que el UPSERT.
    """

    def __init__(
        self,
        engine: Engine,
        registry: TableRegistry,
        *,
        error_writer: Optional[JsonWriter] = None,
        operations: Optional[OperationRepository] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self._engine = engine
        self._registry = registry
        self._error_writer = error_writer
        self._operations = operations
        self._batch_size = batch_size

    def ensure_table(self, logical_name: str) -> str:
        """Registra la tabla (crea el esquema si hace falta) y retorna su identificador."""
        return self._registry.ensure_table(logical_name)

    def upsert_batch(
        self,
        logical_name: str,
        records: Iterable[Any],
        *,
        batch_size: Optional[int] = None,
    ) -> UpsertResult:
        """
        Inserta o reemplaza registros completos (sin merge de fields).

        - Los registros inválidos se excluyen y se reportan (no se reintentan).
        - Cada sub-lote es una transacción: se aplica entero o nada.
        - Un sub-lote fallido se reporta y se sigue con el siguiente.
        - Al terminar, los fallidos se agregan a errors/<tabla>.json.

        Raises:
            SchemaError: si la tabla no se puede registrar/crear
        """
        table = self._registry.get_table(logical_name)
        result = UpsertResult(table_name=logical_name)

        valid: List[tuple[Any, AirtableRecord]] = []
        written_ids: set[str] = set()
        for raw in records:
            try:
                valid.append((raw, AirtableRecord.from_api(raw)))
            except ValidationError as e:
                logger.warning(f"[{logical_name}] Registro descartado: {e.message}")
                result.failed.append(FailedRecord(record=raw, reason=e.message))

        for sub_batch in chunked(valid, batch_size or self._batch_size):
            try:
                with self._engine.begin() as conn:
                    created, updated = self._write_sub_batch(
                        conn, table, logical_name, [rec for _, rec in sub_batch]
                    )
            except (SQLAlchemyError, TypeError, ValueError) as e:
                error = StorageError(
                    f"Sub-lote de {len(sub_batch)} registros revertido: {e}",
                    table_name=logical_name,
                )
                logger.error(f"[{logical_name}] {error.message}")
                result.failed.extend(FailedRecord(record=raw, reason=error.message) for raw, _ in sub_batch)
                continue

            result.written += len(sub_batch)
            written_ids.update(rec.record_id for _, rec in sub_batch)
            result.created += created
            result.updated += updated

        self._persist_failures(table.name, result.failed, written_ids)
        logger.info(
            f"[{logical_name}] upsert: escritos={result.written}, fallidos={len(result.failed)}"
        )
        return result

    def _write_sub_batch(
        self,
        conn: Connection,
        table: Table,
        logical_name: str,
        records: List[AirtableRecord],
    ) -> tuple[int, int]:
        rows = [
            {
                "airtable_id": rec.record_id,
                "airtable_created_time": rec.created_time,
                "fields": json.dumps(rec.fields, ensure_ascii=False),
            }
            for rec in records
        ]

        previous: Dict[str, str] = {}
        if self._operations is not None:
            ids = [row["airtable_id"] for row in rows]
            previous = {
                row.airtable_id: row.fields
                for row in conn.execute(
                    select(table.c.airtable_id, table.c.fields).where(table.c.airtable_id.in_(ids))
                )
            }

        stmt = sqlite_insert(table)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.airtable_id],
            set_={
                "airtable_created_time": stmt.excluded.airtable_created_time,
                "fields": stmt.excluded.fields,
            },
        )
        conn.execute(stmt, rows)

        if self._operations is None:
            return 0, 0

        created = updated = 0
        for rec, row in zip(records, rows):
            before = previous.get(rec.record_id)
            if before is None:
                operation = OperationType.CREATE
                created += 1
            elif before != row["fields"]:
                operation = OperationType.UPDATE
                updated += 1
            else:
                continue
            self._operations.append(
                rec.record_id, operation, rec.fields, table_name=logical_name, conn=conn
            )
            previous[rec.record_id] = row["fields"]
        return created, updated

    @staticmethod
    def _failed_id(record: Any) -> Optional[str]:
        record_id = record.get("id") if isinstance(record, dict) else None
        return record_id if isinstance(record_id, str) and record_id else None

    def _persist_failures(
        self,
        storage_id: str,
        failed: List[FailedRecord],
        written_ids: set[str],
    ) -> None:
        """
        Mezcla los fallidos de esta llamada con errors/<tabla>.json.

        El archivo acumula fallidos entre corridas para reprocesarlos a mano:
        - una entrada se reemplaza si el mismo id vuelve a fallar
        - una entrada se quita cuando ese id se escribe bien
        - las entradas sin id se conservan
        Si la llamada no cambia nada, el archivo no se toca.
        """
        if self._error_writer is None:
            return
        try:
            previous = self._error_writer.read(storage_id) or []
            if not isinstance(previous, list):
                previous = []
            failed_ids = {self._failed_id(f.record) for f in failed} - {None}
            kept = [
                entry
                for entry in previous
                if self._failed_id(entry.get("record") if isinstance(entry, dict) else None)
                not in (written_ids | failed_ids)
            ]
            if not failed and len(kept) == len(previous):
                return

            merged = kept + [{"record": f.record, "reason": f.reason} for f in failed]
            path = self._error_writer.write(storage_id, merged)
            if failed:
                logger.warning(f"{len(failed)} registros fallidos guardados en {path}")
            else:
                logger.info(f"{len(previous) - len(kept)} registros reprocesados quitados de {path}")
        except (StorageError, OSError) as e:
            logger.error(f"No se pudo guardar el archivo de errores de {storage_id}: {e}")

    @staticmethod
    def _to_record(row) -> AirtableRecord:
        return AirtableRecord(
            record_id=row.airtable_id,
            created_time=row.airtable_created_time,
            fields=json.loads(row.fields),
        )

    def get_records(
        self,
        logical_name: str,
        airtable_ids: Iterable[str],
        *,
        conn: Optional[Connection] = None,
    ) -> Dict[str, AirtableRecord]:
        """Registros del espejo por id (los ausentes no aparecen en el dict)."""
        ids = list(airtable_ids)
        if not ids:
            return {}
        table = self._registry.get_table(logical_name)
        stmt = select(table.c.airtable_id, table.c.airtable_created_time, table.c.fields).where(
            table.c.airtable_id.in_(ids)
        )
        with transaction(self._engine, conn) as tx:
            return {row.airtable_id: self._to_record(row) for row in tx.execute(stmt)}

    def get_record(self, logical_name: str, airtable_id: str) -> Optional[AirtableRecord]:
        return self.get_records(logical_name, [airtable_id]).get(airtable_id)

    def list_records(self, logical_name: str) -> List[AirtableRecord]:
        table = self._registry.get_table(logical_name)
        stmt = select(table.c.airtable_id, table.c.airtable_created_time, table.c.fields).order_by(
            table.c.id
        )
        with self._engine.connect() as conn:
            return [self._to_record(row) for row in conn.execute(stmt)]

    def count(self, logical_name: str) -> int:
        table = self._registry.get_table(logical_name)
        with self._engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(table)).scalar_one()

    def delete_records(
        self,
        logical_name: str,
        airtable_ids: Iterable[str],
        *,
        conn: Optional[Connection] = None,
    ) -> int:
        """Borra filas por airtable_id; retorna cuántas se borraron."""
        ids = list(airtable_ids)
        if not ids:
            return 0
        table = self._registry.get_table(logical_name)
        with transaction(self._engine, conn) as tx:
            result = tx.execute(table.delete().where(table.c.airtable_id.in_(ids)))
            return result.rowcount or 0
