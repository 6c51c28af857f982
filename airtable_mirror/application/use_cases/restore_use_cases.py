"""
Caso de uso: restaurar registros borrados a partir del log de operaciones.

Airtable no tiene undo: se re-crea el registro con el último snapshot
registrado. Airtable asigna un id nuevo.
"""
from typing import Iterable

from loguru import logger

from airtable_mirror.application.dto.results_dto import RestoreResult
from airtable_mirror.application.interfaces.record_source import RecordSource
from airtable_mirror.infrastructure.external.airtable.types import strip_fields
from airtable_mirror.infrastructure.repositories.operation_repository import (
    OperationEntry,
    OperationRepository,
)
from airtable_mirror.infrastructure.repositories.record_repository import RecordRepository
from airtable_mirror.shared.constants.airtable_constants import DEFAULT_DISALLOWED_CREATE_FIELDS
from airtable_mirror.shared.constants.operation_constants import OperationType
from airtable_mirror.shared.exceptions import MirrorException, RemoteCallError


class RestoreUseCases:
    """Restauración best-effort: cada id se intenta por separado."""

    def __init__(
        self,
        *,
        source: RecordSource,
        records: RecordRepository,
        operations: OperationRepository,
        disallowed_fields: Iterable[str] = DEFAULT_DISALLOWED_CREATE_FIELDS,
    ):
        self._source = source
        self._records = records
        self._operations = operations
        self._disallowed = tuple(disallowed_fields)

    def restore_records(self, airtable_ids: Iterable[str], *, dry_run: bool = False) -> RestoreResult:
        ids = list(dict.fromkeys(airtable_ids))
        result = RestoreResult(requested=len(ids), dry_run=dry_run)

        found: list[OperationEntry] = []
        for airtable_id in ids:
            entry = self._operations.latest_entry(airtable_id)
            if entry is None:
                logger.info(f"No hay snapshot en el log para {airtable_id}; se omite")
                result.skipped += 1
                continue
            if entry.operation_type != OperationType.DELETE:
                logger.warning(
                    f"La última operación de {airtable_id} es {entry.operation_type.value}, no DELETE; "
                    f"se restaura igual desde ese snapshot"
                )
            found.append(entry)

        result.found = len(found)
        if not found:
            logger.info("No hay registros para restaurar.")
            return result

        logger.info(f"Encontrados {len(found)} registros para restaurar.")
        if dry_run:
            return result

        logger.info("Intentando restaurar registros...")
        for entry in found:
            self._restore_one(entry, result)

        logger.success(f"Restauración terminada: restaurados={result.restored}, omitidos={result.skipped}")
        return result

    def _restore_one(self, entry: OperationEntry, result: RestoreResult) -> None:
        fields = strip_fields(entry.snapshot, self._disallowed)
        try:
            created = self._source.create_record(entry.table_name, fields)
        except RemoteCallError as e:
            logger.error(f"Error restaurando {entry.airtable_id}: {e.message}")
            result.skipped += 1
            result.errors[entry.airtable_id] = e.message
            return

        new_id = str(created.get("id"))
        result.restored += 1
        result.restored_ids[entry.airtable_id] = new_id
        logger.info(f"Registro {entry.airtable_id} restaurado como {new_id} en {entry.table_name}")

        try:
            upsert = self._records.upsert_batch(entry.table_name, [created])
        except MirrorException as e:
            logger.warning(f"{new_id} restaurado en Airtable pero no en el espejo: {e.message}")
            return
        if upsert.failed:
            logger.warning(
                f"{new_id} restaurado en Airtable pero no en el espejo: {upsert.failed[0].reason}"
            )
