"""
Caso de uso: borrado reversible de registros.

Flujo por corrida:
IDENTIFY -> (dry run: fin) -> lotes de <=10 -> por lote:
borrado remoto -> borrado local -> entrada DELETE en el log.

Política cuando el borrado remoto funciona pero el local falla:
- se reintenta el paso local (LOCAL_DELETE_RETRIES veces)
- si sigue fallando, los ids y su foto remota se guardan en
  pending/<tabla>.json y se reportan como no reconciliados
- cada corrida no-dry-run aplica primero los pendientes de la tabla
"""
from typing import Any, Callable, Dict, List, Optional

from loguru import logger
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from airtable_mirror.application.dto.results_dto import BatchFailure, RemovalResult
from airtable_mirror.application.interfaces.record_source import RecordSource
from airtable_mirror.application.services.record_filters import RecordPredicate
from airtable_mirror.infrastructure.external.airtable.airtable_client import check_delete_batch
from airtable_mirror.infrastructure.files.json_writer import JsonWriter
from airtable_mirror.infrastructure.repositories.operation_repository import OperationRepository
from airtable_mirror.infrastructure.repositories.record_repository import RecordRepository
from airtable_mirror.shared.constants.airtable_constants import AIRTABLE_DELETE_LIMIT
from airtable_mirror.shared.constants.operation_constants import OperationType
from airtable_mirror.shared.exceptions import BatchLimitError, RemoteCallError, StorageError
from airtable_mirror.shared.utils.batching import chunked

SnapshotLoader = Callable[[str], List[Dict[str, Any]]]

_LOCAL_ERRORS = (SQLAlchemyError, StorageError, TypeError, ValueError)


class RemovalUseCases:
    """
    Orquesta el borrado remoto + local de registros identificados sobre la
    foto más reciente de la tabla (exportación o fetch en vivo).
    """

    def __init__(
        self,
        *,
        engine: Engine,
        source: RecordSource,
        records: RecordRepository,
        operations: OperationRepository,
        snapshot_loader: SnapshotLoader,
        pending_writer: JsonWriter,
        batch_size: int = AIRTABLE_DELETE_LIMIT,
        local_retries: int = 3,
    ):
        self._engine = engine
        self._source = source
        self._records = records
        self._operations = operations
        self._snapshot_loader = snapshot_loader
        self._pending = pending_writer
        self._batch_size = batch_size
        self._local_retries = max(1, local_retries)

    def identify_records_to_remove(
        self, table_name: str, predicate: RecordPredicate
    ) -> List[Dict[str, Any]]:
        """
        Registros de la foto remota que cumplen el predicado, en orden y sin ids repetidos.
        """
        snapshot = self._snapshot_loader(table_name)
        selected: List[Dict[str, Any]] = []
        seen: set[str] = set()
        for record in snapshot:
            if not isinstance(record, dict):
                continue
            record_id = record.get("id")
            if not isinstance(record_id, str) or record_id in seen:
                continue
            if predicate(record):
                selected.append(record)
                seen.add(record_id)
                logger.debug(f"Registro a borrar: {record_id}")
        return selected

    def remove_records(
        self,
        table_name: str,
        predicate: RecordPredicate,
        *,
        dry_run: bool = False,
    ) -> RemovalResult:
        result = RemovalResult(table_name=table_name, dry_run=dry_run)

        if not dry_run:
            result.reconciled = self.reconcile_pending_deletes(table_name)

        candidates = self.identify_records_to_remove(table_name, predicate)
        result.candidates = len(candidates)
        if not candidates:
            logger.info(f"[{table_name}] No hay registros para borrar.")
            return result

        logger.info(f"[{table_name}] Encontrados {len(candidates)} registros para borrar.")
        if dry_run:
            return result

        by_id = {record["id"]: record for record in candidates}
        self._records.ensure_table(table_name)

        logger.info(f"[{table_name}] Borrando registros...")
        for batch_ids in chunked(list(by_id), self._batch_size):
            self._process_batch(table_name, batch_ids, by_id, result)

        logger.success(
            f"[{table_name}] Borrado terminado: borrados={result.removed}, "
            f"omitidos={result.skipped}, sin reconciliar={result.unreconciled}, "
            f"llamadas remotas={result.remote_calls}"
        )
        return result

    def _process_batch(
        self,
        table_name: str,
        batch_ids: List[str],
        by_id: Dict[str, Dict[str, Any]],
        result: RemovalResult,
    ) -> None:
        try:
            check_delete_batch(batch_ids)
            result.remote_calls += 1
            response = self._source.delete_records(table_name, batch_ids)
        except (BatchLimitError, RemoteCallError) as e:
            logger.error(f"[{table_name}] Lote omitido ({len(batch_ids)} registros): {e.message}")
            result.skipped += len(batch_ids)
            result.failed_batches.append(BatchFailure(record_ids=batch_ids, reason=e.message))
            return

        confirmed_set = {rec.id for rec in response if rec.deleted}
        confirmed = [rid for rid in batch_ids if rid in confirmed_set]
        unconfirmed = [rid for rid in batch_ids if rid not in confirmed_set]
        if unconfirmed:
            logger.warning(f"[{table_name}] Airtable no confirmó el borrado de: {unconfirmed}")
            result.skipped += len(unconfirmed)
            result.failed_batches.append(
                BatchFailure(record_ids=unconfirmed, reason="borrado no confirmado por Airtable")
            )
        if not confirmed:
            return

        fallback = {rid: by_id[rid].get("fields") or {} for rid in confirmed}
        last_error: Optional[Exception] = None
        for attempt in range(1, self._local_retries + 1):
            try:
                self._apply_local_delete(table_name, confirmed, fallback)
                break
            except _LOCAL_ERRORS as e:
                last_error = e
                logger.warning(
                    f"[{table_name}] Borrado local fallido (intento {attempt}/{self._local_retries}): {e}"
                )
        else:
            self._save_pending(table_name, confirmed, fallback)
            result.unreconciled += len(confirmed)
            result.failed_batches.append(
                BatchFailure(record_ids=confirmed, reason=f"borrado local pendiente: {last_error}")
            )
            return

        result.removed += len(confirmed)
        result.removed_ids.extend(confirmed)

    def _apply_local_delete(
        self,
        table_name: str,
        record_ids: List[str],
        fallback: Dict[str, Dict[str, Any]],
    ) -> None:
        """
        Una transacción: foto previa desde el espejo, borrado de filas y una
        entrada DELETE por registro.
        """
        self._records.ensure_table(table_name)
        with self._engine.begin() as conn:
            mirrored = self._records.get_records(table_name, record_ids, conn=conn)
            snapshots: Dict[str, Dict[str, Any]] = {}
            for rid in record_ids:
                record = mirrored.get(rid)
                if record is None:
                    logger.warning(f"[{table_name}] {rid} no está en el espejo; se usa la foto remota")
                    snapshots[rid] = fallback.get(rid, {})
                else:
                    snapshots[rid] = record.fields

            self._records.delete_records(table_name, record_ids, conn=conn)
            for rid in record_ids:
                self._operations.append(
                    rid, OperationType.DELETE, snapshots[rid], table_name=table_name, conn=conn
                )

    def _save_pending(
        self,
        table_name: str,
        record_ids: List[str],
        fallback: Dict[str, Dict[str, Any]],
    ) -> None:
        storage_id = self._records.ensure_table(table_name)
        try:
            pending = self._pending.read(storage_id) or []
            known = {entry.get("airtable_id") for entry in pending}
            pending.extend(
                {"airtable_id": rid, "fields": fallback.get(rid, {})}
                for rid in record_ids
                if rid not in known
            )
            path = self._pending.write(storage_id, pending)
        except StorageError as e:
            logger.error(
                f"[{table_name}] No se pudo guardar el borrado pendiente de {record_ids}: {e.message}"
            )
            return
        logger.error(
            f"[{table_name}] {len(record_ids)} registros borrados en Airtable quedan pendientes en {path}"
        )

    def reconcile_pending_deletes(self, table_name: str) -> int:
        """
        Aplica los borrados locales pendientes de corridas anteriores.

        Retorna cuántos registros se reconciliaron (0 si no había o si volvió a fallar).
        """
        storage_id = self._records.ensure_table(table_name)
        pending = self._pending.read(storage_id) or []
        if not pending:
            return 0

        record_ids = [entry["airtable_id"] for entry in pending if entry.get("airtable_id")]
        fallback = {entry["airtable_id"]: entry.get("fields") or {} for entry in pending if entry.get("airtable_id")}
        logger.info(f"[{table_name}] Reconciliando {len(record_ids)} borrados locales pendientes")
        try:
            self._apply_local_delete(table_name, record_ids, fallback)
        except _LOCAL_ERRORS as e:
            logger.error(f"[{table_name}] La reconciliación volvió a fallar: {e}")
            return 0

        self._pending.remove(storage_id)
        logger.success(f"[{table_name}] {len(record_ids)} borrados pendientes reconciliados")
        return len(record_ids)
