"""
Caso de uso: sincronización Airtable -> espejo SQLite.

Por tabla:
- descarga todas las páginas (offset)
- escribe la exportación cruda raw/<tabla>.json
- UPSERT en el espejo por airtable_id (CREATE/UPDATE en el log)

Estrategia de idempotencia: el UPSERT reemplaza el registro completo, así que
se puede ejecutar N veces sin duplicar datos.
"""
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from airtable_mirror.application.dto.results_dto import SyncRunResult, TableSyncResult
from airtable_mirror.application.interfaces.record_source import RecordSource
from airtable_mirror.infrastructure.files.json_writer import JsonWriter
from airtable_mirror.infrastructure.repositories.record_repository import RecordRepository
from airtable_mirror.shared.exceptions import RemoteCallError, SchemaError, StorageError
from airtable_mirror.shared.utils.batching import flatten_pages


class MirrorSyncUseCases:
    """Orquestador del espejo para una o varias tablas."""

    def __init__(
        self,
        *,
        source: RecordSource,
        records: RecordRepository,
        export_writer: Optional[JsonWriter] = None,
    ):
        self._source = source
        self._records = records
        self._export_writer = export_writer

    def fetch_table(self, table_name: str) -> List[Dict[str, Any]]:
        return flatten_pages(self._source.iter_pages(table_name))

    def sync_table(self, table_name: str) -> TableSyncResult:
        """
        Sincroniza una tabla. Los errores de la tabla se reportan en el
        resultado; no afectan a las demás tablas.
        """
        result = TableSyncResult(table_name=table_name)
        logger.info(f"Descargando {table_name} ...")
        try:
            records = self.fetch_table(table_name)
        except RemoteCallError as e:
            logger.error(f"[{table_name}] No se pudo descargar: {e.message}")
            result.error = e.message
            return result

        result.fetched = len(records)
        logger.info(f"[{table_name}] {len(records)} registros obtenidos")

        if self._export_writer is not None:
            try:
                path = self._export_writer.write(table_name, records)
                logger.info(f"[{table_name}] Exportación cruda escrita en {path}")
            except StorageError as e:
                logger.error(f"[{table_name}] No se pudo escribir la exportación: {e.message}")

        try:
            upsert = self._records.upsert_batch(table_name, records)
        except SchemaError as e:
            logger.error(f"[{table_name}] Tabla omitida: {e.message}")
            result.error = e.message
            result.failed = len(records)
            return result

        result.written = upsert.written
        result.created = upsert.created
        result.updated = upsert.updated
        result.failed = len(upsert.failed)
        return result

    def sync_tables(self, table_names: Iterable[str]) -> SyncRunResult:
        run = SyncRunResult()
        for table_name in table_names:
            run.tables.append(self.sync_table(table_name))

        logger.success(f"Sync completado. escritos={run.written}, fallidos={run.failed}")
        return run
