"""
Construcción explícita del espejo: contexto, repositorios, cliente y casos de uso.

El CLI y los tests arman todo a traves de `build_mirror`; no hay instancias
globales.
"""
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from loguru import logger
from sqlalchemy.engine import Engine

from airtable_mirror.application.interfaces.record_source import RecordSource
from airtable_mirror.application.use_cases.removal_use_cases import RemovalUseCases, SnapshotLoader
from airtable_mirror.application.use_cases.restore_use_cases import RestoreUseCases
from airtable_mirror.application.use_cases.sync_use_cases import MirrorSyncUseCases
from airtable_mirror.core.config import Settings
from airtable_mirror.infrastructure.database.session import MirrorContext, create_context
from airtable_mirror.infrastructure.database.table_registry import TableRegistry
from airtable_mirror.infrastructure.external.airtable.airtable_client import AirtableClient
from airtable_mirror.infrastructure.external.airtable.types import AirtablePage, DeletedRecord
from airtable_mirror.infrastructure.files.file_loader import LatestExportLoader
from airtable_mirror.infrastructure.files.json_writer import JsonWriter
from airtable_mirror.infrastructure.repositories.operation_repository import OperationRepository
from airtable_mirror.infrastructure.repositories.record_repository import RecordRepository
from airtable_mirror.shared.utils.batching import flatten_pages


class LazyAirtableSource:
    """
    RecordSource que construye el AirtableClient en la primera llamada.

    Las credenciales faltantes se reportan (ConfigError) solo cuando una
    operación necesita realmente la API.
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._client: Optional[AirtableClient] = None

    @property
    def client(self) -> AirtableClient:
        if self._client is None:
            self._client = AirtableClient.from_settings(self._settings)
        return self._client

    def fetch_page(self, table_name: str, offset: Optional[str] = None) -> AirtablePage:
        return self.client.fetch_page(table_name, offset)

    def iter_pages(self, table_name: str) -> Iterator[list[dict[str, Any]]]:
        return self.client.iter_pages(table_name)

    def delete_records(self, table_name: str, record_ids: list[str]) -> list[DeletedRecord]:
        return self.client.delete_records(table_name, record_ids)

    def create_record(self, table_name: str, fields: dict[str, Any]) -> dict[str, Any]:
        return self.client.create_record(table_name, fields)


@dataclass
class Mirror:
    context: MirrorContext
    registry: TableRegistry
    records: RecordRepository
    operations: OperationRepository
    source: RecordSource
    sync: MirrorSyncUseCases
    removal: RemovalUseCases
    restore: RestoreUseCases

    def close(self) -> None:
        self.context.dispose()


def build_mirror(
    settings: Settings,
    *,
    source: Optional[RecordSource] = None,
    engine: Optional[Engine] = None,
    live_snapshot: bool = False,
) -> Mirror:
    """
    Inicializa almacenamiento y arma los casos de uso.

    Args:
        settings: configuración de la corrida
        source: fuente remota; por defecto AirtableClient desde settings
        engine: engine ya creado (tests); por defecto se crea desde settings
        live_snapshot: si True, el borrado identifica candidatos con un fetch en
            vivo en lugar de la última exportación

    El cliente de Airtable se crea recién en la primera llamada remota, así
    que `history` y los dry runs funcionan sin credenciales.

    Raises:
        SchemaError: no se pudo crear o poblar el esquema compartido
    """
    if source is None:
        source = LazyAirtableSource(settings)

    context = create_context(settings, engine=engine)
    operations = OperationRepository(context.engine)
    operations.ensure_operation_types_seeded()

    registry = TableRegistry(context.engine)
    records = RecordRepository(
        context.engine,
        registry,
        error_writer=JsonWriter(settings.errors_dir),
        operations=operations,
        batch_size=settings.BATCH_SIZE,
    )

    if live_snapshot:
        snapshot_loader: SnapshotLoader = _live_loader(source)
    else:
        snapshot_loader = LatestExportLoader(settings.raw_dir)

    mirror = Mirror(
        context=context,
        registry=registry,
        records=records,
        operations=operations,
        source=source,
        sync=MirrorSyncUseCases(
            source=source,
            records=records,
            export_writer=JsonWriter(settings.raw_dir),
        ),
        removal=RemovalUseCases(
            engine=context.engine,
            source=source,
            records=records,
            operations=operations,
            snapshot_loader=snapshot_loader,
            pending_writer=JsonWriter(settings.pending_dir),
            batch_size=settings.delete_batch_size,
            local_retries=settings.LOCAL_DELETE_RETRIES,
        ),
        restore=RestoreUseCases(
            source=source,
            records=records,
            operations=operations,
            disallowed_fields=settings.RESTORE_DISALLOWED_FIELDS,
        ),
    )
    logger.info(f"Espejo listo en {settings.output_path}")
    return mirror


def _live_loader(source: RecordSource) -> SnapshotLoader:
    def load(table_name: str) -> list:
        logger.info(f"Descargando foto en vivo de {table_name} ...")
        return flatten_pages(source.iter_pages(table_name))

    return load
