"""
Configuración de fixtures para pytest.

Cada test obtiene una base SQLite en memoria propia (StaticPool) y un
directorio de salida en tmp_path.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, List, Optional

import pytest

from airtable_mirror.core.config import Settings
from airtable_mirror.infrastructure.database.session import (
    create_context,
    create_mirror_engine,
)
from airtable_mirror.infrastructure.database.table_registry import TableRegistry
from airtable_mirror.infrastructure.external.airtable.airtable_client import check_delete_batch
from airtable_mirror.infrastructure.external.airtable.types import AirtablePage, DeletedRecord
from airtable_mirror.infrastructure.files.json_writer import JsonWriter
from airtable_mirror.infrastructure.repositories.operation_repository import OperationRepository
from airtable_mirror.infrastructure.repositories.record_repository import RecordRepository
from airtable_mirror.shared.exceptions import RemoteCallError


class FakeAirtableClient:
    """
    Fuente remota en memoria que registra cada llamada.

    - delete_failures: ids cuyo lote completo falla con RemoteCallError
    - unconfirmed: ids que Airtable responde con deleted=false
    - create_failures: tablas donde create_record falla
    """

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None, page_size: int = 100):
        self.tables: Dict[str, List[Dict[str, Any]]] = tables or {}
        self.page_size = page_size
        self.delete_calls: List[tuple[str, List[str]]] = []
        self.create_calls: List[tuple[str, Dict[str, Any]]] = []
        self.fetch_calls: List[tuple[str, Optional[str]]] = []
        self.delete_failures: set[str] = set()
        self.unconfirmed: set[str] = set()
        self.create_failures: set[str] = set()
        self.fetch_failures: set[str] = set()
        self._next_id = 1

    def fetch_page(self, table_name: str, offset: Optional[str] = None) -> AirtablePage:
        self.fetch_calls.append((table_name, offset))
        if table_name in self.fetch_failures:
            raise RemoteCallError(f"Timeout en {table_name}", retryable=True)
        records = self.tables.get(table_name, [])
        start = int(offset or 0)
        end = start + self.page_size
        next_offset = str(end) if end < len(records) else None
        return AirtablePage(records=list(records[start:end]), offset=next_offset)

    def iter_pages(self, table_name: str):
        offset = None
        while True:
            page = self.fetch_page(table_name, offset)
            yield page.records
            offset = page.offset
            if not offset:
                break

    def delete_records(self, table_name: str, record_ids: List[str]) -> List[DeletedRecord]:
        check_delete_batch(record_ids)
        self.delete_calls.append((table_name, list(record_ids)))
        if self.delete_failures.intersection(record_ids):
            raise RemoteCallError("Airtable request falló 503", status_code=503, retryable=True)

        response = []
        for rid in record_ids:
            deleted = rid not in self.unconfirmed
            if deleted:
                self.tables[table_name] = [r for r in self.tables.get(table_name, []) if r["id"] != rid]
            response.append(DeletedRecord(id=rid, deleted=deleted))
        return response

    def create_record(self, table_name: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        self.create_calls.append((table_name, dict(fields)))
        if table_name in self.create_failures:
            raise RemoteCallError("Airtable request falló 422: INVALID_VALUE_FOR_COLUMN", status_code=422)
        record = {
            "id": f"recNEW{self._next_id:03d}",
            "createdTime": "2024-06-01T12:00:00.000Z",
            "fields": dict(fields),
        }
        self._next_id += 1
        self.tables.setdefault(table_name, []).append(record)
        return record


@pytest.fixture
def make_record() -> Callable[..., Dict[str, Any]]:
    """Construye un registro con la forma de la API de Airtable."""

    def _make(record_id: str, fields: Optional[Dict[str, Any]] = None, created: str = "2024-01-01T00:00:00.000Z"):
        return {"id": record_id, "createdTime": created, "fields": fields if fields is not None else {}}

    return _make


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        AIRTABLE_API_KEY="keyTest",
        AIRTABLE_BASE_ID="appTest",
        OUTPUT_DIR=str(tmp_path / "data"),
        LOG_FILE="",
        REQUEST_DELAY=0,
    )


@pytest.fixture
def engine() -> Iterator:
    engine = create_mirror_engine("sqlite://")
    yield engine
    engine.dispose()


@pytest.fixture
def context(settings, engine):
    return create_context(settings, engine=engine)


@pytest.fixture
def operations(context) -> OperationRepository:
    repo = OperationRepository(context.engine)
    repo.ensure_operation_types_seeded()
    return repo


@pytest.fixture
def registry(context) -> TableRegistry:
    return TableRegistry(context.engine)


@pytest.fixture
def records(context, registry, operations, settings) -> RecordRepository:
    return RecordRepository(
        context.engine,
        registry,
        error_writer=JsonWriter(settings.errors_dir),
        operations=operations,
        batch_size=settings.BATCH_SIZE,
    )


@pytest.fixture
def fake_source() -> FakeAirtableClient:
    return FakeAirtableClient()
