"""
Repositorio del log de operaciones (append-only).

Cada entrada guarda el snapshot completo de fields del registro en el momento
de la operación. Es la única fuente para restaurar registros borrados.
"""
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine

from airtable_mirror.infrastructure.database.session import transaction
from airtable_mirror.infrastructure.database.tables import (
    operation_types_table,
    operations_table,
)
from airtable_mirror.infrastructure.external.airtable.types import ensure_utc, utc_now
from airtable_mirror.shared.constants.operation_constants import OperationType
from airtable_mirror.shared.exceptions import SchemaError


@dataclass(frozen=True)
class OperationEntry:
    """Entrada del log ya deserializada."""

    id: int
    airtable_id: str
    table_name: str
    operation_type: OperationType
    occurred_at: datetime
    snapshot: Dict[str, Any]


class OperationRepository:
    """
    Gestiona las tablas operation_types y operations.

    append() acepta `conn` para sumarse a la transacción del caller (p.ej. el
    borrado local de un lote); sin `conn` abre su propia transacción.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._type_ids: Dict[OperationType, int] = {}

    def ensure_operation_types_seeded(self) -> None:
        """
        Inserta CREATE/UPDATE/DELETE si faltan (insert-or-ignore por nombre).

        Idempotente: correrlo N veces deja exactamente 3 filas.

        Raises:
            SchemaError: si la tabla no se puede poblar (fatal en la inicialización)
        """
        with self._engine.begin() as conn:
            self._seed(conn)

    def _seed(self, conn: Connection) -> None:
        stmt = sqlite_insert(operation_types_table).on_conflict_do_nothing(
            index_elements=["name"]
        )
        conn.execute(stmt, [{"name": op.value} for op in OperationType])
        rows = conn.execute(
            select(operation_types_table.c.id, operation_types_table.c.name)
        ).all()

        known = {op.value for op in OperationType}
        self._type_ids = {OperationType(row.name): row.id for row in rows if row.name in known}
        missing = [op.value for op in OperationType if op not in self._type_ids]
        if missing:
            raise SchemaError(f"Tipos de operación sin sembrar: {missing}")

    def _type_id(self, operation_type: OperationType, conn: Connection) -> int:
        if not self._type_ids:
            self._seed(conn)
        return self._type_ids[operation_type]

    def append(
        self,
        airtable_id: str,
        operation_type: OperationType,
        snapshot: Dict[str, Any],
        *,
        table_name: str,
        conn: Optional[Connection] = None,
    ) -> int:
        """
        Agrega una entrada al log y retorna su id.

        El snapshot se serializa respetando el orden de los fields.
        """
        with transaction(self._engine, conn) as tx:
            values = {
                "airtable_id": airtable_id,
                "table_name": table_name,
                "operation_type_id": self._type_id(OperationType(operation_type), tx),
                "occurred_at": utc_now(),
                "record_snapshot": json.dumps(snapshot, ensure_ascii=False),
            }
            result = tx.execute(operations_table.insert().values(**values))
            entry_id = result.inserted_primary_key[0]

        logger.debug(f"Log: {OperationType(operation_type).value} {airtable_id} ({table_name}) -> #{entry_id}")
        return entry_id

    def _select_entries(self):
        return select(
            operations_table.c.id,
            operations_table.c.airtable_id,
            operations_table.c.table_name,
            operation_types_table.c.name.label("operation_type"),
            operations_table.c.occurred_at,
            operations_table.c.record_snapshot,
        ).join(
            operation_types_table,
            operations_table.c.operation_type_id == operation_types_table.c.id,
        )

    @staticmethod
    def _to_entry(row) -> OperationEntry:
        return OperationEntry(
            id=row.id,
            airtable_id=row.airtable_id,
            table_name=row.table_name,
            operation_type=OperationType(row.operation_type),
            occurred_at=ensure_utc(row.occurred_at),
            snapshot=json.loads(row.record_snapshot),
        )

    def latest_entry(self, airtable_id: str, *, conn: Optional[Connection] = None) -> Optional[OperationEntry]:
        """
        Entrada más reciente del registro, sea cual sea su tipo.

        El orden es el id autoincremental: refleja el orden real de las operaciones.
        """
        stmt = (
            self._select_entries()
            .where(operations_table.c.airtable_id == airtable_id)
            .order_by(operations_table.c.id.desc())
            .limit(1)
        )
        with transaction(self._engine, conn) as tx:
            row = tx.execute(stmt).first()
        return self._to_entry(row) if row else None

    def history(self, airtable_id: str) -> List[OperationEntry]:
        """Todas las entradas del registro en orden cronológico."""
        stmt = (
            self._select_entries()
            .where(operations_table.c.airtable_id == airtable_id)
            .order_by(operations_table.c.id.asc())
        )
        with self._engine.connect() as conn:
            return [self._to_entry(row) for row in conn.execute(stmt)]

    def count(self, operation_type: Optional[OperationType] = None) -> int:
        stmt = select(func.count()).select_from(operations_table)
        if operation_type is not None:
            stmt = stmt.join(
                operation_types_table,
                operations_table.c.operation_type_id == operation_types_table.c.id,
            ).where(operation_types_table.c.name == OperationType(operation_type).value)
        with self._engine.connect() as conn:
            return conn.execute(stmt).scalar_one()
