"""
Definición de tablas (SQLAlchemy Core).

Las tablas del log de operaciones son fijas y comparten `shared_metadata`.
Las tablas espejo se construyen en runtime, una por tabla Airtable, a partir
del identificador ya sanitizado.
"""
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
)
from sqlalchemy.sql import func

from airtable_mirror.shared.constants.operation_constants import (
    OPERATION_TYPES_TABLE,
    OPERATIONS_TABLE,
)


shared_metadata = MetaData()


operation_types_table = Table(
    OPERATION_TYPES_TABLE,
    shared_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False, unique=True),
)


operations_table = Table(
    OPERATIONS_TABLE,
    shared_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("airtable_id", Text, nullable=False),
    Column("table_name", Text, nullable=False),
    Column(
        "operation_type_id",
        Integer,
        ForeignKey(f"{OPERATION_TYPES_TABLE}.id"),
        nullable=False,
    ),
    Column("occurred_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    # Snapshot completo de fields como JSON (texto)
    Column("record_snapshot", Text, nullable=False),
    Index("idx_operations_airtable_id", "airtable_id"),
    Index("idx_operations_operation_type_id", "operation_type_id"),
    Index("idx_operations_occurred_at", "occurred_at"),
)


def build_record_table(storage_id: str, metadata: MetaData) -> Table:
    """
    Tabla espejo para una tabla Airtable.

    Una fila por airtable_id; fields se guarda como JSON (texto) y se
    reemplaza completo en cada upsert.
    """
    return Table(
        storage_id,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("airtable_id", Text, nullable=False, unique=True),
        Column("airtable_created_time", Text, nullable=False),
        Column("fields", Text, nullable=False),
        Index(f"idx_{storage_id}_airtable_id", "airtable_id"),
        sqlite_autoincrement=True,
    )
