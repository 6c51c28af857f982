"""
Registro de tablas espejo.

Mapea el nombre lógico de una tabla Airtable a su identificador SQLite y crea
el esquema de forma perezosa en la primera escritura.
"""
from typing import Dict

from loguru import logger
from sqlalchemy import MetaData, Table
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import CreateIndex, CreateTable

from airtable_mirror.infrastructure.database.tables import build_record_table
from airtable_mirror.shared.constants.operation_constants import (
    RESERVED_TABLE_NAMES,
    RESERVED_TABLE_PREFIX,
)
from airtable_mirror.shared.exceptions import SchemaError
from airtable_mirror.shared.utils.sanitize_names import sanitize_table_name


class TableRegistry:
    """
    Cache nombre lógico -> tabla SQLAlchemy durante la vida del proceso.

    Las tablas nunca se destruyen. El DDL usa IF NOT EXISTS, así que volver a
    crear una tabla existente (otra corrida, otro proceso) no falla.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._metadata = MetaData()
        self._tables: Dict[str, Table] = {}
        # SQLite compara identificadores sin distinguir mayúsculas
        self._owners: Dict[str, str] = {}

    def ensure_table(self, logical_name: str) -> str:
        """
        Retorna el identificador de almacenamiento, creando el esquema si hace falta.

        Raises:
            SchemaError: nombre vacío tras sanitizar, colisión con otra tabla o
                con una tabla reservada, o fallo del DDL
        """
        return self.get_table(logical_name).name

    def get_table(self, logical_name: str) -> Table:
        """Tabla SQLAlchemy de la tabla lógica (la crea en la primera llamada)."""
        cached = self._tables.get(logical_name)
        if cached is not None:
            return cached

        storage_id = sanitize_table_name(logical_name)
        key = storage_id.lower()

        if key in RESERVED_TABLE_NAMES or key.startswith(RESERVED_TABLE_PREFIX):
            raise SchemaError(
                f"La tabla '{logical_name}' produce el identificador reservado '{storage_id}'",
                table_name=logical_name,
            )

        owner = self._owners.get(key)
        if owner is not None and owner.strip() == logical_name.strip():
            # Mismo nombre con espacios alrededor: misma tabla
            self._tables[logical_name] = self._tables[owner]
            return self._tables[owner]
        if owner is not None:
            raise SchemaError(
                f"Las tablas '{owner}' y '{logical_name}' producen el mismo identificador '{storage_id}'",
                table_name=logical_name,
            )

        table = build_record_table(storage_id, self._metadata)
        try:
            with self._engine.begin() as conn:
                conn.execute(CreateTable(table, if_not_exists=True))
                for index in table.indexes:
                    conn.execute(CreateIndex(index, if_not_exists=True))
        except SQLAlchemyError as e:
            self._metadata.remove(table)
            raise SchemaError(
                f"No se pudo crear la tabla '{storage_id}': {e}", table_name=logical_name
            ) from e

        self._tables[logical_name] = table
        self._owners[key] = logical_name
        logger.debug(f"Tabla espejo lista: '{logical_name}' -> {storage_id}")
        return table

    def mappings(self) -> Dict[str, str]:
        """Nombre lógico -> identificador, para las tablas ya registradas."""
        return {name: table.name for name, table in self._tables.items()}
