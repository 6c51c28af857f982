"""
Constantes del log de operaciones.
"""
from enum import Enum


class OperationType(str, Enum):
    """Tipos de operación registrados sobre el espejo."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


# Tablas compartidas del log; ninguna tabla espejada puede usar estos nombres
OPERATION_TYPES_TABLE = "operation_types"
OPERATIONS_TABLE = "operations"

RESERVED_TABLE_NAMES = frozenset({OPERATION_TYPES_TABLE, OPERATIONS_TABLE})
RESERVED_TABLE_PREFIX = "sqlite_"
