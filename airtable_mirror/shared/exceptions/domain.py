"""
Excepciones del dominio de sincronización y borrado reversible.

Política de propagación:
- ValidationError, BatchLimitError, RemoteCallError y StorageError son locales
  a un registro o lote: se capturan, se reportan y la corrida continua.
- SchemaError y ConfigError en la inicialización abortan la corrida.
"""
from typing import Any, Optional

from airtable_mirror.shared.exceptions.base import MirrorException


class ValidationError(MirrorException):
    """Un registro no cumple la forma mínima (id, createdTime, fields)."""

    def __init__(self, message: str, record_id: Optional[Any] = None):
        details = {"record_id": record_id} if record_id is not None else None
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details=details
        )
        self.record_id = record_id


class BatchLimitError(MirrorException):
    """Un lote de borrado excede el límite por llamada de la API remota."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            message=f"El lote de {size} registros excede el límite de {limit} por llamada",
            error_code="BATCH_LIMIT_EXCEEDED",
            details={"size": size, "limit": limit}
        )
        self.size = size
        self.limit = limit


class SchemaError(MirrorException):
    """Nombre de tabla inválido o fallo al crear el esquema."""

    def __init__(self, message: str, table_name: Optional[str] = None):
        details = {"table_name": table_name} if table_name is not None else None
        super().__init__(
            message=message,
            error_code="SCHEMA_ERROR",
            details=details
        )
        self.table_name = table_name


class RemoteCallError(MirrorException):
    """
    Fallo en una llamada a Airtable.

    retryable indica errores transitorios (timeout, conexión, 429, 5xx).
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = False
    ):
        super().__init__(
            message=message,
            error_code="REMOTE_CALL_ERROR",
            details={"status_code": status_code, "retryable": retryable}
        )
        self.status_code = status_code
        self.retryable = retryable


class StorageError(MirrorException):
    """Fallo de una transacción en el almacenamiento local."""

    def __init__(self, message: str, table_name: Optional[str] = None):
        details = {"table_name": table_name} if table_name is not None else None
        super().__init__(
            message=message,
            error_code="STORAGE_ERROR",
            details=details
        )
        self.table_name = table_name


class ConfigError(MirrorException):
    """Configuración obligatoria ausente o inválida."""

    def __init__(self, message: str, setting: Optional[str] = None):
        details = {"setting": setting} if setting else None
        super().__init__(
            message=message,
            error_code="CONFIG_ERROR",
            details=details
        )
