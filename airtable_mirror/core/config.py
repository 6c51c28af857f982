"""
Configuración central del espejo Airtable -> SQLite.
Gestiona variables de entorno y valores por defecto.

No se crea una instancia global: el caller construye `Settings` (o usa
`get_settings()`) y la pasa explicitamente al contexto del espejo.
"""
from pathlib import Path
from typing import List

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from airtable_mirror.shared.constants.airtable_constants import (
    AIRTABLE_DELETE_LIMIT,
    DEFAULT_DISALLOWED_CREATE_FIELDS,
    DEFAULT_REMOVAL_FLAG_FIELD,
)


class Settings(BaseSettings):
    """
    Configuración del espejo.

    Directorios derivados de OUTPUT_DIR:
    - raw/: exportaciones JSON crudas por tabla
    - errors/: registros que no se pudieron escribir (por tabla)
    - pending/: borrados locales pendientes de reconciliar (por tabla)
    """

    # Airtable
    AIRTABLE_API_KEY: str = Field(default="")
    AIRTABLE_BASE_ID: str = Field(default="")
    AIRTABLE_API_URL: str = Field(default="https://api.airtable.com/v0")
    HTTP_READ_TIMEOUT: float = Field(default=60)
    # User agent de curl para parecer un cliente básico
    USER_AGENT: str = Field(default="curl/7.77.0")
    REQUEST_DELAY: float = Field(default=0.2)

    # Almacenamiento local
    OUTPUT_DIR: str = Field(default="./dist/data")
    DB_FILE: str = Field(default="airtable-mirror.db")
    DATABASE_URL: str = Field(default="")

    # Lotes
    BATCH_SIZE: int = Field(default=50, gt=0)
    DELETE_BATCH_SIZE: int = Field(default=AIRTABLE_DELETE_LIMIT, gt=0)
    LOCAL_DELETE_RETRIES: int = Field(default=3, ge=1)

    # Borrado / restauración
    DRY_RUN: bool = Field(default=False)
    REMOVAL_FLAG_FIELD: str = Field(default=DEFAULT_REMOVAL_FLAG_FIELD)
    RESTORE_DISALLOWED_FIELDS: List[str] = Field(
        default_factory=lambda: list(DEFAULT_DISALLOWED_CREATE_FIELDS)
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/airtable-mirror.log")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @computed_field
    @property
    def effective_database_url(self) -> str:
        """
        URL efectiva de la base de datos.
        Si DATABASE_URL está definida se usa tal cual; si no, SQLite en OUTPUT_DIR/DB_FILE.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"sqlite:///{self.database_path.as_posix()}"

    @property
    def output_path(self) -> Path:
        return Path(self.OUTPUT_DIR)

    @property
    def database_path(self) -> Path:
        return self.output_path / self.DB_FILE

    @property
    def raw_dir(self) -> Path:
        return self.output_path / "raw"

    @property
    def errors_dir(self) -> Path:
        return self.output_path / "errors"

    @property
    def pending_dir(self) -> Path:
        return self.output_path / "pending"

    @property
    def delete_batch_size(self) -> int:
        """Tamaño de lote de borrado, nunca por encima del límite de la API."""
        return min(self.DELETE_BATCH_SIZE, AIRTABLE_DELETE_LIMIT)


def get_settings(**overrides) -> Settings:
    """Construye la configuración leyendo el entorno (y .env) con overrides opcionales."""
    return Settings(**overrides)
