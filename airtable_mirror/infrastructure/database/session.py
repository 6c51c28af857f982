"""
Gestión del engine y del contexto de base de datos.

No hay singletons: `create_context` construye un MirrorContext (engine +
configuración) que el caller posee y pasa a repositorios y casos de uso.
"""
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from loguru import logger
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from airtable_mirror.core.config import Settings
from airtable_mirror.infrastructure.database.tables import shared_metadata
from airtable_mirror.shared.exceptions import SchemaError


def _create_engine_args(database_url: str, echo: bool = False) -> dict:
    """
    Construye los argumentos del engine según la URL.
    SQLite en memoria necesita una sola conexión compartida (StaticPool).
    """
    args = {"echo": echo, "future": True}
    if database_url.startswith("sqlite"):
        args["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            args["poolclass"] = StaticPool
    return args


def create_mirror_engine(database_url: str, echo: bool = False) -> Engine:
    """Engine SQLAlchemy con claves foraneas activas en SQLite."""
    engine = create_engine(database_url, **_create_engine_args(database_url, echo))

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


@contextmanager
def transaction(engine: Engine, conn: Optional[Connection] = None) -> Iterator[Connection]:
    """
    Une la operación a la transacción del caller si se pasa `conn`;
    si no, abre una transacción propia (commit al salir, rollback si falla).
    """
    if conn is not None:
        yield conn
        return
    with engine.begin() as own_conn:
        yield own_conn


@dataclass
class MirrorContext:
    """Handle de almacenamiento + configuración de una corrida."""

    engine: Engine
    settings: Settings

    def dispose(self) -> None:
        self.engine.dispose()


def init_db(engine: Engine) -> None:
    """
    Crea las tablas compartidas (log de operaciones) si no existen.

    Raises:
        SchemaError: si el DDL falla (fatal para la corrida)
    """
    try:
        shared_metadata.create_all(engine, checkfirst=True)
    except SQLAlchemyError as e:
        raise SchemaError(f"No se pudieron crear las tablas del log de operaciones: {e}") from e


def create_context(settings: Settings, engine: Optional[Engine] = None) -> MirrorContext:
    """
    Inicializa el almacenamiento local: directorios, engine y esquema compartido.

    Los errores aquí son fatales: todas las escrituras posteriores dependen de esto.
    """
    if engine is None:
        if not settings.DATABASE_URL:
            settings.output_path.mkdir(parents=True, exist_ok=True)
        engine = create_mirror_engine(settings.effective_database_url)

    logger.info(f"Inicializando base de datos en {engine.url.render_as_string(hide_password=True)}")
    init_db(engine)
    return MirrorContext(engine=engine, settings=settings)
