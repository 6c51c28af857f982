"""
Carga de la exportación JSON más reciente de una tabla.

El flujo de borrado identifica candidatos sobre esta foto (fuente externa),
no sobre el espejo.
"""
import json
import re
from pathlib import Path
from typing import Any

from loguru import logger

from airtable_mirror.shared.exceptions import StorageError


def export_file_pattern(table_name: str) -> re.Pattern:
    """
    Nombre de archivo de exportación de una tabla: `Items.json` o con sufijo de
    fecha (`Items_2024-05-01.json`, `Items-20240501T1010.json`).

    El sufijo debe empezar con dígito para que `Items` no matchee `Items_Admin_Info`.
    """
    return re.compile(rf"^{re.escape(table_name)}(?:[._-]\d[\w.-]*)?\.json$")


def get_data_files(pattern: re.Pattern, target_dir: Path) -> list[Path]:
    """Archivos que matchean el patrón, del más reciente al más antiguo (mtime)."""
    if not target_dir.is_dir():
        raise StorageError(f"El directorio {target_dir} no existe")

    files = [p for p in target_dir.rglob("*") if p.is_file() and pattern.match(p.name)]
    files.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    return files


def load_data_file(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise StorageError(f"No se pudo parsear JSON de {path}: {e}") from e
    except OSError as e:
        raise StorageError(f"No se pudo leer {path}: {e}") from e


class LatestExportLoader:
    """Lee la última exportación cruda de una tabla desde un directorio."""

    def __init__(self, data_dir: Path | str):
        self.data_dir = Path(data_dir)

    def __call__(self, table_name: str) -> list[dict[str, Any]]:
        return self.load_latest(table_name)

    def load_latest(self, table_name: str) -> list[dict[str, Any]]:
        """
        Registros de la exportación más reciente.

        Raises:
            StorageError: si no hay archivos o el contenido no es una lista
        """
        files = get_data_files(export_file_pattern(table_name), self.data_dir)
        if not files:
            raise StorageError(f"No hay exportaciones de {table_name} en {self.data_dir}")

        latest = files[0]
        logger.info(f"Leyendo exportación más reciente: {latest}")
        data = load_data_file(latest)
        if not isinstance(data, list):
            raise StorageError(f"La exportación {latest} no contiene una lista de registros")
        return data
