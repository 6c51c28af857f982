"""
Escritura de archivos JSON: exportaciones crudas y artefactos laterales
(registros fallidos, borrados pendientes).
"""
import json
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from airtable_mirror.shared.exceptions import StorageError


class JsonWriter:
    """
    Escribe un archivo JSON por nombre dentro de un directorio.

    El directorio se crea en la primera escritura. Los valores no
    serializables se guardan como texto (default=str) para no perder el
    registro que se quiere inspeccionar.
    """

    def __init__(self, output_dir: Path | str):
        self.output_dir = Path(output_dir)

    def path_for(self, name: str) -> Path:
        return self.output_dir / f"{name}.json"

    def write(self, name: str, payload: Any) -> Path:
        """
        Escribe payload en <output_dir>/<name>.json (reemplaza el archivo).

        Raises:
            StorageError: si el archivo no se puede escribir
        """
        path = self.path_for(name)
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".json.tmp")
            tmp_path.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2, default=str),
                encoding="utf-8",
            )
            tmp_path.replace(path)
        except OSError as e:
            raise StorageError(f"No se pudo escribir {path}: {e}") from e
        return path

    def read(self, name: str) -> Optional[Any]:
        """Contenido de <name>.json, o None si no existe."""
        path = self.path_for(name)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"No se pudo leer {path}: {e}") from e

    def remove(self, name: str) -> None:
        path = self.path_for(name)
        if path.exists():
            path.unlink()
            logger.debug(f"Archivo eliminado: {path}")
