"""
Interfaz de la fuente remota de registros (Airtable).

Este contrato existe para:
- Que los casos de uso no dependan de requests directamente.
- Facilitar tests unitarios con un cliente falso.
"""

from __future__ import annotations

from typing import Any, Iterator, Optional, Protocol

from airtable_mirror.infrastructure.external.airtable.types import AirtablePage, DeletedRecord


class RecordSource(Protocol):
    """
    Fuente paginada de registros con borrado y creación.

    Implementaciones:
    - AirtableClient (HTTP).
    - Fake/stub para tests.
    """

    def fetch_page(self, table_name: str, offset: Optional[str] = None) -> AirtablePage:
        """Una página de registros y el offset de la siguiente (None al final)."""

    def iter_pages(self, table_name: str) -> Iterator[list[dict[str, Any]]]:
        """Todas las páginas de la tabla, en orden."""

    def delete_records(self, table_name: str, record_ids: list[str]) -> list[DeletedRecord]:
        """
        Borra hasta 10 registros.

        Debe lanzar BatchLimitError si se excede el límite y RemoteCallError
        si la llamada falla, sin efectos parciales conocidos.
        """

    def create_record(self, table_name: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Crea un registro y retorna la forma de la API ({id, createdTime, fields})."""
