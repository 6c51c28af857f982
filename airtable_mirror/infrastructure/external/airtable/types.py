"""
Tipos y utilidades puras para el espejo Airtable -> SQLite.

Se mantienen libres de I/O para poder testearlos fácilmente.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, StrictStr
from pydantic import ValidationError as PydanticValidationError

from airtable_mirror.shared.exceptions import ValidationError


def utc_now() -> datetime:
    """Retorna la hora actual en UTC, como datetime aware."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normaliza datetime a UTC (aware).

    Airtable suele devolver ISO8601 con zona; aun así, normalizamos para
    comparar/almacenar de forma consistente.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def isoformat_z(dt: datetime) -> str:
    """Serializa datetime a ISO8601 con 'Z', el formato de createdTime de Airtable."""
    dt_utc = ensure_utc(dt)
    return dt_utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class AirtableRecordPayload(BaseModel):
    """
    Forma mínima de un registro Airtable tal como llega de la API.

    Solo se valida la estructura; los campos son un mapa opaco.
    """

    model_config = ConfigDict(extra="ignore")

    id: StrictStr
    createdTime: Union[datetime, StrictStr]
    fields: dict[str, Any]


@dataclass(frozen=True)
class AirtableRecord:
    """Registro Airtable listo para persistir en el espejo."""

    record_id: str
    created_time: str
    fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, raw: Any) -> "AirtableRecord":
        """
        Valida y convierte un registro crudo de la API.

        Raises:
            ValidationError: si falta id, createdTime o fields, o tienen tipo inválido
        """
        record_id = raw.get("id") if isinstance(raw, dict) else None
        try:
            payload = AirtableRecordPayload.model_validate(raw)
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'record'}: {err['msg']}"
                for err in e.errors()
            )
            raise ValidationError(f"Registro inválido: {problems}", record_id=record_id) from e

        if not payload.id.strip():
            raise ValidationError("Registro inválido: id vacío", record_id=record_id)

        created = payload.createdTime
        created_time = isoformat_z(created) if isinstance(created, datetime) else created
        return cls(record_id=payload.id, created_time=created_time, fields=dict(payload.fields))


@dataclass(frozen=True)
class AirtablePage:
    """Una página de resultados; offset es None en la última página."""

    records: list[dict[str, Any]]
    offset: Optional[str] = None


@dataclass(frozen=True)
class DeletedRecord:
    """Respuesta de Airtable por cada id en un borrado por lotes."""

    id: str
    deleted: bool


def strip_fields(fields: dict[str, Any], disallowed: Iterable[str]) -> dict[str, Any]:
    """Copia de fields sin las claves no permitidas, manteniendo el orden."""
    blocked = set(disallowed)
    return {k: v for k, v in fields.items() if k not in blocked}
