"""
Predicados para identificar registros a borrar sobre la foto remota.
"""
from typing import Any, Callable, Dict, Iterable

RecordPredicate = Callable[[Dict[str, Any]], bool]


def flag_field_predicate(field_name: str) -> RecordPredicate:
    """
    Selecciona registros cuyo campo bandera es verdadero.

    Acepta el booleano directo o un campo lookup de Airtable, que llega como
    lista: en ese caso cuenta el primer elemento.
    """

    def predicate(record: Dict[str, Any]) -> bool:
        fields = record.get("fields")
        if not isinstance(fields, dict) or field_name not in fields:
            return False
        value = fields[field_name]
        if isinstance(value, list):
            return bool(value) and value[0] is True
        return value is True

    return predicate


def record_id_predicate(record_ids: Iterable[str]) -> RecordPredicate:
    """Selecciona registros por id explícito (útil para probar con un registro dummy)."""
    wanted = set(record_ids)

    def predicate(record: Dict[str, Any]) -> bool:
        return record.get("id") in wanted

    return predicate
