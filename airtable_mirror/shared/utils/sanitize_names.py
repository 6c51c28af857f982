"""
Normalización de nombres de tabla Airtable a identificadores SQLite.
"""
import re

from airtable_mirror.shared.exceptions import SchemaError

# Límite de longitud de identificador que usamos para SQLite (igual que Postgres)
MAX_IDENTIFIER_LENGTH = 63

_SEPARATORS = re.compile(r"[\s\-(),;.]")
_INVALID_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def sanitize_table_name(name: str) -> str:
    """
    Convierte un nombre de tabla arbitrario en un identificador válido.

    Reglas (en orden):
    1. trim
    2. cada espacio o signo de puntuación separador (- ( ) , ; .) pasa a '_'
    3. se eliminan los caracteres restantes fuera de [a-zA-Z0-9_]
    4. si empieza con dígito se antepone '_'
    5. se trunca a MAX_IDENTIFIER_LENGTH

    Raises:
        SchemaError: si el resultado queda vacío
    """
    sanitized = _SEPARATORS.sub("_", name.strip())
    sanitized = _INVALID_CHARS.sub("", sanitized)
    if sanitized[:1].isdigit():
        sanitized = "_" + sanitized
    sanitized = sanitized[:MAX_IDENTIFIER_LENGTH]

    if not sanitized:
        raise SchemaError(
            f"No se puede convertir a un nombre de tabla válido: {name!r}",
            table_name=name,
        )
    return sanitized
