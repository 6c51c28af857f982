"""
Excepción base para todas las excepciones personalizadas del espejo.
"""
from typing import Any, Dict, Optional


class MirrorException(Exception):
    """
    Excepción base del espejo.
    Todas las excepciones personalizadas deben heredar de esta clase.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Inicializa la excepción.

        Args:
            message: Mensaje de error descriptivo
            error_code: Código de error personalizado
            details: Detalles adicionales del error
        """
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)
