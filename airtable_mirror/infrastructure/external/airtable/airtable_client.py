"""
Cliente mínimo de Airtable REST API (sin SDKs externos).

Cubre:
- paginación por offset (fetch_page / iter_pages)
- borrado por lotes (máximo 10 ids por llamada)
- creación de un registro
- rate-limit/backoff (429, 5xx) y timeout por llamada
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Iterator, Optional

import requests
from loguru import logger

from airtable_mirror.shared.constants.airtable_constants import (
    AIRTABLE_DELETE_LIMIT,
    AIRTABLE_PAGE_SIZE,
)
from airtable_mirror.shared.exceptions import BatchLimitError, ConfigError, RemoteCallError

from .types import AirtablePage, DeletedRecord


@dataclass(frozen=True)
class AirtableCredentials:
    token: str
    base_id: str


def check_delete_batch(record_ids: list[str]) -> None:
    """Falla rápido si el lote supera el límite de borrado de Airtable."""
    if len(record_ids) > AIRTABLE_DELETE_LIMIT:
        raise BatchLimitError(len(record_ids), AIRTABLE_DELETE_LIMIT)


class AirtableClient:
    """
    Cliente HTTP de Airtable.

    Importante:
    - No hace cast de tipos de campos: los registros se devuelven tal cual.
    - Un timeout aborta la llamada y se reporta como RemoteCallError reintentable.
    """

    def __init__(
        self,
        credentials: AirtableCredentials,
        *,
        session: Optional[requests.Session] = None,
        base_url: str = "https://api.airtable.com/v0",
        timeout_s: float = 60,
        user_agent: Optional[str] = None,
        page_delay_s: float = 0.2,
        max_retries: int = 6,
        min_backoff_s: float = 0.8,
        max_backoff_s: float = 20.0,
    ) -> None:
        if not credentials.token or not credentials.base_id:
            raise ConfigError("AIRTABLE_BASE_ID y AIRTABLE_API_KEY son obligatorios")
        self._creds = credentials
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._user_agent = user_agent
        self._page_delay_s = page_delay_s
        self._max_retries = max_retries
        self._min_backoff_s = min_backoff_s
        self._max_backoff_s = max_backoff_s
        self._session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings, *, session: Optional[requests.Session] = None) -> "AirtableClient":
        """Construye el cliente desde Settings."""
        return cls(
            AirtableCredentials(token=settings.AIRTABLE_API_KEY, base_id=settings.AIRTABLE_BASE_ID),
            session=session,
            base_url=settings.AIRTABLE_API_URL,
            timeout_s=settings.HTTP_READ_TIMEOUT,
            user_agent=settings.USER_AGENT or None,
            page_delay_s=settings.REQUEST_DELAY,
        )

    def _table_url(self, table_name: str) -> str:
        return f"{self._base_url}/{self._creds.base_id}/{table_name}"

    def fetch_page(
        self,
        table_name: str,
        offset: Optional[str] = None,
        *,
        page_size: int = AIRTABLE_PAGE_SIZE,
    ) -> AirtablePage:
        """Trae una página de registros; el offset devuelto apunta a la siguiente."""
        query: list[tuple[str, Any]] = [("pageSize", page_size)]
        if offset:
            query.append(("offset", offset))

        payload = self._request_json("GET", self._table_url(table_name), query=query)
        records = payload.get("records") or []
        return AirtablePage(records=list(records), offset=payload.get("offset") or None)

    def iter_pages(self, table_name: str) -> Iterator[list[dict[str, Any]]]:
        """
        Itera todas las páginas de una tabla.

        Se detiene cuando Airtable no devuelve offset. Entre páginas espera
        page_delay_s para no golpear la API demasiado rápido.
        """
        offset: Optional[str] = None
        while True:
            page = self.fetch_page(table_name, offset)
            yield page.records
            offset = page.offset
            if not offset:
                break
            if self._page_delay_s:
                time.sleep(self._page_delay_s)

    def delete_records(self, table_name: str, record_ids: list[str]) -> list[DeletedRecord]:
        """
        Borra hasta 10 registros en una sola llamada.

        Raises:
            BatchLimitError: si record_ids supera el límite (no se trunca)
            RemoteCallError: si la llamada falla
        """
        check_delete_batch(record_ids)
        if not record_ids:
            return []

        query = [("records[]", rid) for rid in record_ids]
        payload = self._request_json("DELETE", self._table_url(table_name), query=query)
        return [
            DeletedRecord(id=str(rec.get("id")), deleted=bool(rec.get("deleted")))
            for rec in payload.get("records") or []
        ]

    def create_record(self, table_name: str, fields: dict[str, Any]) -> dict[str, Any]:
        """
        Crea un registro con los fields dados y retorna el registro creado.

        El filtrado de campos no permitidos es responsabilidad del caller.
        """
        body = {"records": [{"fields": fields}]}
        payload = self._request_json("POST", self._table_url(table_name), json_body=body)
        created = payload.get("records") or []
        if not created:
            raise RemoteCallError(f"Airtable no devolvió el registro creado en {table_name}")
        return created[0]

    def _headers(self, with_body: bool) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self._creds.token}"}
        if self._user_agent:
            headers["User-Agent"] = self._user_agent
        if with_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _request_json(
        self,
        method: str,
        url: str,
        *,
        query: Optional[list[tuple[str, Any]]] = None,
        json_body: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """
        Request HTTP con backoff para 429/5xx.

        Estrategia:
        - 429: respeta Retry-After si existe, si no exponencial con jitter simple.
        - 5xx: exponencial con jitter.
        - 4xx (no 429): error inmediato (config/auth mal).
        - timeout / conexión: RemoteCallError reintentable, sin reintento aquí;
          el lote que la contiene se da por fallido.
        """
        headers = self._headers(with_body=json_body is not None)

        for attempt in range(self._max_retries + 1):
            try:
                resp = self._session.request(
                    method=method,
                    url=url,
                    params=query,
                    json=json_body,
                    headers=headers,
                    timeout=self._timeout_s,
                )
            except requests.Timeout as e:
                raise RemoteCallError(
                    f"Timeout de {self._timeout_s}s en {method} {url}", retryable=True
                ) from e
            except requests.RequestException as e:
                raise RemoteCallError(f"Error de red en {method} {url}: {e}", retryable=True) from e

            if 200 <= resp.status_code < 300:
                try:
                    return resp.json()
                except ValueError as e:
                    raise RemoteCallError(
                        f"Respuesta no JSON de Airtable en {method} {url}",
                        status_code=resp.status_code,
                    ) from e

            # Errores recuperables
            if resp.status_code == 429 or 500 <= resp.status_code < 600:
                if attempt >= self._max_retries:
                    raise RemoteCallError(
                        f"Airtable error {resp.status_code} tras {attempt} reintentos: {resp.text}",
                        status_code=resp.status_code,
                        retryable=True,
                    )

                retry_after = resp.headers.get("Retry-After")
                if retry_after:
                    try:
                        sleep_s = float(retry_after)
                    except ValueError:
                        sleep_s = self._min_backoff_s
                else:
                    # Exponencial simple + jitter proporcional
                    base = min(self._max_backoff_s, self._min_backoff_s * (2**attempt))
                    sleep_s = base + (0.15 * base)

                logger.warning(f"Airtable {resp.status_code} en {method} {url}; reintento en {sleep_s:.1f}s")
                time.sleep(sleep_s)
                continue

            # Errores no recuperables
            raise RemoteCallError(
                f"Airtable request falló {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
            )

        raise RemoteCallError(f"Airtable request sin respuesta: {method} {url}")
