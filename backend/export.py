# Export - send a completed record to the external spreadsheet script
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from errors import ExportError

logger = logging.getLogger(__name__)


def _response_error(response: httpx.Response) -> Optional[str]:
    """Error message carried by the script's response, or None when it accepted the record."""
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            payload = response.json()
        except ValueError:
            return "Resposta inválida da planilha."
        if not isinstance(payload, dict) or payload.get("status") != "success":
            message = payload.get("message") if isinstance(payload, dict) else None
            return message or "Erro desconhecido ao enviar para a planilha."
        return None
    if not response.is_success:
        return f"Erro na resposta do servidor: {response.text}"
    return None


def send_to_sheet(
    record: Dict[str, Any],
    url: str,
    client: Optional[httpx.Client] = None,
    timeout: float = 30.0,
) -> None:
    """POST `record` as JSON to the spreadsheet script, following its redirects."""
    if not url:
        raise ExportError("A URL do script da planilha não está configurada (SHEET_SCRIPT_URL).")

    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=httpx.Timeout(timeout, connect=8.0), follow_redirects=True)
    try:
        response = client.post(url, json=record, follow_redirects=True)
    except httpx.HTTPError as exc:
        logger.error("Spreadsheet export failed: %s", exc)
        raise ExportError(f"Falha ao comunicar com a planilha: {exc}") from exc
    finally:
        if owns_client:
            client.close()

    message = _response_error(response)
    if message:
        logger.error("Spreadsheet export rejected: %s", message)
        raise ExportError(f"Falha ao comunicar com a planilha: {message}")
