# AI text services - prompt shaping around an opaque remote text generator
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from errors import AIServiceError, ValidationError

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
PLACEHOLDER_TOKEN = "XXXXXX"

# image: {"mimeType": ..., "data": <base64>}
Generator = Callable[[str, Optional[Dict[str, str]]], str]

TARGET_INSTRUCTIONS = {
    "record": (
        "Objetivo: registro em prontuário.\n"
        "Tom: profissional, técnico, claro e objetivo, com terminologia adequada e estrutura impessoal."
    ),
    "patient": (
        "Objetivo: comunicação com o paciente ou cuidador.\n"
        "Tom: empático, acolhedor e simples, sem jargões, para que um leigo entenda facilmente."
    ),
}
TARGET_LABELS = {"record": "Prontuário", "patient": "Paciente"}


def build_rewrite_prompt(text: str, target: str) -> str:
    instruction = TARGET_INSTRUCTIONS[target]
    return (
        "Você é um assistente de saúde que reescreve anotações de visitas domiciliares.\n"
        "Transforme o texto abaixo, que pode ter linguagem informal e abreviações, "
        "em um texto adequado ao objetivo.\n\n"
        f"{instruction}\n\n"
        "Regras:\n"
        "1. Organize as informações de forma lógica, sem redundâncias.\n"
        "2. Corrija gramática e ortografia.\n"
        "3. Não acrescente nem deduza informações que não estejam no texto original.\n\n"
        "Texto original:\n"
        f"```\n{text}\n```\n\n"
        f"Texto reescrito (para '{TARGET_LABELS[target]}'):"
    )


def build_populate_prompt(source_text: str, template: str, has_image: bool) -> str:
    source_hint = (
        "Extraia os dados da imagem; o texto fonte é contexto adicional."
        if has_image
        else "Extraia os dados do texto fonte."
    )
    return (
        "Você preenche modelos de texto.\n"
        f"Substitua cada ocorrência de '{PLACEHOLDER_TOKEN}' no modelo pelo dado correto, "
        "de acordo com o contexto. "
        f"{source_hint}\n"
        "Retorne apenas o modelo preenchido, sem explicações.\n\n"
        f"Texto fonte:\n```\n{source_text}\n```\n\n"
        f"Modelo:\n```\n{template}\n```"
    )


def _clean_output(result: Optional[str]) -> str:
    text = (result or "").strip()
    if not text:
        raise AIServiceError("A resposta do serviço de IA estava vazia.")
    return text


def rewrite_text(text: str, target: str, generate: Generator) -> str:
    """Rewrite free visit notes for the clinical record ('record') or the patient ('patient')."""
    if target not in TARGET_INSTRUCTIONS:
        raise ValidationError(f"Objetivo de reescrita desconhecido: {target}")
    if not text or not text.strip():
        raise ValidationError("O texto para reescrever está vazio.")
    return _clean_output(generate(build_rewrite_prompt(text, target), None))


def populate_template(
    source_text: str,
    template: str,
    image: Optional[Dict[str, str]],
    generate: Generator,
) -> str:
    """Fill the template's XXXXXX tokens from the source text and/or an image."""
    if not template or not template.strip():
        raise ValidationError("O modelo de texto está vazio.")
    if not (source_text and source_text.strip()) and not image:
        raise ValidationError("Informe um texto ou uma imagem como fonte.")
    prompt = build_populate_prompt(source_text or "", template, has_image=bool(image))
    return _clean_output(generate(prompt, image))


def _response_text(payload: Dict[str, Any]) -> str:
    candidates = payload.get("candidates") or []
    if not candidates:
        return ""
    parts: List[Dict[str, Any]] = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)


class GeminiGenerator:
    """Calls the Gemini generateContent REST endpoint."""

    def __init__(self, api_key: str, model: str, client: Optional[httpx.Client] = None, timeout: float = 30.0):
        self.api_key = api_key
        self.model = model
        self.client = client
        self.timeout = timeout

    def __call__(self, prompt: str, image: Optional[Dict[str, str]] = None) -> str:
        if not self.api_key:
            raise AIServiceError("GEMINI_API_KEY não está configurada.")

        parts: List[Dict[str, Any]] = []
        if image:
            parts.append({"inline_data": {"mime_type": image["mimeType"], "data": image["data"]}})
        parts.append({"text": prompt})
        url = f"{GEMINI_API_BASE}/models/{self.model}:generateContent"
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}
        body = {"contents": [{"role": "user", "parts": parts}]}

        client = self.client or httpx.Client(timeout=httpx.Timeout(self.timeout, connect=8.0))
        try:
            response = client.post(url, headers=headers, json=body)
        except httpx.HTTPError as exc:
            logger.error("AI service request failed: %s", exc)
            raise AIServiceError("Falha na comunicação com o serviço de IA.") from exc
        finally:
            if self.client is None:
                client.close()

        if response.status_code >= 400:
            logger.error("AI service returned HTTP %s: %s", response.status_code, response.text[:200])
            raise AIServiceError("Falha na comunicação com o serviço de IA.")
        return _response_text(response.json())
