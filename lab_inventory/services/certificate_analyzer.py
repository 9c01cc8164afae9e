from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from ..core.config import AppSettings, get_settings
from ..schemas.certificate import CertificateAnalysis

logger = logging.getLogger(__name__)


class AnalyzerNotConfigured(Exception):
    """Raised when the Gemini credentials are missing."""


class CertificateAnalysisError(Exception):
    """Raised when the model cannot be reached or returns something unusable."""


PROMPT_TEMPLATE = """You are an expert quality assurance engineer specializing in laboratory equipment calibration. Analyze the following text extracted from a calibration certificate.

Certificate Text:
```
{text}
```

Based on the text, provide a JSON response with the specified structure. If information is not present, use 'N/A'."""

RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "summary": {
            "type": "STRING",
            "description": "A brief, one-sentence summary of the certificate's purpose.",
        },
        "device_info": {
            "type": "OBJECT",
            "properties": {
                "serial_number": {"type": "STRING", "description": "The identified serial number, or 'N/A'."},
                "model": {"type": "STRING", "description": "The identified model, or 'N/A'."},
                "equipment_type": {"type": "STRING", "description": "The type of equipment, or 'N/A'."},
            },
            "required": ["serial_number", "model", "equipment_type"],
        },
        "calibration_results": {
            "type": "OBJECT",
            "properties": {
                "status": {
                    "type": "STRING",
                    "enum": ["PASS", "FAIL", "INDETERMINATE"],
                    "description": "Status based on measurement data and tolerances.",
                },
                "key_measurements": {
                    "type": "ARRAY",
                    "items": {"type": "STRING"},
                    "description": "List up to 3 key measurement results.",
                },
                "reasoning": {"type": "STRING", "description": "A short explanation for the status conclusion."},
            },
            "required": ["status", "key_measurements", "reasoning"],
        },
    },
    "required": ["summary", "device_info", "calibration_results"],
}


def _ensure_configured(settings: AppSettings) -> None:
    if not settings.analyzer_configured:
        raise AnalyzerNotConfigured("Certificate analysis is not configured")


def _build_request(text: str) -> Dict[str, Any]:
    return {
        "contents": [{"role": "user", "parts": [{"text": PROMPT_TEMPLATE.format(text=text)}]}],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
        },
    }


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code in {401, 403}:
        logger.warning("Gemini authentication failed (%s)", response.status_code)
    elif response.status_code >= 500:
        logger.error("Gemini service error %s", response.status_code)
    elif response.status_code >= 400:
        logger.error("Gemini request error %s: %s", response.status_code, response.text[:200])
    response.raise_for_status()


def _response_text(data: Dict[str, Any]) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        raise CertificateAnalysisError("The model returned no candidates")
    parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict)).strip()
    if not text:
        raise CertificateAnalysisError("The model returned an empty answer")
    return text


def parse_analysis(raw_text: str) -> CertificateAnalysis:
    cleaned = raw_text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        cleaned = cleaned[len("json"):] if cleaned.lower().startswith("json") else cleaned
    try:
        return CertificateAnalysis.model_validate(json.loads(cleaned))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise CertificateAnalysisError("The model answer was not a valid analysis") from exc


async def analyze_certificate(
    text: str,
    *,
    settings: Optional[AppSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> CertificateAnalysis:
    """Send extracted certificate text to Gemini and parse the structured answer."""

    settings = settings or get_settings()
    _ensure_configured(settings)
    if not text or not text.strip():
        raise CertificateAnalysisError("There is no certificate text to analyze")

    url = f"{settings.GEMINI_API_URL.rstrip('/')}/{settings.GEMINI_MODEL}:generateContent"
    headers = {"x-goog-api-key": settings.GEMINI_API_KEY.strip()}
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=settings.GEMINI_TIMEOUT)
    try:
        response = await http.post(url, json=_build_request(text), headers=headers)
        _raise_for_status(response)
        data = response.json()
    except httpx.HTTPError as exc:
        logger.error("Gemini request failed: %s", exc)
        raise CertificateAnalysisError("Failed to analyze certificate with AI") from exc
    except ValueError as exc:
        raise CertificateAnalysisError("Gemini returned a non-JSON response") from exc
    finally:
        if owns_client:
            await http.aclose()
    return parse_analysis(_response_text(data))
