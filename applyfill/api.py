"""Async client for the autofill service endpoints (AI classification, answers, usage)."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from .config import Settings, get_settings
from .errors import APIError, AuthenticationError, RateLimitError

logger = logging.getLogger(__name__)

CLASSIFY_ENDPOINT = "/api/autofill/classify-fields"
GENERATE_ENDPOINT = "/api/autofill/generate-answer"
BULK_ENDPOINT = "/api/autofill/generate-bulk"
RESUME_SECTIONS_ENDPOINT = "/api/autofill/extract-resume-sections"
TRACK_ENDPOINT = "/api/autofill/track"
USAGE_ENDPOINT = "/api/autofill/usage"


class AutofillAPI:
    """Thin wrapper around the service's JSON endpoints.

    Every call posts JSON with the bearer token from :class:`Settings`.
    HTTP 429 raises :class:`RateLimitError`, 401 raises
    :class:`AuthenticationError` and any other error status raises
    :class:`APIError`.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def configured(self) -> bool:
        return self._settings.api_configured

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.http_timeout_seconds)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "AutofillAPI":  # pragma: no cover - convenience
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - convenience
        await self.close()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._settings.api_token:
            headers["Authorization"] = f"Bearer {self._settings.api_token}"
        return headers

    def _url(self, endpoint: str) -> str:
        return self._settings.api_base_url.rstrip("/") + endpoint

    async def _request(self, method: str, endpoint: str, payload: Optional[Mapping[str, Any]] = None) -> Any:
        logger.debug(f"{method} {endpoint}")
        try:
            response = await self._http().request(method, self._url(endpoint), json=payload, headers=self._headers())
        except httpx.HTTPError as exc:
            raise APIError(0, f"{endpoint} request failed: {exc}") from exc

        if response.status_code == 429:
            raise RateLimitError(429, _error_text(response, "AI generation limit reached"))
        if response.status_code == 401:
            raise AuthenticationError(401, "Unauthorized; please log in again")
        if response.status_code >= 400:
            raise APIError(response.status_code, _error_text(response, f"{endpoint} failed"))
        if not response.content:
            return {}
        return response.json()

    async def classify_fields(
        self,
        fields: Sequence[Mapping[str, Any]],
        job: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"fields": list(fields)}
        for key, value in (job or {}).items():
            if value:
                payload[key] = value
        return await self._request("POST", CLASSIFY_ENDPOINT, payload)

    async def generate_answer(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", GENERATE_ENDPOINT, request)

    async def generate_bulk(self, questions: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        data = await self._request("POST", BULK_ENDPOINT, {"questions": list(questions)})
        if isinstance(data, dict):
            return list(data.get("answers") or [])
        return list(data or [])

    async def extract_resume_sections(self, sections: Sequence[str]) -> Dict[str, List[Dict[str, Any]]]:
        """Ask the service to parse the stored resume into education/experience entries."""

        data = await self._request("POST", RESUME_SECTIONS_ENDPOINT, {"sections": list(sections)})
        if data.get("error"):
            logger.warning(f"Resume extraction reported: {data['error']}")
        return {section: list(data.get(section) or []) for section in sections}

    async def usage(self) -> Dict[str, Any]:
        return await self._request("GET", USAGE_ENDPOINT)

    async def track(
        self,
        page_url: str,
        ats_name: Optional[str],
        fields_filled: int,
        ai_generations: int = 0,
    ) -> None:
        """Record a completed pass; failures are logged and ignored."""

        payload = {
            "pageUrl": page_url,
            "atsName": ats_name,
            "fieldsFilled": fields_filled,
            "aiGenerations": ai_generations,
        }
        try:
            await self._request("POST", TRACK_ENDPOINT, payload)
        except APIError as exc:
            logger.warning(f"Failed to record autofill: {exc}")


def _error_text(response: httpx.Response, default: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or default
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return default
