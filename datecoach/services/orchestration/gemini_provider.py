# datecoach/services/orchestration/gemini_provider.py
"""
Gemini vision provider over the generateContent REST endpoint.
"""

from typing import Any

import httpx

from datecoach.config import settings
from datecoach.infrastructure.observability.logging import get_logger
from datecoach.services.orchestration.providers import (
    MediaInput,
    ProviderCallError,
    ProviderName,
    ProviderReply,
)

logger = get_logger(__name__)


class GeminiVisionProvider:
    name = ProviderName.GEMINI

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.model = model or settings.GEMINI_MODEL
        self.base_url = (base_url or settings.GEMINI_API_BASE_URL).rstrip("/")
        self.max_tokens = max_tokens or settings.ANALYSIS_MAX_TOKENS
        self.temperature = settings.ANALYSIS_TEMPERATURE if temperature is None else temperature
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout or settings.PROVIDER_TIMEOUT_SECONDS)
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _build_body(self, prompt: str, media: MediaInput | None) -> dict[str, Any]:
        parts: list[dict[str, Any]] = [{"text": prompt}]
        if media and media.base64_data:
            parts.append({"inline_data": {"mime_type": media.mime_type, "data": media.base64_data}})
        elif media and media.url:
            parts.append({"file_data": {"mime_type": media.mime_type, "file_uri": media.url}})
        return {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
            },
        }

    @staticmethod
    def _candidate_text(raw: dict[str, Any]) -> str:
        try:
            parts = raw["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            return ""
        return "".join(part.get("text", "") for part in parts if isinstance(part, dict)).strip()

    async def complete(self, prompt: str, media: MediaInput | None = None) -> ProviderReply:
        if not self.api_key:
            raise ProviderCallError(self.name.value, "GEMINI_API_KEY not configured")

        url = f"{self.base_url}/models/{self.model}:generateContent"
        try:
            response = await self._client.post(
                url,
                params={"key": self.api_key},
                json=self._build_body(prompt, media),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise ProviderCallError(self.name.value, f"Gemini API error: {e}") from e

        if not response.is_success:
            raise ProviderCallError(
                self.name.value,
                f"Gemini API error: {response.text[:500]}",
                status_code=response.status_code,
            )

        try:
            raw = response.json()
        except ValueError:
            # 2xx with a non-JSON body: left to the orchestrator as unparsable output
            raw = {"body": response.text[:2000]}

        text = self._candidate_text(raw)
        logger.debug("Gemini completion received", model=self.model, response_length=len(text))
        return ProviderReply(
            provider=self.name.value, text=text, raw=raw, status_code=response.status_code
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
