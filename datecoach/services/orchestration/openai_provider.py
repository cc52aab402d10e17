# datecoach/services/orchestration/openai_provider.py
"""
OpenAI vision provider.
One chat-completion call per attempt; the SDK's own retries are disabled so a
failed attempt goes straight to the orchestrator's fallback decision.
"""

from typing import Any

import openai
from openai import AsyncOpenAI

from datecoach.config import settings
from datecoach.infrastructure.observability.logging import get_logger
from datecoach.services.orchestration.providers import (
    MediaInput,
    ProviderCallError,
    ProviderName,
    ProviderReply,
)

logger = get_logger(__name__)


class OpenAIVisionProvider:
    name = ProviderName.OPENAI

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        timeout: float | None = None,
        client: AsyncOpenAI | None = None,
    ):
        self.model = model or settings.OPENAI_MODEL
        self.max_tokens = max_tokens or settings.ANALYSIS_MAX_TOKENS
        self.temperature = settings.ANALYSIS_TEMPERATURE if temperature is None else temperature
        self.client = client
        if self.client is None and api_key:
            self.client = AsyncOpenAI(
                api_key=api_key,
                timeout=timeout or settings.PROVIDER_TIMEOUT_SECONDS,
                max_retries=0,
            )

    @property
    def configured(self) -> bool:
        return self.client is not None

    def _build_content(self, prompt: str, media: MediaInput | None) -> list[dict[str, Any]]:
        content: list[dict[str, Any]] = [{"type": "text", "text": prompt}]
        image_url = media.data_url if media else None
        if image_url:
            content.append({"type": "image_url", "image_url": {"url": image_url, "detail": "high"}})
        return content

    async def complete(self, prompt: str, media: MediaInput | None = None) -> ProviderReply:
        if not self.client:
            raise ProviderCallError(self.name.value, "OPENAI_API_KEY not configured")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": self._build_content(prompt, media)}],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except openai.APIStatusError as e:
            raise ProviderCallError(
                self.name.value, f"OpenAI API error: {e.message}", status_code=e.status_code
            ) from e
        except openai.APIError as e:
            raise ProviderCallError(self.name.value, f"OpenAI API error: {e}") from e

        text = ""
        if response.choices and response.choices[0].message.content:
            text = response.choices[0].message.content.strip()

        logger.debug(
            "OpenAI completion received",
            model=self.model,
            response_length=len(text),
            usage_tokens=response.usage.total_tokens if response.usage else 0,
        )
        return ProviderReply(provider=self.name.value, text=text, raw=response.model_dump(mode="json"))

    async def aclose(self) -> None:
        if self.client:
            await self.client.close()
