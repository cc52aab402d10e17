"""
Shared types for AI provider clients.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class ProviderName(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"


class ProviderCallError(Exception):
    """Raised when a provider call fails: non-2xx status or transport error."""

    def __init__(self, provider: str, message: str, status_code: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class InvalidMediaError(ValueError):
    """Raised when media cannot be decoded from the supplied data URL."""


@dataclass(frozen=True, slots=True)
class MediaInput:
    """Image handed to a vision model, inline (base64) and/or by URL."""

    mime_type: str = "image/jpeg"
    base64_data: str | None = None
    url: str | None = None

    @classmethod
    def from_data_url(cls, data_url: str) -> "MediaInput":
        """Parse ``data:<mime>;base64,<body>``."""
        if not data_url or not data_url.startswith("data:") or "," not in data_url:
            raise InvalidMediaError("Image data must be a base64 data URL")

        header, body = data_url.split(",", 1)
        meta = header[len("data:") :]
        if not meta.endswith(";base64"):
            raise InvalidMediaError("Image data must be base64 encoded")
        mime_type = meta[: -len(";base64")] or "image/jpeg"
        if not body:
            raise InvalidMediaError("Image data is empty")
        return cls(mime_type=mime_type, base64_data=body)

    @property
    def data_url(self) -> str | None:
        if self.base64_data:
            return f"data:{self.mime_type};base64,{self.base64_data}"
        return self.url

    def decoded_size(self) -> int:
        if not self.base64_data:
            return 0
        try:
            return len(base64.b64decode(self.base64_data, validate=True))
        except (binascii.Error, ValueError) as e:
            raise InvalidMediaError(f"Image data is not valid base64: {e}") from e


@dataclass(slots=True)
class ProviderReply:
    """A 2xx provider response; ``text`` may still hold no usable JSON."""

    provider: str
    text: str
    raw: dict[str, Any] = field(default_factory=dict)
    status_code: int = 200


class AnalysisProvider(Protocol):
    name: ProviderName

    @property
    def configured(self) -> bool: ...

    async def complete(self, prompt: str, media: MediaInput | None = None) -> ProviderReply: ...


def build_providers(settings, client=None) -> dict[ProviderName, AnalysisProvider]:
    """
    Provider clients for every known provider, keyed by name.

    Providers without an API key are still returned; they report
    ``configured=False`` and the orchestrator skips them.
    """
    from datecoach.services.orchestration.gemini_provider import GeminiVisionProvider
    from datecoach.services.orchestration.openai_provider import OpenAIVisionProvider

    return {
        ProviderName.OPENAI: OpenAIVisionProvider(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
        ),
        ProviderName.GEMINI: GeminiVisionProvider(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            base_url=settings.GEMINI_API_BASE_URL,
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
            client=client,
        ),
    }
