# datecoach/services/analysis_service.py
"""
Analysis Request Service
Backend side of ``POST /api/analysis``: caches per user and request digest,
persists the record lifecycle, and delegates model calls to the orchestrator.
"""

from datetime import UTC, datetime
from typing import Any

from datecoach.config import settings
from datecoach.infrastructure.observability.logging import get_logger
from datecoach.models.api.analysis_response import AnalysisMetadata, AnalysisResponse
from datecoach.models.domain.analysis_domain import AnalysisKind
from datecoach.repositories.analysis_repository import AnalysisRepository, PersistenceError
from datecoach.security.digest import request_digest
from datecoach.services.inflight import InFlightRegistry
from datecoach.services.orchestration.orchestrator import (
    NoProviderConfiguredError,
    OrchestrationResult,
    ProviderOrchestrator,
)
from datecoach.services.orchestration.prompts import build_prompt
from datecoach.services.orchestration.providers import InvalidMediaError, MediaInput
from datecoach.services.orchestration.templates import template_for
from datecoach.services.response_cache import ResponseCache

logger = get_logger(__name__)

PARSED_CONFIDENCE = 0.85
CANNED_CONFIDENCE = 0.5
MEDIA_KEYS = ("photoData", "imageData", "image_url")


def media_from_payload(data: dict[str, Any]) -> MediaInput | None:
    """
    Pull the image out of a request payload.

    Accepts a data URL, an http(s) URL, or a dict carrying either.
    """
    for key in MEDIA_KEYS:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, dict):
            inner = value.get("imageData") or value.get("dataUrl") or value.get("url")
            if inner is None:
                raise InvalidMediaError("Photo payload holds no image")
            value = inner
        if not isinstance(value, str):
            raise InvalidMediaError("Photo payload must be a string URL")
        if value.startswith("data:"):
            return MediaInput.from_data_url(value)
        if value.startswith(("http://", "https://")):
            return MediaInput(url=value)
        raise InvalidMediaError("Photo must be a data URL or an http(s) URL")
    return None


def confidence_for(result: OrchestrationResult) -> float:
    reported = (result.record or {}).get("confidence")
    if isinstance(reported, (int, float)) and 0 <= reported <= 1:
        return float(reported)
    return PARSED_CONFIDENCE if result.parsed else CANNED_CONFIDENCE


class AnalysisRequestService:
    def __init__(
        self,
        orchestrator: ProviderOrchestrator,
        repository: AnalysisRepository,
        cache: ResponseCache[AnalysisResponse] | None = None,
        default_provider: str | None = None,
    ):
        self.orchestrator = orchestrator
        self.repository = repository
        if cache is None:
            cache = ResponseCache(
                max_entries=settings.SERVER_CACHE_MAX_ENTRIES,
                ttl_seconds=settings.ANALYSIS_CACHE_TTL_SECONDS,
            )
        self.cache = cache
        self.inflight: InFlightRegistry[AnalysisResponse] = InFlightRegistry()
        self.default_provider = default_provider or settings.DEFAULT_AI_PROVIDER

    async def handle(
        self,
        user_id: str,
        request_type: str,
        data: dict[str, Any],
        options: dict[str, Any],
    ) -> AnalysisResponse:
        kind = AnalysisKind(request_type)
        digest = request_digest(kind.value, data, options, namespace=f"server:{user_id}")

        cached = self.cache.get(digest)
        if cached is not None:
            logger.debug("Server cache hit", user_id=user_id, request_kind=kind.value)
            return cached

        return await self.inflight.run(
            digest, lambda: self._analyze(user_id, kind, data, options, digest)
        )

    async def _analyze(
        self,
        user_id: str,
        kind: AnalysisKind,
        data: dict[str, Any],
        options: dict[str, Any],
        digest: str,
    ) -> AnalysisResponse:
        try:
            media = media_from_payload(data) if kind == AnalysisKind.PHOTO else None
        except InvalidMediaError as e:
            return AnalysisResponse.failure(str(e))
        if kind == AnalysisKind.PHOTO and media is None:
            return AnalysisResponse.failure("Photo payload holds no image")

        if not self.orchestrator.has_provider():
            return AnalysisResponse.failure("No AI provider API keys configured")

        prompt_data = {key: value for key, value in data.items() if key not in MEDIA_KEYS}
        template = template_for(kind)
        prompt = build_prompt(kind, prompt_data, options)

        try:
            provider = self.orchestrator.resolve_primary(self.default_provider)
            analysis_id = await self.repository.create_processing(
                {
                    "user_id": user_id,
                    "request_type": kind.value,
                    "options": options,
                    "input_refs": [media.url] if media and media.url else [],
                    "ai_provider": provider.value,
                }
            )
        except (PersistenceError, NoProviderConfiguredError) as e:
            logger.error("Could not start analysis", user_id=user_id, error=str(e))
            return AnalysisResponse.failure(str(e))

        result = await self.orchestrator.run(prompt, media, template, preferred=provider)

        if not result.succeeded:
            try:
                await self.repository.mark_failed(analysis_id, result.error or "Analysis failed")
            except PersistenceError as e:
                logger.error("Failed to mark analysis failed", analysis_id=analysis_id, error=str(e))
            return AnalysisResponse.failure(result.error or "Analysis failed", analysis_id=analysis_id)

        try:
            await self.repository.mark_completed(
                analysis_id,
                {
                    "result": result.record,
                    "raw_analysis": result.raw_analysis,
                    "processing_time_ms": result.processing_time_ms,
                    "ai_provider": result.used_provider,
                },
            )
        except PersistenceError as e:
            logger.error("Failed to update analysis", analysis_id=analysis_id, error=str(e))

        response = AnalysisResponse(
            success=True,
            data=result.record,
            analysis_id=analysis_id,
            confidence=confidence_for(result),
            processing_time=result.processing_time_ms,
            recommendations=result.record.get("suggestions"),
            metadata=AnalysisMetadata(
                model_used=result.used_provider,
                analysis_version=template.version,
                timestamp=datetime.now(UTC).isoformat(),
                request_id=digest[:16],
                fallback_used=result.fallback_used,
            ),
        )
        self.cache.set(digest, response)

        logger.info(
            "Analysis completed",
            user_id=user_id,
            analysis_id=analysis_id,
            request_kind=kind.value,
            provider=result.used_provider,
            parsed=result.parsed,
        )
        return response
