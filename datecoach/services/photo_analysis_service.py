# datecoach/services/photo_analysis_service.py
"""
Enhanced Photo Analysis Service
Dual-provider photo analysis with a persisted processing -> completed record.
"""

import time
import uuid
from dataclasses import dataclass
from typing import Any

from datecoach.infrastructure.observability.logging import get_logger
from datecoach.repositories.analysis_repository import AnalysisRepository, PersistenceError
from datecoach.security.digest import media_digest
from datecoach.services.orchestration.orchestrator import (
    NoProviderConfiguredError,
    ProviderOrchestrator,
)
from datecoach.services.orchestration.prompts import photo_prompt
from datecoach.services.orchestration.providers import InvalidMediaError, MediaInput
from datecoach.services.orchestration.templates import PHOTO_TEMPLATE

logger = get_logger(__name__)


class PhotoAnalysisError(Exception):
    """Raised when a photo analysis cannot be completed."""

    def __init__(self, message: str, code: str = "PHOTO_ANALYSIS_FAILED", analysis_id: str | None = None):
        super().__init__(message)
        self.code = code
        self.analysis_id = analysis_id


class InvalidImageError(PhotoAnalysisError):
    def __init__(self, message: str):
        super().__init__(message, code="INVALID_IMAGE")


@dataclass(slots=True)
class PhotoAnalysisOutcome:
    analysis_id: str
    image_url: str | None
    analysis: dict[str, Any]
    processing_time_ms: float
    ai_provider_used: str


class PhotoAnalysisService:
    def __init__(self, orchestrator: ProviderOrchestrator, repository: AnalysisRepository):
        self.orchestrator = orchestrator
        self.repository = repository

    async def analyze(
        self,
        user_id: str,
        image_data: str,
        file_name: str | None = None,
        analysis_type: str = "comprehensive",
        preferred_provider: str = "openai",
        image_url: str | None = None,
    ) -> PhotoAnalysisOutcome:
        """
        Analyze one profile photo.

        Raises:
            InvalidImageError: image data is not a usable base64 data URL
            PhotoAnalysisError: no provider configured, record insert failed,
                or both providers failed
        """
        try:
            media = MediaInput.from_data_url(image_data)
            file_size = media.decoded_size()
        except InvalidMediaError as e:
            raise InvalidImageError(str(e)) from e

        try:
            provider = self.orchestrator.resolve_primary(preferred_provider)
        except NoProviderConfiguredError as e:
            raise PhotoAnalysisError(str(e)) from e

        file_name = file_name or f"{int(time.time() * 1000)}-{uuid.uuid4()}.jpg"

        logger.info(
            "Starting enhanced photo analysis",
            user_id=user_id,
            provider=provider.value,
            image_hash=media_digest(media.base64_data)[:12],
            file_size=file_size,
        )

        try:
            analysis_id = await self.repository.create_processing(
                {
                    "user_id": user_id,
                    "image_url": image_url,
                    "file_name": file_name,
                    "file_size": file_size,
                    "analysis_type": analysis_type,
                    "ai_provider": provider.value,
                    "preferred_provider": preferred_provider,
                }
            )
        except PersistenceError as e:
            raise PhotoAnalysisError(str(e)) from e

        result = await self.orchestrator.run(photo_prompt(), media, PHOTO_TEMPLATE, preferred=provider)

        if not result.succeeded:
            try:
                await self.repository.mark_failed(analysis_id, result.error or "Analysis failed")
            except PersistenceError as e:
                logger.error("Failed to mark analysis failed", analysis_id=analysis_id, error=str(e))
            raise PhotoAnalysisError(result.error or "Analysis failed", analysis_id=analysis_id)

        update = {
            **result.record,
            "raw_analysis": result.raw_analysis,
            "processing_time_ms": result.processing_time_ms,
            "ai_provider": result.used_provider,
        }

        stored = None
        try:
            stored = await self.repository.mark_completed(analysis_id, update)
        except PersistenceError as e:
            logger.error("Failed to update analysis", analysis_id=analysis_id, error=str(e))

        logger.info(
            "Enhanced photo analysis completed",
            analysis_id=analysis_id,
            provider=result.used_provider,
            parsed=result.parsed,
        )

        return PhotoAnalysisOutcome(
            analysis_id=analysis_id,
            image_url=image_url,
            analysis=stored or {"id": analysis_id, "analysis_status": "completed", **update},
            processing_time_ms=result.processing_time_ms,
            ai_provider_used=result.used_provider,
        )
