# datecoach/models/api/analysis_response.py
"""
Analysis API response models.
The same AnalysisResponse shape is returned by the backend and by the broker,
whichever provider produced it and whether or not a fallback occurred.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AnalysisMetadata(BaseModel):
    """Provenance attached to a successful analysis."""

    model_config = ConfigDict(extra="allow")

    model_used: str = Field(..., description="Provider (and fallback marker) that produced the result")
    analysis_version: str = Field(default="1.0", description="Record template version")
    timestamp: str = Field(..., description="ISO timestamp of completion")
    request_id: str = Field(..., description="Request digest")
    fallback_used: bool = Field(default=False, description="Secondary provider produced the result")


class AnalysisResponse(BaseModel):
    """Uniform result of one analysis request."""

    model_config = ConfigDict(extra="allow")

    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None
    analysis_id: str | None = None
    confidence: float = 0.0
    processing_time: float = Field(default=0.0, description="Milliseconds")
    tier_usage: dict[str, Any] | None = None
    upgrade_required: bool = False
    current_tier: str | None = None
    authentication_required: bool = False
    recommendations: list[Any] | None = None
    insights: dict[str, Any] | None = None
    metadata: AnalysisMetadata | None = None

    @classmethod
    def failure(cls, error: str, **extra: Any) -> "AnalysisResponse":
        """Failure shape: success false, zero confidence, zero processing time."""
        return cls(success=False, error=error, confidence=0.0, processing_time=0.0, **extra)


class PhotoAnalysisData(BaseModel):
    """Payload of a successful ``POST /api/photo-analysis``."""

    analysis_id: str
    image_url: str | None = None
    analysis: dict[str, Any]
    processing_time_ms: float
    ai_provider_used: str


class PhotoAnalysisApiResponse(BaseModel):
    data: PhotoAnalysisData


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail


class HealthResponse(BaseModel):
    """Backend health summary consumed by the broker's health check."""

    status: str
    services: dict[str, str]
    providers: list[str] = Field(default_factory=list)
