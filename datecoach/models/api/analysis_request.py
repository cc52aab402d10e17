# datecoach/models/api/analysis_request.py
"""
Analysis API request models.
Used by routes for input validation.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from datecoach.models.domain.analysis_domain import AnalysisKind, AnalysisOptions


class AnalysisApiRequest(BaseModel):
    """Body of ``POST /api/analysis`` as sent by the broker."""

    user_id: str = Field(..., min_length=1)
    session_token: str | None = Field(None, description="Echo of the bearer token")
    request_type: AnalysisKind
    data: dict[str, Any] = Field(default_factory=dict)
    options: AnalysisOptions = Field(default_factory=AnalysisOptions)


class PhotoAnalysisApiRequest(BaseModel):
    """Body of ``POST /api/photo-analysis``."""

    model_config = ConfigDict(populate_by_name=True)

    image_data: str = Field(..., alias="imageData", description="data:<mime>;base64,<body>")
    file_name: str | None = Field(None, alias="fileName")
    analysis_type: str = Field("comprehensive", alias="analysisType")
    preferred_provider: str = Field("openai", alias="preferredProvider")
    image_url: str | None = Field(None, alias="imageUrl", description="Already uploaded copy")
