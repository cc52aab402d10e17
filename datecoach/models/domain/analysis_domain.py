# datecoach/models/domain/analysis_domain.py
"""
Analysis domain models.
Pure data shared by the client-side broker and the server-side services.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from datecoach.security.digest import request_digest


class AnalysisKind(str, Enum):
    """Kinds of analysis a UI surface can request."""

    PROFILE = "profile_analysis"
    CONVERSATION = "conversation_coaching"
    PHOTO = "photo_analysis"
    COMPATIBILITY = "compatibility_check"
    PAGE = "page_analysis"


class DepthLevel(str, Enum):
    BASIC = "basic"
    STANDARD = "standard"
    COMPREHENSIVE = "comprehensive"
    EXPERT = "expert"


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class AnalysisStatus(str, Enum):
    """Lifecycle of a persisted analysis row."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class AnalysisOptions(BaseModel):
    """Options bag sent alongside every analysis request."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    depth_level: DepthLevel = DepthLevel.STANDARD
    include_recommendations: bool = True
    cultural_context: str = "western_urban"
    platform: str = "unknown"
    priority: Priority = Priority.NORMAL


class AnalysisRequest(BaseModel):
    """
    One immutable analysis request.

    Identity for caching and dedup is ``digest()``, derived from kind,
    payload and options only.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    kind: AnalysisKind
    payload: dict[str, Any] = Field(default_factory=dict)
    options: AnalysisOptions = Field(default_factory=AnalysisOptions)

    def digest(self) -> str:
        return request_digest(
            self.kind,
            self.payload,
            self.options.model_dump(mode="json"),
        )

    def to_wire(self, user_id: str, session_token: str) -> dict[str, Any]:
        """Body for ``POST /api/analysis``."""
        return {
            "user_id": user_id,
            "session_token": session_token,
            "request_type": self.kind,
            "data": self.payload,
            "options": self.options.model_dump(mode="json"),
        }
