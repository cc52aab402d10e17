"""
Record templates: the fixed field set every analysis record must carry.

``field_defaults`` fill any key missing (or null) in a parsed model reply.
``canned`` is the whole record used when no provider produced parsable JSON.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

from datecoach.models.domain.analysis_domain import AnalysisKind


@dataclass(frozen=True)
class RecordTemplate:
    name: str
    version: str
    field_defaults: dict[str, Any]
    canned: dict[str, Any]

    @property
    def fields(self) -> list[str]:
        return list(self.field_defaults)

    def normalize(self, parsed: dict[str, Any]) -> dict[str, Any]:
        """Template fields first (defaults where absent), then any extra keys the model returned."""
        record = {
            key: copy.deepcopy(default) if parsed.get(key) is None else parsed[key]
            for key, default in self.field_defaults.items()
        }
        for key, value in parsed.items():
            record.setdefault(key, value)
        return record

    def canned_record(self) -> dict[str, Any]:
        return copy.deepcopy(self.canned)


PHOTO_TEMPLATE = RecordTemplate(
    name="photo",
    version="2.0",
    field_defaults={
        "overall_score": 7.0,
        "attractiveness_score": 7.0,
        "composition_score": 7.0,
        "emotion_score": 7.5,
        "technical_issues": [],
        "feedback": "Analysis completed",
        "suggestions": [],
        "improvements": [],
        "next_steps": [],
    },
    canned={
        "overall_score": 7.0,
        "attractiveness_score": 7.0,
        "composition_score": 6.5,
        "emotion_score": 7.5,
        "technical_issues": [],
        "feedback": (
            "Analysis completed successfully. "
            "The photo shows good potential for dating profiles."
        ),
        "suggestions": [
            "Consider improving lighting",
            "Work on natural expressions",
            "Optimize background",
        ],
        "improvements": ["Photo quality", "Facial expression", "Overall composition"],
        "next_steps": [
            "Take multiple shots with different lighting",
            "Practice confident poses",
        ],
    },
)

CONVERSATION_TEMPLATE = RecordTemplate(
    name="conversation",
    version="2.0",
    field_defaults={
        "overall_score": 7.0,
        "engagement_score": 7.0,
        "tone": "friendly",
        "feedback": "Analysis completed",
        "strengths": [],
        "suggestions": [],
        "suggested_replies": [],
        "red_flags": [],
    },
    canned={
        "overall_score": 7.0,
        "engagement_score": 6.5,
        "tone": "friendly",
        "feedback": "The conversation is flowing. Keep questions open and personal.",
        "strengths": ["Responsive replies", "Positive tone"],
        "suggestions": [
            "Ask an open-ended question about their interests",
            "Reference something specific from their profile",
        ],
        "suggested_replies": ["That sounds fun! What got you into it?"],
        "red_flags": [],
    },
)

PROFILE_TEMPLATE = RecordTemplate(
    name="profile",
    version="2.0",
    field_defaults={
        "overall_score": 7.0,
        "bio_score": 7.0,
        "photo_score": 7.0,
        "feedback": "Analysis completed",
        "strengths": [],
        "suggestions": [],
        "conversation_starters": [],
    },
    canned={
        "overall_score": 7.0,
        "bio_score": 6.5,
        "photo_score": 7.0,
        "feedback": "The profile has a solid base with room to show more personality.",
        "strengths": ["Clear main photo", "Friendly tone"],
        "suggestions": [
            "Add a specific hobby or story to the bio",
            "Include a full-body photo in natural light",
        ],
        "conversation_starters": ["Ask about the most recent trip in their photos"],
    },
)

COMPATIBILITY_TEMPLATE = RecordTemplate(
    name="compatibility",
    version="2.0",
    field_defaults={
        "compatibility_score": 7.0,
        "shared_interests": [],
        "potential_challenges": [],
        "feedback": "Analysis completed",
        "suggestions": [],
    },
    canned={
        "compatibility_score": 7.0,
        "shared_interests": ["Travel", "Food"],
        "potential_challenges": ["Different weekend routines"],
        "feedback": "You share enough common ground to start a good conversation.",
        "suggestions": ["Open with a shared interest", "Suggest a low-key first date"],
    },
)

PAGE_TEMPLATE = RecordTemplate(
    name="page",
    version="2.0",
    field_defaults={
        "overall_score": 7.0,
        "feedback": "Analysis completed",
        "highlights": [],
        "suggestions": [],
        "suggested_replies": [],
    },
    canned={
        "overall_score": 7.0,
        "feedback": "Page analysed. Focus on the details this person shares most.",
        "highlights": ["Profile prompts", "Recent photos"],
        "suggestions": ["Reply to a prompt instead of sending a generic greeting"],
        "suggested_replies": ["Your answer about weekend plans made me laugh. What's next on the list?"],
    },
)

TEMPLATES: dict[AnalysisKind, RecordTemplate] = {
    AnalysisKind.PHOTO: PHOTO_TEMPLATE,
    AnalysisKind.CONVERSATION: CONVERSATION_TEMPLATE,
    AnalysisKind.PROFILE: PROFILE_TEMPLATE,
    AnalysisKind.COMPATIBILITY: COMPATIBILITY_TEMPLATE,
    AnalysisKind.PAGE: PAGE_TEMPLATE,
}


def template_for(kind: str | AnalysisKind) -> RecordTemplate:
    return TEMPLATES[AnalysisKind(kind)]
