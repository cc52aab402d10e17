"""
Model instructions per analysis kind.
Each prompt asks for one JSON object whose keys match the kind's record template.
"""

import json
from typing import Any

from datecoach.models.domain.analysis_domain import AnalysisKind
from datecoach.services.orchestration.templates import PHOTO_TEMPLATE, template_for

PHOTO_ANALYSIS_PROMPT = """You are an expert dating profile photo analyst. Analyze this photo for dating app effectiveness:

1. Overall Appeal Score (1-10)
2. Composition Score (1-10): quality, framing, lighting, background
3. Emotion Score (1-10): expression, approachability, confidence
4. Technical Issues: lighting, blur, cropping
5. Specific Feedback: what works and what could improve
6. Actionable Suggestions: 3-5 specific improvements
7. Next Steps: immediate actions

Be encouraging but honest. Format your response as JSON with these exact keys: {keys}."""

_KIND_INSTRUCTIONS: dict[AnalysisKind, str] = {
    AnalysisKind.PROFILE: "You are a dating coach. Review this dating profile and rate how well it presents the person.",
    AnalysisKind.CONVERSATION: "You are a dating coach. Review this conversation and coach the user on how to continue it.",
    AnalysisKind.COMPATIBILITY: "You are a relationship coach. Assess how compatible these two profiles are.",
    AnalysisKind.PAGE: "You are a dating coach. Review this dating app page and suggest how the user should engage.",
}


def photo_prompt() -> str:
    return PHOTO_ANALYSIS_PROMPT.format(keys=", ".join(PHOTO_TEMPLATE.fields))


def build_prompt(kind: str | AnalysisKind, data: dict[str, Any], options: dict[str, Any]) -> str:
    """Instruction text for one request; photo bytes are sent separately as media."""
    kind = AnalysisKind(kind)
    if kind == AnalysisKind.PHOTO:
        return photo_prompt()

    template = template_for(kind)
    context = {
        "depth_level": options.get("depth_level"),
        "cultural_context": options.get("cultural_context"),
        "platform": options.get("platform"),
        "include_recommendations": options.get("include_recommendations", True),
    }
    return (
        f"{_KIND_INSTRUCTIONS[kind]}\n\n"
        f"Context: {json.dumps(context, default=str)}\n"
        f"Input: {json.dumps(data, default=str)}\n\n"
        f"Respond with a JSON object with these exact keys: {', '.join(template.fields)}."
    )
