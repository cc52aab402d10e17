# datecoach/services/orchestration/orchestrator.py
"""
Provider Orchestrator
Calls the primary AI provider, switches once to the secondary on failure, and
normalizes free-form model output into a fixed record.

Per job:
    START -> PRIMARY_ATTEMPT -> PRIMARY_OK (done)
                             -> PRIMARY_FAIL -> SECONDARY_ATTEMPT -> SECONDARY_OK (done)
                                                                  -> SECONDARY_FAIL (failed)
                                             -> NO_FALLBACK (failed)

A provider reply that is 2xx but holds no parsable JSON counts as a failed
attempt for fallback purposes, yet the job still completes with the canned
record if nothing better arrives.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Callable, Mapping

from datecoach.infrastructure.observability.logging import get_logger, log_provider_attempt
from datecoach.models.domain.analysis_domain import AnalysisStatus
from datecoach.services.orchestration.json_extraction import extract_first_json_object
from datecoach.services.orchestration.providers import (
    AnalysisProvider,
    MediaInput,
    ProviderCallError,
    ProviderName,
    ProviderReply,
)
from datecoach.services.orchestration.templates import RecordTemplate

logger = get_logger(__name__)

# Fallback is a fixed pairing, not a priority list
FALLBACK_PAIRS: dict[ProviderName, ProviderName] = {
    ProviderName.OPENAI: ProviderName.GEMINI,
    ProviderName.GEMINI: ProviderName.OPENAI,
}


class NoProviderConfiguredError(Exception):
    """Raised when no AI provider has credentials configured."""


@dataclass(slots=True)
class ProviderAttempt:
    provider: str
    started_at: datetime
    elapsed_ms: float = 0.0
    raw_response: dict[str, Any] | None = None
    error: str | None = None
    parsed: bool = False

    @property
    def responded(self) -> bool:
        """Provider returned 2xx, whether or not its body parsed."""
        return self.error is None


@dataclass(slots=True)
class OrchestrationResult:
    status: AnalysisStatus
    record: dict[str, Any] | None
    used_provider: str | None
    fallback_used: bool = False
    processing_time_ms: float = 0.0
    raw_analysis: dict[str, Any] | None = None
    attempts: list[ProviderAttempt] = field(default_factory=list)
    error: str | None = None
    parsed: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status == AnalysisStatus.COMPLETED


@dataclass(slots=True)
class _AttemptOutcome:
    attempt: ProviderAttempt
    parsed_value: dict[str, Any] | None = None


class ProviderOrchestrator:
    def __init__(
        self,
        providers: Mapping[ProviderName, AnalysisProvider],
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.providers = dict(providers)
        self._clock = clock

    def configured(self) -> list[ProviderName]:
        return [name for name, provider in self.providers.items() if provider.configured]

    def has_provider(self) -> bool:
        return bool(self.configured())

    def _is_configured(self, name: ProviderName | None) -> bool:
        provider = self.providers.get(name) if name else None
        return bool(provider and provider.configured)

    def resolve_primary(self, preferred: str | ProviderName | None) -> ProviderName:
        """
        Preferred provider if configured, else its counterpart.

        This substitution happens before the first attempt and is not
        reported as a fallback.
        """
        configured = self.configured()
        if not configured:
            raise NoProviderConfiguredError("No AI provider API keys configured")

        try:
            name = ProviderName(preferred) if preferred else configured[0]
        except ValueError:
            logger.warning("Unknown preferred provider, using default", preferred=preferred)
            name = configured[0]

        if self._is_configured(name):
            return name
        counterpart = FALLBACK_PAIRS.get(name)
        if self._is_configured(counterpart):
            logger.info("Preferred provider not configured, substituting", preferred=name.value, used=counterpart.value)
            return counterpart
        return configured[0]

    def fallback_for(self, name: ProviderName) -> ProviderName | None:
        counterpart = FALLBACK_PAIRS.get(name)
        return counterpart if self._is_configured(counterpart) else None

    async def _attempt(self, name: ProviderName, prompt: str, media: MediaInput | None) -> _AttemptOutcome:
        started = self._clock()
        attempt = ProviderAttempt(provider=name.value, started_at=datetime.now(UTC))
        outcome = _AttemptOutcome(attempt=attempt)

        try:
            reply: ProviderReply = await self.providers[name].complete(prompt, media)
        except ProviderCallError as e:
            attempt.error = str(e)
        except Exception as e:
            attempt.error = f"{type(e).__name__}: {e}"
        else:
            attempt.raw_response = reply.raw
            extraction = extract_first_json_object(reply.text)
            if extraction.ok:
                attempt.parsed = True
                outcome.parsed_value = extraction.value
            else:
                logger.warning(
                    "Provider reply held no parsable JSON",
                    provider=name.value,
                    reason=extraction.error,
                    detail=extraction.detail,
                )

        attempt.elapsed_ms = (self._clock() - started) * 1000
        log_provider_attempt(
            name.value, attempt.responded, attempt.elapsed_ms, parsed=attempt.parsed, error=attempt.error
        )
        return outcome

    async def run(
        self,
        prompt: str,
        media: MediaInput | None,
        template: RecordTemplate,
        preferred: str | ProviderName | None = None,
    ) -> OrchestrationResult:
        primary = self.resolve_primary(preferred)
        outcomes = [await self._attempt(primary, prompt, media)]

        secondary = None
        if outcomes[0].parsed_value is None:
            secondary = self.fallback_for(primary)
            if secondary is not None:
                logger.info("Attempting fallback provider", primary=primary.value, fallback=secondary.value)
                outcomes.append(await self._attempt(secondary, prompt, media))

        attempts = [outcome.attempt for outcome in outcomes]

        def provider_label(index: int) -> str:
            if index == 0:
                return primary.value
            return f"{primary.value}_fallback_{secondary.value}"

        for index, outcome in enumerate(outcomes):
            if outcome.parsed_value is not None:
                return OrchestrationResult(
                    status=AnalysisStatus.COMPLETED,
                    record=template.normalize(outcome.parsed_value),
                    used_provider=provider_label(index),
                    fallback_used=index > 0,
                    processing_time_ms=round(outcome.attempt.elapsed_ms, 1),
                    raw_analysis=outcome.attempt.raw_response,
                    attempts=attempts,
                    parsed=True,
                )

        responded = [index for index, outcome in enumerate(outcomes) if outcome.attempt.responded]
        if responded:
            index = responded[-1]
            outcome = outcomes[index]
            logger.warning(
                "No parsable provider output, using canned record",
                provider=outcome.attempt.provider,
                template=template.name,
            )
            return OrchestrationResult(
                status=AnalysisStatus.COMPLETED,
                record=template.canned_record(),
                used_provider=provider_label(index),
                fallback_used=index > 0,
                processing_time_ms=round(outcome.attempt.elapsed_ms, 1),
                raw_analysis=outcome.attempt.raw_response,
                attempts=attempts,
                parsed=False,
            )

        if secondary is not None:
            error = (
                "Both AI providers failed. "
                f"Primary: {attempts[0].error}, Fallback: {attempts[1].error}"
            )
        else:
            error = f"Primary provider failed and no fallback available: {attempts[0].error}"

        logger.error("Analysis providers failed", error=error)
        return OrchestrationResult(
            status=AnalysisStatus.FAILED,
            record=None,
            used_provider=None,
            attempts=attempts,
            error=error,
        )
