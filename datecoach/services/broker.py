# datecoach/services/broker.py
"""
Analysis Broker
Turns a UI-level "analyze this" call into a cached, deduplicated, tier-gated,
authenticated request against the backend analysis endpoint.

Every UI surface constructs (or is handed) one broker instance; cache and
in-flight state live on the instance, never at module level.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any, Protocol

from pydantic import ValidationError

from datecoach.config import settings
from datecoach.infrastructure.observability.logging import get_logger
from datecoach.models.api.analysis_response import AnalysisResponse
from datecoach.models.domain.analysis_domain import (
    AnalysisKind,
    AnalysisOptions,
    AnalysisRequest,
    DepthLevel,
    Priority,
)
from datecoach.services.analysis_transport import (
    AnalysisTransport,
    AnalysisTransportError,
    HttpxAnalysisTransport,
)
from datecoach.services.credentials import (
    CredentialNotFoundError,
    CredentialProvider,
    create_credential_provider,
)
from datecoach.services.inflight import InFlightRegistry
from datecoach.services.platform_detection import detect_platform
from datecoach.services.response_cache import ResponseCache
from datecoach.services.tier_policy import TierCheckResult

logger = get_logger(__name__)


class AnalysisSyncNotifier(Protocol):
    async def notify(self, analysis_id: str, response: AnalysisResponse, platform: str) -> None: ...


class HttpxSyncNotifier:
    """Tells the backend a surface completed an analysis so other surfaces can pick it up."""

    def __init__(self, transport: HttpxAnalysisTransport, credentials: CredentialProvider):
        self.transport = transport
        self.credentials = credentials

    async def notify(self, analysis_id: str, response: AnalysisResponse, platform: str) -> None:
        session_token = await self.credentials.get_session_token()
        await self.transport.post_sync(
            {
                "analysis_id": analysis_id,
                "result": response.model_dump(mode="json"),
                "platform": platform,
                "timestamp": datetime.now(UTC).isoformat(),
            },
            session_token,
        )


class AnalysisBroker:
    """
    Public entry point for analysis requests.

    Pipeline per request: cache -> in-flight dedup -> credentials -> tier
    check -> network -> usage increment -> cache write -> sync notification.
    Nothing raises past this class; failures come back as AnalysisResponse
    with ``success=False``.
    """

    def __init__(
        self,
        transport: AnalysisTransport,
        credentials: CredentialProvider,
        *,
        platform: str = "web",
        cache: ResponseCache[AnalysisResponse] | None = None,
        inflight: InFlightRegistry[AnalysisResponse] | None = None,
        notifier: AnalysisSyncNotifier | None = None,
    ):
        self.transport = transport
        self.credentials = credentials
        self.platform = platform
        if cache is None:
            cache = ResponseCache(
                max_entries=settings.BROKER_CACHE_MAX_ENTRIES,
                ttl_seconds=settings.ANALYSIS_CACHE_TTL_SECONDS,
            )
        self.cache = cache
        self.inflight = inflight if inflight is not None else InFlightRegistry()
        self.notifier = notifier
        self.network_calls = 0
        self._usage_lock = asyncio.Lock()
        # admitted by the tier check, not yet recorded or released
        self._reserved: dict[str, int] = {}
        self._background_tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def analyze_profile(
        self,
        target_profile: Any,
        *,
        depth_level: str = DepthLevel.COMPREHENSIVE,
        cultural_context: str | None = None,
        platform: str | None = None,
    ) -> AnalysisResponse:
        return await self._submit(
            AnalysisKind.PROFILE,
            {"targetProfile": target_profile},
            depth_level=depth_level,
            priority=Priority.NORMAL,
            cultural_context=cultural_context,
            platform=platform,
        )

    async def coach_conversation(
        self,
        conversation_history: list[Any],
        user_profile: Any,
        target_profile: Any,
        *,
        depth_level: str = DepthLevel.COMPREHENSIVE,
        platform: str | None = None,
    ) -> AnalysisResponse:
        return await self._submit(
            AnalysisKind.CONVERSATION,
            {
                "conversationHistory": conversation_history,
                "userProfile": user_profile,
                "targetProfile": target_profile,
            },
            depth_level=depth_level,
            priority=Priority.HIGH,
            platform=platform,
        )

    async def analyze_photo(
        self,
        photo_data: Any,
        *,
        depth_level: str = DepthLevel.STANDARD,
        analysis_type: str | None = None,
    ) -> AnalysisResponse:
        payload = {"photoData": photo_data}
        if analysis_type:
            payload["analysis_type"] = analysis_type
        return await self._submit(
            AnalysisKind.PHOTO,
            payload,
            depth_level=depth_level,
            priority=Priority.NORMAL,
        )

    async def check_compatibility(
        self,
        user_profile: Any,
        target_profile: Any,
        *,
        depth_level: str = DepthLevel.COMPREHENSIVE,
        focus_areas: list[str] | None = None,
    ) -> AnalysisResponse:
        return await self._submit(
            AnalysisKind.COMPATIBILITY,
            {
                "userProfile": user_profile,
                "targetProfile": target_profile,
                "focus_areas": focus_areas or ["all"],
            },
            depth_level=depth_level,
            priority=Priority.NORMAL,
        )

    async def analyze_page(
        self,
        page_data: Any,
        page_url: str,
        *,
        depth_level: str = DepthLevel.STANDARD,
    ) -> AnalysisResponse:
        platform = detect_platform(page_url)
        return await self._submit(
            AnalysisKind.PAGE,
            {"pageData": page_data, "url": page_url, "platform": platform},
            depth_level=depth_level,
            priority=Priority.HIGH,
            platform=platform,
        )

    async def batch_analyze(self, requests: list[AnalysisRequest]) -> list[AnalysisResponse]:
        """Run several requests concurrently; results keep the input order."""
        return list(await asyncio.gather(*(self.process(request) for request in requests)))

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _submit(
        self,
        kind: AnalysisKind,
        payload: dict[str, Any],
        *,
        depth_level: str,
        priority: Priority,
        cultural_context: str | None = None,
        platform: str | None = None,
    ) -> AnalysisResponse:
        try:
            options = AnalysisOptions(
                depth_level=depth_level,
                include_recommendations=True,
                cultural_context=cultural_context or await self._cultural_context(),
                platform=platform or self.platform,
                priority=priority,
            )
            request = AnalysisRequest(kind=kind, payload=payload, options=options)
        except ValidationError as e:
            logger.warning("Rejected invalid analysis request", request_kind=kind.value, error=str(e))
            return AnalysisResponse.failure(f"Invalid analysis request: {e.errors()[0]['msg']}")

        return await self.process(request)

    async def process(self, request: AnalysisRequest) -> AnalysisResponse:
        """Run one request through cache, dedup and the network call."""
        try:
            key = request.digest()

            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Analysis cache hit", request_kind=request.kind, digest=key[:12])
                return cached

            return await self.inflight.run(key, lambda: self._execute(request, key))

        except Exception as e:
            logger.error(
                "Analysis request failed",
                request_kind=request.kind,
                error=str(e),
                error_type=type(e).__name__,
            )
            return AnalysisResponse.failure(str(e) or "Analysis failed")

    async def _execute(self, request: AnalysisRequest, key: str) -> AnalysisResponse:
        """Shared body of one in-flight entry; runs at most once per digest at a time."""
        try:
            user_id = await self.credentials.get_user_id()
            session_token = await self.credentials.get_session_token()
        except CredentialNotFoundError as e:
            logger.info("Analysis rejected, not authenticated", missing=e.key)
            return AnalysisResponse.failure(str(e), authentication_required=True)

        tier_check = await self._reserve_usage(request.kind)
        if not tier_check.allowed:
            logger.info(
                "Tier limit exceeded",
                request_kind=request.kind,
                tier=tier_check.current_tier,
                usage=tier_check.usage,
                limit=tier_check.limit,
            )
            return AnalysisResponse.failure(
                "Tier limit exceeded",
                upgrade_required=True,
                current_tier=tier_check.current_tier,
                tier_usage=tier_check.to_dict(),
            )

        logger.info(
            "Sending analysis request",
            request_kind=request.kind,
            digest=key[:12],
            priority=request.options.priority,
        )
        self.network_calls += 1
        response: AnalysisResponse | None = None
        try:
            body = await self.transport.post_analysis(
                request.to_wire(user_id, session_token), session_token
            )
            response = AnalysisResponse.model_validate(body)
        except AnalysisTransportError as e:
            return AnalysisResponse.failure(str(e))
        except ValidationError as e:
            logger.warning("Analysis API returned an unexpected shape", error=str(e))
            return AnalysisResponse.failure("Invalid response from analysis API")
        finally:
            await self._settle_usage(request.kind, recorded=response is not None and response.success)

        if response.success:
            self.cache.set(key, response)
            if response.analysis_id and self.notifier is not None:
                self._notify_in_background(response, request.options.platform)

        return response

    async def _reserve_usage(self, kind: str) -> TierCheckResult:
        """Check the tier against stored plus reserved usage and hold a slot if it fits."""
        async with self._usage_lock:
            quota = await self.credentials.get_tier_quota()
            tier_check = quota.check(kind, pending=self._reserved.get(kind, 0))
            if tier_check.allowed:
                self._reserved[kind] = self._reserved.get(kind, 0) + 1
            return tier_check

    async def _settle_usage(self, kind: str, *, recorded: bool) -> None:
        """Release the reserved slot, counting it as used when the request succeeded."""
        async with self._usage_lock:
            try:
                if recorded:
                    quota = await self.credentials.get_tier_quota()
                    quota.record(kind)
                    await self.credentials.save_tier_quota(quota)
            except Exception as e:
                # usage counting is best-effort
                logger.warning("Failed to record tier usage", request_kind=kind, error=str(e))
            finally:
                held = self._reserved.get(kind, 0) - 1
                if held > 0:
                    self._reserved[kind] = held
                else:
                    self._reserved.pop(kind, None)

    async def _cultural_context(self) -> str:
        try:
            return await self.credentials.get_cultural_context()
        except Exception as e:
            logger.warning("Cultural context lookup failed", error=str(e))
            return settings.DEFAULT_CULTURAL_CONTEXT

    # ------------------------------------------------------------------
    # Cross-surface sync
    # ------------------------------------------------------------------

    def _notify_in_background(self, response: AnalysisResponse, platform: str) -> None:
        task = asyncio.create_task(self._notify_safely(response, platform))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _notify_safely(self, response: AnalysisResponse, platform: str) -> None:
        try:
            await self.notifier.notify(response.analysis_id, response, platform)
        except Exception as e:
            logger.warning(
                "Analysis sync failed", analysis_id=response.analysis_id, error=str(e)
            )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def get_performance_metrics(self) -> dict[str, Any]:
        return {
            "cache_size": len(self.cache),
            "queue_size": len(self.inflight),
            "platform": self.platform,
            "cache_hit_rate": self.cache.hit_rate,
            "network_calls": self.network_calls,
        }

    def clear_cache(self) -> None:
        """Drop cached responses. In-flight calls still settle and may repopulate the cache."""
        self.cache.clear()

    async def health_check(self) -> dict[str, Any]:
        try:
            return await self.transport.get_health()
        except Exception as e:
            logger.warning("Analysis API health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "services": {
                    "api": "unreachable",
                    "analysis_engine": "unknown",
                    "database": "unknown",
                },
            }

    async def aclose(self) -> None:
        """Wait for pending sync notifications, then release the transport."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        close = getattr(self.transport, "aclose", None)
        if close is not None:
            await close()


def create_broker(
    credentials: CredentialProvider | None = None,
    *,
    platform: str = "web",
    base_url: str | None = None,
    enable_sync: bool = False,
) -> AnalysisBroker:
    """Build a broker wired to the configured backend."""
    credentials = credentials or create_credential_provider()
    transport = HttpxAnalysisTransport(base_url=base_url)
    notifier = HttpxSyncNotifier(transport, credentials) if enable_sync else None
    return AnalysisBroker(transport, credentials, platform=platform, notifier=notifier)
