# datecoach/services/analysis_transport.py
"""
HTTP transport between the broker and the backend analysis endpoint.
"""

from typing import Any, Protocol

import httpx

from datecoach.config import settings
from datecoach.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

ANALYSIS_PATH = "/api/analysis"
HEALTH_PATH = "/api/health"
SYNC_PATH = "/api/sync"


class AnalysisTransportError(Exception):
    """Raised for non-2xx responses and network failures on the analysis endpoint."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AnalysisTransport(Protocol):
    async def post_analysis(self, body: dict[str, Any], session_token: str) -> dict[str, Any]: ...

    async def get_health(self) -> dict[str, Any]: ...


class HttpxAnalysisTransport:
    """
    Analysis transport on httpx.

    No retries: a failed call is reported once and the caller decides whether
    to issue a fresh request.
    """

    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.ANALYSIS_API_BASE_URL).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout or settings.ANALYSIS_API_TIMEOUT_SECONDS)
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self, session_token: str | None = None) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if session_token:
            headers["Authorization"] = f"Bearer {session_token}"
        return headers

    async def _post(self, path: str, body: dict[str, Any], session_token: str) -> dict[str, Any]:
        try:
            response = await self._client.post(
                f"{self.base_url}{path}",
                json=body,
                headers=self._headers(session_token),
            )
        except httpx.HTTPError as e:
            logger.warning("Analysis API request error", path=path, error=str(e))
            raise AnalysisTransportError(f"API request failed: {e}") from e

        if not response.is_success:
            logger.warning("Analysis API returned error", path=path, status_code=response.status_code)
            raise AnalysisTransportError(
                f"API request failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise AnalysisTransportError(
                "API request failed: invalid JSON body", status_code=response.status_code
            ) from e

    async def post_analysis(self, body: dict[str, Any], session_token: str) -> dict[str, Any]:
        return await self._post(ANALYSIS_PATH, body, session_token)

    async def post_sync(self, body: dict[str, Any], session_token: str) -> dict[str, Any]:
        return await self._post(SYNC_PATH, body, session_token)

    async def get_health(self) -> dict[str, Any]:
        try:
            response = await self._client.get(f"{self.base_url}{HEALTH_PATH}", headers=self._headers())
        except httpx.HTTPError as e:
            raise AnalysisTransportError(f"Health check failed: {e}") from e
        if not response.is_success:
            raise AnalysisTransportError("Health check failed", status_code=response.status_code)
        return response.json()
