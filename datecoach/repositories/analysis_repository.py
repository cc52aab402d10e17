"""
Persistence layer for analysis records.

Insert-then-patch against the Supabase REST API: a row is created in the
``processing`` state before any provider call and patched once afterwards.
"""

import uuid
from datetime import UTC, datetime
from typing import Any, Protocol

import httpx

from datecoach.infrastructure.observability.logging import get_logger
from datecoach.models.domain.analysis_domain import AnalysisStatus

logger = get_logger(__name__)


class PersistenceError(Exception):
    """Raised when the Supabase REST API rejects a write."""

    def __init__(self, message: str, operation: str, status_code: int | None = None):
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code


class AnalysisRepository(Protocol):
    async def create_processing(self, fields: dict[str, Any]) -> str: ...

    async def mark_completed(self, analysis_id: str, fields: dict[str, Any]) -> dict[str, Any] | None: ...

    async def mark_failed(self, analysis_id: str, error: str) -> None: ...


class SupabaseAnalysisRepository:
    """Row lifecycle for one analysis table (``analyses`` or ``photo_analyses``)."""

    def __init__(
        self,
        supabase_url: str,
        service_role_key: str,
        table: str,
        client: httpx.AsyncClient,
    ):
        self.base_url = f"{supabase_url.rstrip('/')}/rest/v1/{table}"
        self.table = table
        self._service_role_key = service_role_key
        self._client = client

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._service_role_key}",
            "apikey": self._service_role_key,
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    async def _send(
        self, method: str, operation: str, json: dict[str, Any], params: dict[str, str] | None = None
    ) -> list[dict[str, Any]]:
        try:
            response = await self._client.request(
                method, self.base_url, json=json, params=params, headers=self._headers()
            )
        except httpx.HTTPError as e:
            raise PersistenceError(f"Database {operation} failed: {e}", operation=operation) from e

        if not response.is_success:
            raise PersistenceError(
                f"Database {operation} failed: {response.text[:500]}",
                operation=operation,
                status_code=response.status_code,
            )

        try:
            rows = response.json() if response.content else []
        except ValueError as e:
            raise PersistenceError(
                f"Database {operation} returned a non-JSON body",
                operation=operation,
                status_code=response.status_code,
            ) from e
        return rows if isinstance(rows, list) else [rows]

    async def create_processing(self, fields: dict[str, Any]) -> str:
        """Insert a ``processing`` row and return its id."""
        row = {**fields, "analysis_status": AnalysisStatus.PROCESSING.value}
        rows = await self._send("POST", "insert", row)
        if not rows or "id" not in rows[0]:
            raise PersistenceError("Database insert returned no id", operation="insert")

        analysis_id = str(rows[0]["id"])
        logger.info("Analysis record created", table=self.table, analysis_id=analysis_id)
        return analysis_id

    async def mark_completed(self, analysis_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
        """Patch the row to ``completed``; returns the stored row when the API echoes it."""
        update = {
            **fields,
            "analysis_status": AnalysisStatus.COMPLETED.value,
            "updated_at": datetime.now(UTC).isoformat(),
        }
        rows = await self._send("PATCH", "update", update, params={"id": f"eq.{analysis_id}"})
        logger.info("Analysis record completed", table=self.table, analysis_id=analysis_id)
        return rows[0] if rows else None

    async def mark_failed(self, analysis_id: str, error: str) -> None:
        update = {
            "analysis_status": AnalysisStatus.FAILED.value,
            "error_message": error[:1000],
            "updated_at": datetime.now(UTC).isoformat(),
        }
        await self._send("PATCH", "update", update, params={"id": f"eq.{analysis_id}"})
        logger.info("Analysis record marked failed", table=self.table, analysis_id=analysis_id)


class InMemoryAnalysisRepository:
    """Same lifecycle as the Supabase repository, kept in process memory (local runs without Supabase)."""

    def __init__(self, table: str = "analyses"):
        self.table = table
        self.rows: dict[str, dict[str, Any]] = {}

    async def create_processing(self, fields: dict[str, Any]) -> str:
        analysis_id = str(uuid.uuid4())
        self.rows[analysis_id] = {
            **fields,
            "id": analysis_id,
            "analysis_status": AnalysisStatus.PROCESSING.value,
            "created_at": datetime.now(UTC).isoformat(),
        }
        return analysis_id

    async def mark_completed(self, analysis_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
        row = self.rows.get(analysis_id)
        if row is None:
            return None
        row.update(fields)
        row["analysis_status"] = AnalysisStatus.COMPLETED.value
        row["updated_at"] = datetime.now(UTC).isoformat()
        return dict(row)

    async def mark_failed(self, analysis_id: str, error: str) -> None:
        row = self.rows.get(analysis_id)
        if row is not None:
            row["analysis_status"] = AnalysisStatus.FAILED.value
            row["error_message"] = error[:1000]
            row["updated_at"] = datetime.now(UTC).isoformat()
