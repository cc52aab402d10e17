import json

import httpx
import pytest

from datecoach.repositories.analysis_repository import (
    InMemoryAnalysisRepository,
    PersistenceError,
    SupabaseAnalysisRepository,
)


def _repository(handler) -> SupabaseAnalysisRepository:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SupabaseAnalysisRepository(
        "https://project.supabase.co/", "service-key", "photo_analyses", client
    )


@pytest.mark.asyncio
async def test_create_processing_inserts_row_and_returns_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=[{"id": "row-1", "analysis_status": "processing"}])

    analysis_id = await _repository(handler).create_processing({"user_id": "user-123", "file_size": 5})

    assert analysis_id == "row-1"
    assert seen["method"] == "POST"
    assert seen["path"] == "/rest/v1/photo_analyses"
    assert seen["headers"]["Authorization"] == "Bearer service-key"
    assert seen["headers"]["apikey"] == "service-key"
    assert seen["headers"]["Prefer"] == "return=representation"
    assert seen["body"] == {"user_id": "user-123", "file_size": 5, "analysis_status": "processing"}


@pytest.mark.asyncio
async def test_mark_completed_patches_by_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["id"] = request.url.params.get("id")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=[{"id": "row-1", **seen["body"]}])

    row = await _repository(handler).mark_completed("row-1", {"overall_score": 8})

    assert seen["method"] == "PATCH"
    assert seen["id"] == "eq.row-1"
    assert seen["body"]["analysis_status"] == "completed"
    assert "updated_at" in seen["body"]
    assert row["overall_score"] == 8


@pytest.mark.asyncio
async def test_mark_failed_records_error():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(204)

    await _repository(handler).mark_failed("row-1", "Both AI providers failed.")

    assert seen["body"]["analysis_status"] == "failed"
    assert seen["body"]["error_message"] == "Both AI providers failed."


@pytest.mark.asyncio
async def test_rejected_write_raises():
    repository = _repository(lambda request: httpx.Response(400, text="column does not exist"))

    with pytest.raises(PersistenceError) as exc_info:
        await repository.create_processing({"user_id": "user-123"})

    assert exc_info.value.operation == "insert"
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_insert_without_id_raises():
    repository = _repository(lambda request: httpx.Response(201, json=[]))

    with pytest.raises(PersistenceError, match="no id"):
        await repository.create_processing({"user_id": "user-123"})


@pytest.mark.asyncio
async def test_non_json_success_body_raises_persistence_error():
    repository = _repository(
        lambda request: httpx.Response(200, text="<html>gateway</html>", headers={"content-type": "text/html"})
    )

    with pytest.raises(PersistenceError, match="non-JSON") as exc_info:
        await repository.mark_completed("row-1", {"overall_score": 8})

    assert exc_info.value.operation == "update"
    assert exc_info.value.status_code == 200


@pytest.mark.asyncio
async def test_in_memory_lifecycle():
    repository = InMemoryAnalysisRepository()

    analysis_id = await repository.create_processing({"user_id": "user-123"})
    assert repository.rows[analysis_id]["analysis_status"] == "processing"

    row = await repository.mark_completed(analysis_id, {"overall_score": 8})
    assert row["analysis_status"] == "completed"
    assert row["overall_score"] == 8

    other_id = await repository.create_processing({"user_id": "user-123"})
    await repository.mark_failed(other_id, "boom")
    assert repository.rows[other_id]["analysis_status"] == "failed"
