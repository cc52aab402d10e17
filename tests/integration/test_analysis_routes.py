import pytest
from fakes import PHOTO_DATA_URL, FakeProvider
from fastapi.testclient import TestClient

from datecoach.main import app
from datecoach.repositories.analysis_repository import InMemoryAnalysisRepository
from datecoach.routes.analysis import get_analysis_service, get_photo_analysis_service
from datecoach.services.analysis_service import AnalysisRequestService
from datecoach.services.orchestration.orchestrator import ProviderOrchestrator
from datecoach.services.orchestration.providers import ProviderCallError, ProviderName
from datecoach.services.photo_analysis_service import PhotoAnalysisService


def _orchestrator(openai_reply, gemini_reply) -> ProviderOrchestrator:
    return ProviderOrchestrator(
        {
            ProviderName.OPENAI: FakeProvider(ProviderName.OPENAI, openai_reply),
            ProviderName.GEMINI: FakeProvider(ProviderName.GEMINI, gemini_reply),
        }
    )


@pytest.fixture
def client_with(apply_auth_override):
    def _build(orchestrator: ProviderOrchestrator) -> TestClient:
        analysis_service = AnalysisRequestService(orchestrator, InMemoryAnalysisRepository())
        photo_service = PhotoAnalysisService(orchestrator, InMemoryAnalysisRepository("photo_analyses"))
        apply_auth_override(app)
        app.dependency_overrides[get_analysis_service] = lambda: analysis_service
        app.dependency_overrides[get_photo_analysis_service] = lambda: photo_service
        return TestClient(app)

    yield _build
    app.dependency_overrides.clear()


def _analysis_body(user_id: str = "user-123") -> dict:
    return {
        "user_id": user_id,
        "session_token": "token-abc",
        "request_type": "profile_analysis",
        "data": {"targetProfile": {"bio": "Weekend hiker"}},
        "options": {"depth_level": "comprehensive", "platform": "tinder"},
    }


def test_analysis_returns_normalized_record(client_with):
    client = client_with(_orchestrator('{"overall_score": 8.5}', "unused"))

    response = client.post("/api/analysis", json=_analysis_body())

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["data"]["overall_score"] == 8.5
    assert data["data"]["bio_score"] == 7.0
    assert data["metadata"]["model_used"] == "openai"
    assert data["analysis_id"]


def test_analysis_rejects_mismatched_user(client_with):
    client = client_with(_orchestrator('{"overall_score": 8.5}', "unused"))

    response = client.post("/api/analysis", json=_analysis_body(user_id="someone-else"))

    assert response.status_code == 401
    assert response.json()["detail"] == "User not authenticated"


def test_analysis_rejects_unknown_request_type(client_with):
    client = client_with(_orchestrator('{"overall_score": 8.5}', "unused"))
    body = _analysis_body()
    body["request_type"] = "horoscope"

    response = client.post("/api/analysis", json=body)

    assert response.status_code == 422


def test_analysis_failure_is_reported_in_body(client_with):
    client = client_with(
        _orchestrator(
            ProviderCallError("openai", "OpenAI API error: down"),
            ProviderCallError("gemini", "Gemini API error: down"),
        )
    )

    response = client.post("/api/analysis", json=_analysis_body())

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert data["error"].startswith("Both AI providers failed.")


def test_photo_analysis_success(client_with):
    client = client_with(
        _orchestrator(ProviderCallError("openai", "OpenAI API error: 500", 500), '{"overall_score": 8}')
    )

    response = client.post(
        "/api/photo-analysis",
        json={"imageData": PHOTO_DATA_URL, "fileName": "me.jpg", "preferredProvider": "openai"},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["ai_provider_used"] == "openai_fallback_gemini"
    assert data["analysis"]["overall_score"] == 8
    assert data["analysis"]["analysis_status"] == "completed"


def test_photo_analysis_failure_returns_error_body(client_with):
    client = client_with(
        _orchestrator(
            ProviderCallError("openai", "OpenAI API error: a"),
            ProviderCallError("gemini", "Gemini API error: b"),
        )
    )

    response = client.post("/api/photo-analysis", json={"imageData": PHOTO_DATA_URL})

    assert response.status_code == 500
    assert response.json() == {
        "error": {
            "code": "PHOTO_ANALYSIS_FAILED",
            "message": "Both AI providers failed. Primary: OpenAI API error: a, Fallback: Gemini API error: b",
        }
    }


def test_photo_analysis_rejects_invalid_image(client_with):
    client = client_with(_orchestrator('{"overall_score": 8}', "unused"))

    response = client.post("/api/photo-analysis", json={"imageData": "not a data url"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_IMAGE"


def test_photo_analysis_requires_auth():
    client = TestClient(app)

    response = client.post("/api/photo-analysis", json={"imageData": PHOTO_DATA_URL})

    assert response.status_code in (401, 403)


def test_lifespan_wires_services_without_provider_keys(monkeypatch, apply_auth_override):
    for key in ("OPENAI_API_KEY", "GEMINI_API_KEY", "SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"):
        monkeypatch.setattr(f"datecoach.main.settings.{key}", None)
    apply_auth_override(app)

    try:
        with TestClient(app) as client:
            assert isinstance(app.state.analysis_service, AnalysisRequestService)
            response = client.post("/api/analysis", json=_analysis_body())
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["error"] == "No AI provider API keys configured"
