"""
Quick Thoughts Backend: HTTP Route Tests
==========================================

What:  Requests through the real FastAPI app (middleware, exception handlers,
       routing) via httpx ASGITransport. The caller and the DB session are
       injected through dependency_overrides; Gemini and the auth provider
       are mocked.
"""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from quickthoughts.auth import AuthenticatedUser, SupabaseAuthClient, get_current_user
from quickthoughts.config import settings
from quickthoughts.database import get_db_session
from quickthoughts.exceptions import CircuitBreakerOpenError, NotFoundError, RequestFailedError
from quickthoughts.schemas.memo import MemoCreated, TranscribeResponse

TRANSCRIBE_MODULE = "quickthoughts.services.transcription_service"


def model_reply(*thoughts, transcription="Buy milk and call Ana"):
    return json.dumps({"transcription": transcription, "thoughts": list(thoughts)})


class TestTranscribeRoute:
    @pytest.mark.asyncio
    async def test_success(self, test_client, sample_wav_bytes):
        raw = model_reply(
            {"text": "Buy milk", "label": "Groceries", "folder": "Errands"},
            {"text": "Call Ana", "label": "Call Ana", "folder": "Friends"},
        )
        with patch(f"{TRANSCRIBE_MODULE}.memo_service.folder_names", AsyncMock(return_value=["Errands"])), \
             patch(f"{TRANSCRIBE_MODULE}.gemini_service.generate", AsyncMock(return_value=raw)):
            response = await test_client.post(
                "/api/transcribe",
                files={"audio": ("clip.wav", sample_wav_bytes, "audio/wav")},
            )

        assert response.status_code == 200
        body = response.json()
        assert body["transcription"] == "Buy milk and call Ana"
        assert body["thoughts"] == [
            {"text": "Buy milk", "folder": "Errands", "label": "Groceries"},
            {"text": "Call Ana", "folder": "Unsorted", "label": "Call Ana"},
        ]
        assert body["label"] == "Groceries"
        assert body["category"] == "Errands"
        assert response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_missing_audio_is_400(self, test_client):
        response = await test_client.post("/api/transcribe", data={"other": "x"})
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_unsupported_type_is_400(self, test_client):
        response = await test_client.post(
            "/api/transcribe",
            files={"audio": ("notes.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 400
        assert "not supported" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_ai_failure_is_500(self, test_client, sample_wav_bytes):
        with patch(f"{TRANSCRIBE_MODULE}.memo_service.folder_names", AsyncMock(return_value=[])), \
             patch(f"{TRANSCRIBE_MODULE}.gemini_service.generate", AsyncMock(side_effect=RequestFailedError())):
            response = await test_client.post(
                "/api/transcribe",
                files={"audio": ("clip.wav", sample_wav_bytes, "audio/wav")},
            )
        assert response.status_code == 500
        assert response.json()["error"] == "request_failed"

    @pytest.mark.asyncio
    async def test_open_circuit_is_503(self, test_client, sample_wav_bytes):
        with patch(f"{TRANSCRIBE_MODULE}.memo_service.folder_names", AsyncMock(return_value=[])), \
             patch(
                 f"{TRANSCRIBE_MODULE}.gemini_service.generate",
                 AsyncMock(side_effect=CircuitBreakerOpenError(recovery_time=42)),
             ):
            response = await test_client.post(
                "/api/transcribe",
                files={"audio": ("clip.wav", sample_wav_bytes, "audio/wav")},
            )
        assert response.status_code == 503
        assert response.headers["Retry-After"] == "42"

    @pytest.mark.asyncio
    async def test_missing_gemini_key_is_configuration_error(self, test_client, sample_wav_bytes, monkeypatch):
        monkeypatch.setattr(settings, "gemini_api_key", "")
        response = await test_client.post(
            "/api/transcribe",
            files={"audio": ("clip.wav", sample_wav_bytes, "audio/wav")},
        )
        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "configuration_error"
        assert body["details"]["missing"] == ["GEMINI_API_KEY"]


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_no_token_is_unauthorized(self, anon_client):
        response = await anon_client.get("/api/folders")
        assert response.status_code == 400
        assert response.json()["error"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_rejected_token_is_unauthorized(self, anon_client):
        rejected = httpx.Response(401, json={"msg": "invalid JWT"})
        # The test client goes through request(), so only the provider call is patched
        with patch.object(httpx.AsyncClient, "get", AsyncMock(return_value=rejected)):
            response = await anon_client.request(
                "GET", "/api/folders", headers={"Authorization": "Bearer expired"}
            )
        assert response.status_code == 400
        assert response.json()["error"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_cookie_token_accepted(self, anon_client, mock_db_session):
        user = AuthenticatedUser(id=uuid4())
        result = MagicMock()
        result.scalars.return_value.all.return_value = []
        mock_db_session.execute.return_value = result

        with patch("quickthoughts.auth.supabase_auth.get_user", AsyncMock(return_value=user)) as get_user:
            response = await anon_client.get(
                "/api/folders", headers={"Cookie": "sb-access-token=cookie-token"}
            )

        assert response.status_code == 200
        get_user.assert_awaited_once_with("cookie-token")

    @pytest.mark.asyncio
    async def test_provider_user_lookup(self):
        user_id = uuid4()
        ok = httpx.Response(200, json={"id": str(user_id), "email": "a@b.co"})
        client = SupabaseAuthClient(base_url="https://proj.supabase.co/", api_key="anon")

        with patch.object(httpx.AsyncClient, "get", AsyncMock(return_value=ok)) as get:
            user = await client.get_user("tok")

        assert user.id == user_id
        url = get.await_args.args[0]
        headers = get.await_args.kwargs["headers"]
        assert url == "https://proj.supabase.co/auth/v1/user"
        assert headers == {"apikey": "anon", "Authorization": "Bearer tok"}

    @pytest.mark.asyncio
    async def test_provider_unreachable(self):
        client = SupabaseAuthClient(base_url="https://proj.supabase.co", api_key="anon")
        with patch.object(httpx.AsyncClient, "get", AsyncMock(side_effect=httpx.ConnectError("boom"))):
            with pytest.raises(RequestFailedError):
                await client.get_user("tok")


class TestMemoRoutes:
    @pytest.mark.asyncio
    async def test_create(self, test_client):
        created = MemoCreated(id=uuid4(), created_at=datetime.now(timezone.utc))
        with patch("quickthoughts.routes.memos.memo_service.create_memo", AsyncMock(return_value=created)):
            response = await test_client.post(
                "/api/memos",
                json={"title": "Groceries", "transcription": "Buy milk", "folder_id": None},
            )
        assert response.status_code == 201
        assert response.json()["id"] == str(created.id)

    @pytest.mark.asyncio
    async def test_create_rejects_empty_title(self, test_client):
        response = await test_client.post("/api/memos", json={"title": "", "transcription": "x"})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["details"]["field"] == "title"

    @pytest.mark.asyncio
    async def test_delete(self, test_client):
        with patch("quickthoughts.routes.memos.memo_service.delete_memo", AsyncMock(return_value=None)):
            response = await test_client.delete(f"/api/memos/{uuid4()}")
        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_delete_unknown_is_404(self, test_client):
        missing = NotFoundError(resource="memo")
        with patch("quickthoughts.routes.memos.memo_service.delete_memo", AsyncMock(side_effect=missing)):
            response = await test_client.delete(f"/api/memos/{uuid4()}")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestOnboardingRoute:
    @pytest.mark.asyncio
    async def test_short_username_is_400(self, test_client):
        response = await test_client.post(
            "/api/onboarding",
            json={"username": "ab", "folders": ["Work"]},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["message"] == "Username must be at least 3 characters."
        assert body["details"]["field"] == "username"

    @pytest.mark.asyncio
    async def test_no_folders_is_400(self, test_client):
        response = await test_client.post(
            "/api/onboarding",
            json={"username": "sam_1", "folders": ["  "]},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Select at least one folder."


class TestRateLimit:
    @pytest.mark.asyncio
    async def test_transcribe_limited_per_token(self, user, mock_db_session, sample_wav_bytes, monkeypatch):
        from quickthoughts.main import create_app

        monkeypatch.setattr(settings, "rate_limit_requests", 2)
        app = create_app()

        async def override_db():
            yield mock_db_session

        app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_db_session] = override_db
        folders_result = MagicMock()
        folders_result.scalars.return_value.all.return_value = []
        mock_db_session.execute.return_value = folders_result
        empty = TranscribeResponse(transcription="", thoughts=[])

        with patch(
            "quickthoughts.routes.transcribe.transcription_service.transcribe",
            AsyncMock(return_value=empty),
        ):
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                files = {"audio": ("clip.wav", sample_wav_bytes, "audio/wav")}
                headers = {"Authorization": "Bearer token-a"}
                statuses = [
                    (await client.post("/api/transcribe", files=files, headers=headers)).status_code
                    for _ in range(3)
                ]
                other_user = await client.post(
                    "/api/transcribe", files=files, headers={"Authorization": "Bearer token-b"}
                )
                folders_call = await client.get("/api/folders", headers=headers)

        assert statuses == [200, 200, 429]
        assert other_user.status_code == 200
        assert folders_call.status_code == 200


class TestHealth:
    @pytest.mark.asyncio
    async def test_reports_gemini_status(self, test_client):
        with patch("quickthoughts.routes.health.gemini_service.health_check", AsyncMock(return_value=True)):
            response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["gemini"] == "available"
        assert body["database"] in {"connected", "disconnected"}

    @pytest.mark.asyncio
    async def test_unconfigured_gemini(self, test_client, monkeypatch):
        monkeypatch.setattr(settings, "gemini_api_key", "")
        response = await test_client.get("/health")
        assert response.json()["gemini"] == "unconfigured"
