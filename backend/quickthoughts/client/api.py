"""
Quick Thoughts Client: HTTP API Client
========================================

What:  Async httpx client for the Quick Thoughts server routes.
Who:   NoteStore (folders, memo persistence) and CaptureController
       (transcription).

Error mapping (server body `{"error", "message", ...}`):
    error == "unauthorized" or HTTP 401/403   → UnauthorizedError
    HTTP 404                                  → NotFoundError
    HTTP 400 / 422 (other)                    → ValidationError
    any other non-2xx, timeouts, transport    → RequestFailedError

No request is retried.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from quickthoughts.config import ClientSettings
from quickthoughts.domain import AudioClip
from quickthoughts.exceptions import (
    NotFoundError,
    RequestFailedError,
    UnauthorizedError,
    ValidationError,
)
from quickthoughts.schemas.memo import (
    MemoCreated,
    MemoResponse,
    OnboardingResponse,
    TranscribeResponse,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FolderRecord:
    id: str
    name: str


class QuickThoughtsAPI:
    def __init__(
        self,
        base_url: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        client_settings: Optional[ClientSettings] = None,
    ):
        cfg = client_settings or ClientSettings()
        self.base_url = (base_url or cfg.api_base_url).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else cfg.request_timeout,
            transport=transport,
        )
        self.access_token = access_token if access_token is not None else cfg.access_token

    async def __aenter__(self) -> "QuickThoughtsAPI":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def set_access_token(self, token: Optional[str]) -> None:
        self.access_token = token or ""

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        token = self.access_token if access_token is None else access_token
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        access_token: Optional[str] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """`access_token` overrides the client token for this one call."""
        try:
            response = await self._client.request(
                method, path, headers=self._headers(access_token), **kwargs
            )
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out", method, path)
            raise RequestFailedError(
                message="The request timed out. Please try again.",
                context={"error_type": type(e).__name__},
            )
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, str(e))
            raise RequestFailedError(
                message="Could not reach the Quick Thoughts server.",
                context={"error_type": type(e).__name__},
            )

        if response.status_code >= 400:
            self._raise_for_error(response)
        return response

    @staticmethod
    def _raise_for_error(response: httpx.Response) -> None:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        status = response.status_code
        error = body.get("error") or ""
        message = body.get("message") or f"Request failed with HTTP {status}"
        context = {"status_code": status, "request_id": body.get("request_id")}

        if error == "unauthorized" or status in (401, 403):
            raise UnauthorizedError(message=message, context=context)
        if status == 404:
            raise NotFoundError(context=context)
        if status in (400, 422):
            raise ValidationError(message=message, context=context)

        retry_after = response.headers.get("Retry-After")
        raise RequestFailedError(
            message=message,
            status_code=status,
            retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            context=context,
        )

    # ── Transcription ─────────────────────────────────────────────────────

    async def transcribe(self, clip: AudioClip) -> TranscribeResponse:
        files = {"audio": (clip.filename, clip.data, clip.mime_type)}
        response = await self._request("POST", "/api/transcribe", files=files)
        return TranscribeResponse.model_validate(response.json())

    # ── Folders & onboarding ──────────────────────────────────────────────

    async def list_folders(self) -> List[FolderRecord]:
        response = await self._request("GET", "/api/folders")
        return [FolderRecord(id=str(f["id"]), name=f["name"]) for f in response.json()]

    async def complete_onboarding(self, username: str, folders: List[str]) -> OnboardingResponse:
        response = await self._request(
            "POST",
            "/api/onboarding",
            json={"username": username, "folders": folders},
        )
        return OnboardingResponse.model_validate(response.json())

    # ── Memos ─────────────────────────────────────────────────────────────

    async def list_memos(self) -> List[MemoResponse]:
        response = await self._request("GET", "/api/memos")
        return [MemoResponse.model_validate(item) for item in response.json()]

    async def create_memo(
        self,
        title: str,
        transcription: Optional[str],
        folder_id: Optional[str],
        status: str = "ready",
        access_token: Optional[str] = None,
    ) -> MemoCreated:
        payload = {
            "title": title,
            "transcription": transcription,
            "folder_id": folder_id,
            "status": status,
        }
        response = await self._request("POST", "/api/memos", access_token=access_token, json=payload)
        return MemoCreated.model_validate(response.json())

    async def delete_memo(self, memo_id: str, access_token: Optional[str] = None) -> None:
        await self._request("DELETE", f"/api/memos/{memo_id}", access_token=access_token)
