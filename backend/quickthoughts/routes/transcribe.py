"""
Quick Thoughts Backend: Transcribe Route Handler
==================================================

What:  POST /api/transcribe, the server half of one capture.
How:   Receives the recorded clip as multipart field `audio`, delegates to
       TranscriptionService, returns the transcription and classified thoughts.
Who:   Called by the capture client once per finished recording.

Request Flow:
    1. Credentials check (Gemini + auth provider configured)
    2. Caller verified from the access token
    3. Clip read into memory (bounded by the size check in the service)
    4. Service: validate → load folders → prompt → Gemini → parse
    5. 200 with TranscribeResponse

Nothing is stored here; the client persists the thoughts it receives.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from quickthoughts.auth import AuthenticatedUser, get_current_user, require_ai_config
from quickthoughts.database import get_db_session
from quickthoughts.exceptions import ValidationError
from quickthoughts.schemas.memo import ErrorResponse, TranscribeResponse
from quickthoughts.services.transcription_service import transcription_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Transcribe"])


@router.post(
    "/transcribe",
    response_model=TranscribeResponse,
    responses={
        400: {"description": "Missing/invalid audio or unauthorized", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        500: {"description": "AI call failed or server misconfigured", "model": ErrorResponse},
        503: {"description": "AI temporarily disabled (circuit open)", "model": ErrorResponse},
    },
    summary="Transcribe and classify a voice clip",
)
async def transcribe_clip(
    audio: Optional[UploadFile] = File(None, description="Recorded audio clip"),
    _config: None = Depends(require_ai_config),
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> TranscribeResponse:
    if audio is None:
        raise ValidationError(message="No audio file provided.", field="audio")

    try:
        content = await audio.read()
        logger.info(
            "Received clip: filename=%s, type=%s, size=%d bytes",
            audio.filename or "unknown",
            audio.content_type,
            len(content),
        )
        return await transcription_service.transcribe(
            db=db,
            user_id=user.id,
            content=content,
            content_type=audio.content_type,
            filename=audio.filename,
        )
    finally:
        await audio.close()
