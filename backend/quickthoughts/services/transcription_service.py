"""
Quick Thoughts Backend: Transcription Service (Pipeline Orchestrator)
=======================================================================

What:  Server half of the capture pipeline for one uploaded clip.
Who:   Called by POST /api/transcribe.

Flow:
    ┌──────────┐   ┌──────────────┐   ┌──────────────┐   ┌──────────┐   ┌──────────┐
    │ Validate │──▶│ Load folders │──▶│ Build request│──▶│  Gemini  │──▶│  Parse & │
    │  upload  │   │ (constraint) │   │  (prompt)    │   │  (1 call)│   │ validate │
    └──────────┘   └──────────────┘   └──────────────┘   └──────────┘   └──────────┘

Every step runs strictly after the previous one. Nothing is persisted here;
the client materializes the returned thoughts and saves them itself.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from quickthoughts.config import settings
from quickthoughts.domain import AudioClip, ClassificationConstraint, TranscriptionResult
from quickthoughts.exceptions import ValidationError
from quickthoughts.schemas.memo import ThoughtSchema, TranscribeResponse
from quickthoughts.services.gemini_service import gemini_service
from quickthoughts.services.memo_service import memo_service
from quickthoughts.services.prompt_builder import build_transcription_request
from quickthoughts.services.response_parser import classify_response

logger = logging.getLogger(__name__)


class TranscriptionService:
    """Stateless orchestrator; dependencies are module singletons."""

    def validate_upload(
        self,
        content: bytes,
        content_type: Optional[str],
        filename: Optional[str],
    ) -> AudioClip:
        """
        Check the uploaded audio and wrap it in an AudioClip.

        Raises:
            ValidationError: empty payload, oversize payload, non-audio MIME type.
        """
        if not content:
            raise ValidationError(message="Audio file is empty.", field="audio")

        if len(content) > settings.max_audio_size:
            max_mb = settings.max_audio_size / (1024 * 1024)
            raise ValidationError(
                message=f"Audio file exceeds the maximum of {max_mb:.0f}MB.",
                field="audio",
                context={"actual_size": len(content)},
            )

        clip = AudioClip(
            data=content,
            mime_type=content_type or "application/octet-stream",
            filename=filename or "recording.webm",
        )
        if clip.base_mime_type not in settings.allowed_audio_types_set:
            raise ValidationError(
                message=f"Audio type '{clip.base_mime_type}' is not supported.",
                field="audio",
                context={"allowed": sorted(settings.allowed_audio_types_set)},
            )
        return clip

    async def load_constraint(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> ClassificationConstraint:
        names = await memo_service.folder_names(db, user_id)
        return ClassificationConstraint.from_names(names, fallback=settings.fallback_folder)

    async def transcribe(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        content: bytes,
        content_type: Optional[str],
        filename: Optional[str] = None,
    ) -> TranscribeResponse:
        """
        Validate → constrain → build → call AI → parse.

        Raises:
            ValidationError: bad upload (400)
            RequestFailedError / CircuitBreakerOpenError: AI call failed
            DatabaseError: folder lookup failed
        """
        clip = self.validate_upload(content, content_type, filename)
        constraint = await self.load_constraint(db, user_id)

        request = build_transcription_request(clip, constraint, max_thoughts=settings.max_thoughts)
        raw = await gemini_service.generate(request)

        result = classify_response(raw, constraint, max_thoughts=settings.max_thoughts)
        logger.info(
            "Clip for %s produced %d thought(s)%s",
            user_id,
            len(result.thoughts),
            " (degraded)" if result.degraded else "",
        )
        return self.to_response(result, constraint)

    @staticmethod
    def to_response(
        result: TranscriptionResult,
        constraint: ClassificationConstraint,
    ) -> TranscribeResponse:
        primary = result.primary
        return TranscribeResponse(
            transcription=result.transcription,
            thoughts=[
                ThoughtSchema(text=t.text, folder=t.folder, label=t.label)
                for t in result.thoughts
            ],
            label=primary.label if primary else "",
            category=primary.folder if primary else constraint.fallback,
        )


transcription_service = TranscriptionService()
