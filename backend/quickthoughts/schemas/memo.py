"""
Quick Thoughts Backend: Pydantic Request/Response Schemas
===========================================================

What:  The HTTP contract shared by the FastAPI routes and the capture client.
How:   FastAPI validates request bodies and serializes responses with these
       models; the client parses responses with the same models.

Response models are separate from the ORM models so the API contract
(e.g. folder *name* on a memo) can differ from the table layout.
"""

import re
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from quickthoughts.domain import MAX_LABEL_LENGTH

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


# ══════════════════════════════════════════════════════════════════════════
# Transcription
# ══════════════════════════════════════════════════════════════════════════


class ThoughtSchema(BaseModel):
    """One validated thought as returned by POST /api/transcribe."""
    text: str = Field(description="Thought text in the speaker's words")
    folder: str = Field(description="Folder name, always one of the user's folders")
    label: str = Field(default="", description="2-5 word label; may be empty")


class TranscribeResponse(BaseModel):
    """
    What:  Result of one clip.
    Why both `thoughts` and `label`/`category`: the singular fields mirror the
           first thought for clients written against the single-result API.
    """
    transcription: str = Field(description="Full transcription (may be empty)")
    thoughts: List[ThoughtSchema] = Field(default_factory=list, description="0-10 thoughts, model order")
    label: str = Field(default="", description="First thought's label")
    category: str = Field(default="Unsorted", description="First thought's folder")


# ══════════════════════════════════════════════════════════════════════════
# Folders & Onboarding
# ══════════════════════════════════════════════════════════════════════════


class FolderResponse(BaseModel):
    id: uuid.UUID
    name: str

    model_config = {"from_attributes": True}


class OnboardingRequest(BaseModel):
    """
    What:  Username and the folders picked during onboarding.
    Rules: username 3+ chars of letters, digits, underscore; at least one
           folder. "Unsorted" is added server-side whether chosen or not.
    """
    username: str = Field(description="Public username")
    folders: List[str] = Field(description="Folder names to create")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        clean = v.strip()
        if len(clean) < 3:
            raise ValueError("Username must be at least 3 characters.")
        if not USERNAME_PATTERN.match(clean):
            raise ValueError("Username can only contain letters, numbers, and underscores.")
        return clean

    @field_validator("folders")
    @classmethod
    def validate_folders(cls, v: List[str]) -> List[str]:
        cleaned = []
        for name in v:
            name = name.strip()
            if name and name not in cleaned:
                cleaned.append(name)
        if not cleaned:
            raise ValueError("Select at least one folder.")
        return cleaned


class OnboardingResponse(BaseModel):
    username: str
    onboarding_complete: bool
    folders: List[FolderResponse]


# ══════════════════════════════════════════════════════════════════════════
# Memos
# ══════════════════════════════════════════════════════════════════════════


class MemoCreate(BaseModel):
    """
    Body of POST /api/memos.

    folder_id is resolved by the client from the folder name; an unknown or
    missing id is stored under the user's fallback folder.
    """
    title: str = Field(min_length=1, max_length=MAX_LABEL_LENGTH)
    transcription: Optional[str] = Field(default=None)
    folder_id: Optional[uuid.UUID] = Field(default=None)
    status: str = Field(default="ready")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        valid = {"ready", "classifying", "error"}
        if v not in valid:
            raise ValueError(f"Invalid status '{v}'. Must be one of: {valid}")
        return v


class MemoCreated(BaseModel):
    """Authoritative identity of a newly inserted memo."""
    id: uuid.UUID
    created_at: datetime


class MemoResponse(BaseModel):
    id: uuid.UUID
    title: str
    transcription: Optional[str] = None
    status: str = "ready"
    folder_id: Optional[uuid.UUID] = None
    folder: Optional[str] = Field(default=None, description="Folder name, null when unfiled")
    created_at: datetime


# ══════════════════════════════════════════════════════════════════════════
# Errors & Health
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Error body for every failing route.

    `error` is a machine-readable code; `message` is safe to show to users.
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    gemini: str = Field(description="Gemini status: available, unavailable, circuit_open, unconfigured")
    uptime_seconds: float = Field(description="Seconds since service started")
