"""
Quick Thoughts Backend: ORM Models
====================================

What:  Tables owned by the hosted Postgres project: folders, memos, profiles.
Who:   MemoService for all reads/writes; Alembic for the schema.

Every row carries the owning user's id (the auth provider's user UUID).
Queries in MemoService always filter on it, mirroring the row-level
security policies the hosted project enforces.

    profiles (user_id PK) ─┐
                           │ user_id
    folders (id PK) ◀──────┤  unique(user_id, name)
         ▲ folder_id       │
    memos (id PK) ─────────┘  index(user_id, created_at DESC)
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from quickthoughts.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Folder(Base):
    """
    A user's folder. "Unsorted" is always present once onboarding has run.
    Folder names are unique per user and matched case-sensitively.
    """

    __tablename__ = "folders"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_folders_user_name"),
    )

    def __repr__(self) -> str:
        return f"<Folder(id={self.id}, name='{self.name}')>"


class Memo(Base):
    """
    One persisted thought (or whole transcription in fallback mode).

    Status values: ready | classifying | error. The client creates memos as
    'ready'; the column exists so in-progress clips can be stored later.
    """

    __tablename__ = "memos"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False, default="Voice Memo")
    transcription: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # SET NULL: deleting a folder leaves its memos, which then read as "Unsorted"
    folder_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("folders.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="ready",
        server_default=text("'ready'"),
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_memos_user_created_at", "user_id", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<Memo(id={self.id}, title='{self.title}', status='{self.status}')>"


class Profile(Base):
    """Per-user onboarding record: chosen username and completion flag."""

    __tablename__ = "profiles"

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    username: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, unique=True)
    onboarding_complete: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
