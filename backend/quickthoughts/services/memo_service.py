"""
Quick Thoughts Backend: Memo Service (Backend Store Operations)
=================================================================

What:  CRUD operations on folders, memos and profiles, always scoped by the
       authenticated user's id.
Who:   The folders/memos/onboarding routes, and TranscriptionService (which
       reads folder names to build the classification constraint).

Operations:
    list_folders / folder_names    read folders by user
    complete_onboarding            upsert profile, seed folders (incl. fallback)
    list_memos                     memos by user, newest first, with folder name
    create_memo                    insert one memo, resolving folder_id
    delete_memo                    delete by user + memo id

Error Handling:
    Our own exceptions propagate unchanged. Anything else is logged and
    wrapped in DatabaseError so SQL details never reach the client.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, desc, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from quickthoughts.config import settings
from quickthoughts.exceptions import (
    DatabaseError,
    NotFoundError,
    QuickThoughtsError,
    ValidationError,
)
from quickthoughts.models.memo import Folder, Memo, Profile
from quickthoughts.schemas.memo import (
    FolderResponse,
    MemoCreate,
    MemoCreated,
    MemoResponse,
    OnboardingRequest,
    OnboardingResponse,
)

logger = logging.getLogger(__name__)


class MemoService:
    """Stateless; receives the request's session on every call."""

    def __init__(self, fallback_folder: Optional[str] = None):
        self.fallback_folder = fallback_folder or settings.fallback_folder

    # ── Folders ───────────────────────────────────────────────────────────

    async def list_folders(self, db: AsyncSession, user_id: uuid.UUID) -> List[Folder]:
        try:
            result = await db.execute(
                select(Folder)
                .where(Folder.user_id == user_id)
                .order_by(Folder.created_at, Folder.name)
            )
            return list(result.scalars().all())
        except Exception as e:
            logger.error("Database error listing folders for %s: %s", user_id, str(e))
            raise DatabaseError(
                message="Could not load your folders. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def folder_names(self, db: AsyncSession, user_id: uuid.UUID) -> List[str]:
        return [folder.name for folder in await self.list_folders(db, user_id)]

    async def ensure_fallback_folder(self, db: AsyncSession, user_id: uuid.UUID) -> Folder:
        """Return the user's fallback folder, creating it if onboarding never ran."""
        result = await db.execute(
            select(Folder).where(
                Folder.user_id == user_id,
                Folder.name == self.fallback_folder,
            )
        )
        folder = result.scalar_one_or_none()
        if folder is None:
            folder = Folder(
                id=uuid.uuid4(),
                user_id=user_id,
                name=self.fallback_folder,
                created_at=datetime.now(timezone.utc),
            )
            db.add(folder)
            await db.flush()
            logger.info("Created missing '%s' folder for user %s", self.fallback_folder, user_id)
        return folder

    # ── Onboarding ────────────────────────────────────────────────────────

    async def complete_onboarding(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        request: OnboardingRequest,
    ) -> OnboardingResponse:
        """
        Save the username, create the chosen folders plus the fallback folder,
        and mark onboarding complete.

        Folders that already exist are left alone, so repeating onboarding
        after a refresh is harmless.
        """
        names = [self.fallback_folder] + [n for n in request.folders if n != self.fallback_folder]
        try:
            await db.execute(
                pg_insert(Folder)
                .values([{"id": uuid.uuid4(), "user_id": user_id, "name": name} for name in names])
                .on_conflict_do_nothing(index_elements=["user_id", "name"])
            )
            await db.execute(
                pg_insert(Profile)
                .values(user_id=user_id, username=request.username, onboarding_complete=True)
                .on_conflict_do_update(
                    index_elements=["user_id"],
                    set_={
                        "username": request.username,
                        "onboarding_complete": True,
                        "updated_at": datetime.now(timezone.utc),
                    },
                )
            )
            folders = await self.list_folders(db, user_id)
        except IntegrityError:
            raise ValidationError(
                message="That username is already taken.",
                field="username",
            )
        except QuickThoughtsError:
            raise
        except Exception as e:
            logger.error("Onboarding failed for %s: %s", user_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not finish setup. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Onboarding complete for %s with %d folders", user_id, len(folders))
        return OnboardingResponse(
            username=request.username,
            onboarding_complete=True,
            folders=[FolderResponse.model_validate(f) for f in folders],
        )

    # ── Memos ─────────────────────────────────────────────────────────────

    async def list_memos(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        limit: int = 200,
    ) -> List[MemoResponse]:
        """Newest first. Folder name is joined in; unfiled memos report None."""
        try:
            result = await db.execute(
                select(Memo, Folder.name)
                .outerjoin(Folder, Memo.folder_id == Folder.id)
                .where(Memo.user_id == user_id)
                .order_by(desc(Memo.created_at))
                .limit(limit)
            )
            rows = result.all()
        except Exception as e:
            logger.error("Database error listing memos for %s: %s", user_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load your memos. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return [
            MemoResponse(
                id=memo.id,
                title=memo.title,
                transcription=memo.transcription,
                status=memo.status,
                folder_id=memo.folder_id,
                folder=folder_name,
                created_at=memo.created_at,
            )
            for memo, folder_name in rows
        ]

    async def create_memo(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        payload: MemoCreate,
    ) -> MemoCreated:
        """
        Insert one memo for the user.

        Folder resolution: a folder_id that does not belong to the user (or no
        folder_id at all) is replaced by the user's fallback folder.
        """
        try:
            folder: Optional[Folder] = None
            if payload.folder_id is not None:
                result = await db.execute(
                    select(Folder).where(
                        Folder.id == payload.folder_id,
                        Folder.user_id == user_id,
                    )
                )
                folder = result.scalar_one_or_none()
                if folder is None:
                    logger.info("Folder %s not found for user; using fallback", payload.folder_id)
            if folder is None:
                folder = await self.ensure_fallback_folder(db, user_id)

            memo = Memo(
                id=uuid.uuid4(),
                user_id=user_id,
                title=payload.title,
                transcription=payload.transcription,
                folder_id=folder.id,
                status=payload.status,
                created_at=datetime.now(timezone.utc),
            )
            db.add(memo)
            await db.flush()
        except QuickThoughtsError:
            raise
        except Exception as e:
            logger.error("Failed to insert memo for %s: %s", user_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save your memo. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Memo %s stored in folder '%s'", memo.id, folder.name)
        return MemoCreated(id=memo.id, created_at=memo.created_at)

    async def delete_memo(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        memo_id: uuid.UUID,
    ) -> None:
        try:
            result = await db.execute(
                delete(Memo).where(Memo.id == memo_id, Memo.user_id == user_id)
            )
        except Exception as e:
            logger.error("Failed to delete memo %s: %s", memo_id, str(e))
            raise DatabaseError(
                message="Could not delete the memo. Please try again.",
                context={"memo_id": str(memo_id)},
            )

        if not result.rowcount:
            raise NotFoundError(resource="memo", resource_id=str(memo_id))
        logger.info("Memo %s deleted", memo_id)


memo_service = MemoService()
