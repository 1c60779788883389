"""
Quick Thoughts Client: Note Store Reconciler
==============================================

What:  Single owner of the visible memo list and the folder cache for the
       signed-in user. Every change goes through the methods below.

Two-phase insert:
    1. insert_drafts() puts the batch at the head of the list immediately
       (sync = optimistic)
    2. one persistence task per memo calls POST /api/memos; the result is
       applied with confirm() or fail()

Tasks finish in any order; the list order is fixed at insert time.

Generations:
    switch_identity() bumps a generation counter. Folder/memo loads and
    persistence tasks remember the generation they started in and drop
    their result if it has moved on, so one user's data never shows up
    under another. Each save and delete also carries the access token and
    folder id taken when it was queued, so a memo captured by one user is
    never written with the next user's credentials.

Deletes are optimistic too: the memo disappears at once and a failed
backend delete is only logged.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Dict, List, Optional, Sequence, Set

from quickthoughts.client.api import FolderRecord, QuickThoughtsAPI
from quickthoughts.client.materializer import MemoDraft, format_date_label
from quickthoughts.domain import DEFAULT_FALLBACK_FOLDER
from quickthoughts.exceptions import NotFoundError, QuickThoughtsError
from quickthoughts.schemas.memo import MemoCreated, MemoResponse

logger = logging.getLogger(__name__)


class SyncState:
    OPTIMISTIC = "optimistic"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class Memo:
    id: str
    title: str
    status: str
    date: str
    folder: str
    transcription: Optional[str]
    created_at: datetime
    sync: str = SyncState.OPTIMISTIC
    error: Optional[str] = None

    @classmethod
    def from_draft(cls, draft: MemoDraft) -> "Memo":
        return cls(
            id=draft.id,
            title=draft.title,
            status=draft.status,
            date=draft.date,
            folder=draft.folder,
            transcription=draft.transcription,
            created_at=draft.created_at,
        )

    @classmethod
    def from_response(cls, record: MemoResponse, fallback_folder: str) -> "Memo":
        return cls(
            id=str(record.id),
            title=record.title,
            status=record.status,
            date=format_date_label(record.created_at),
            folder=record.folder or fallback_folder,
            transcription=record.transcription,
            created_at=record.created_at,
            sync=SyncState.CONFIRMED,
        )


class NoteStore:
    def __init__(self, api: QuickThoughtsAPI, fallback_folder: str = DEFAULT_FALLBACK_FOLDER):
        self.api = api
        self.fallback_folder = fallback_folder

        self._memos: List[Memo] = []
        self._folders: List[FolderRecord] = []
        self._folder_ids: Dict[str, str] = {}
        self._user_id: Optional[str] = None
        self._generation = 0
        self._tasks: Set[asyncio.Task] = set()
        # Temp ids removed while their insert was still in flight
        self._deleted_in_flight: Set[str] = set()

    # ── Read access ───────────────────────────────────────────────────────

    @property
    def memos(self) -> List[Memo]:
        return list(self._memos)

    @property
    def folders(self) -> List[FolderRecord]:
        return list(self._folders)

    @property
    def folder_names(self) -> List[str]:
        return [f.name for f in self._folders]

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def generation(self) -> int:
        return self._generation

    def find(self, memo_id: str) -> Optional[Memo]:
        for memo in self._memos:
            if memo.id == memo_id:
                return memo
        return None

    # ── Folders ───────────────────────────────────────────────────────────

    def set_folders(self, folders: Sequence[FolderRecord]) -> None:
        self._folders = list(folders)
        self._folder_ids = {f.name: f.id for f in self._folders}

    def resolve_folder_id(self, name: str) -> Optional[str]:
        """Exact-name lookup; unknown names resolve to the fallback folder."""
        if name in self._folder_ids:
            return self._folder_ids[name]
        return self._folder_ids.get(self.fallback_folder)

    # ── Insert / reconcile ────────────────────────────────────────────────

    def insert_drafts(self, drafts: Sequence[MemoDraft]) -> List[Memo]:
        memos = [Memo.from_draft(d) for d in drafts]
        self._memos[0:0] = memos
        generation = self._generation
        # Saves keep the token of the identity that captured them
        token = self.api.access_token
        folder_ids = [self.resolve_folder_id(m.folder) for m in memos]
        for memo, folder_id in zip(memos, folder_ids):
            self._spawn(self._persist(memo, folder_id, generation, token))
        return memos

    async def _persist(
        self,
        memo: Memo,
        folder_id: Optional[str],
        generation: int,
        access_token: str,
    ) -> None:
        temp_id = memo.id
        try:
            record = await self.api.create_memo(
                title=memo.title,
                transcription=memo.transcription,
                folder_id=folder_id,
                status=memo.status,
                access_token=access_token,
            )
        except QuickThoughtsError as e:
            if generation == self._generation:
                self.fail(temp_id, e)
            else:
                self._deleted_in_flight.discard(temp_id)
            return

        if generation != self._generation and temp_id not in self._deleted_in_flight:
            logger.debug("Dropping confirmation for %s from an earlier session", temp_id)
            return
        self.confirm(temp_id, record, access_token=access_token)

    def confirm(
        self,
        temp_id: str,
        record: MemoCreated,
        access_token: Optional[str] = None,
    ) -> None:
        """Swap the temporary id for the server's id and timestamp."""
        server_id = str(record.id)
        if temp_id in self._deleted_in_flight:
            self._deleted_in_flight.discard(temp_id)
            logger.info("Memo %s was deleted before it was saved; deleting %s", temp_id, server_id)
            self._spawn(self._delete_remote(server_id, access_token))
            return

        memo = self.find(temp_id)
        if memo is None:
            return
        created_at = record.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        memo.id = server_id
        memo.created_at = created_at
        memo.date = format_date_label(created_at)
        memo.sync = SyncState.CONFIRMED
        memo.error = None

    def fail(self, temp_id: str, error: Exception) -> None:
        """Keep the memo visible, marked as not saved."""
        self._deleted_in_flight.discard(temp_id)
        memo = self.find(temp_id)
        logger.error("Could not save memo %s: %s", temp_id, error)
        if memo is None:
            return
        memo.sync = SyncState.FAILED
        memo.error = getattr(error, "message", str(error))

    # ── Delete ────────────────────────────────────────────────────────────

    def remove(self, memo_id: str) -> bool:
        """Remove from the visible list now; delete on the backend later."""
        memo = self.find(memo_id)
        if memo is None:
            return False
        self._memos.remove(memo)

        if memo.sync == SyncState.OPTIMISTIC:
            self._deleted_in_flight.add(memo.id)
        elif memo.sync == SyncState.CONFIRMED:
            self._spawn(self._delete_remote(memo.id, self.api.access_token))
        return True

    async def _delete_remote(self, memo_id: str, access_token: Optional[str] = None) -> None:
        try:
            await self.api.delete_memo(memo_id, access_token=access_token)
        except NotFoundError:
            logger.info("Memo %s was already gone on the server", memo_id)
        except QuickThoughtsError as e:
            logger.error("Failed to delete memo %s: %s", memo_id, e.message)

    # ── Identity ──────────────────────────────────────────────────────────

    async def switch_identity(
        self,
        user_id: Optional[str],
        access_token: Optional[str] = None,
    ) -> bool:
        """
        Clear everything and load the new user's folders and memos.

        Returns False when the identity did not change. `user_id=None`
        (signed out) leaves both caches empty.
        """
        if user_id == self._user_id:
            return False

        self._memos.clear()
        self.set_folders([])
        self._user_id = user_id
        self._generation += 1
        logger.info("Identity changed (generation %d)", self._generation)

        if access_token is not None:
            self.api.set_access_token(access_token)
        if user_id is not None:
            await self.refresh()
        return True

    async def refresh(self) -> None:
        """Reload folders, then memos, for the current identity."""
        generation = self._generation

        folders = await self.api.list_folders()
        if generation != self._generation:
            return
        self.set_folders(folders)

        records = await self.api.list_memos()
        if generation != self._generation:
            return
        loaded = [Memo.from_response(r, self.fallback_folder) for r in records]
        loaded_ids = {m.id for m in loaded}
        # Memos captured while the load was in flight stay on top
        local = [m for m in self._memos if m.id not in loaded_ids]
        self._memos = local + loaded

    # ── Task tracking ─────────────────────────────────────────────────────

    def _spawn(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every outstanding persistence task, including ones they spawn."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
