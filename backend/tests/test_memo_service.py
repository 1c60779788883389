"""
Quick Thoughts Backend: Memo Service Unit Tests
=================================================

What:  Folder, onboarding and memo operations against a mocked AsyncSession.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from quickthoughts.exceptions import DatabaseError, NotFoundError, ValidationError
from quickthoughts.models.memo import Folder, Memo
from quickthoughts.schemas.memo import MemoCreate, OnboardingRequest
from quickthoughts.services.memo_service import MemoService


def scalars_result(items):
    result = MagicMock()
    result.scalars.return_value.all.return_value = items
    return result


def scalar_result(item):
    result = MagicMock()
    result.scalar_one_or_none.return_value = item
    return result


def make_folder(user_id, name):
    return Folder(id=uuid4(), user_id=user_id, name=name, created_at=datetime.now(timezone.utc))


@pytest.fixture
def service():
    return MemoService(fallback_folder="Unsorted")


class TestFolders:
    @pytest.mark.asyncio
    async def test_folder_names(self, service, mock_db_session, user):
        folders = [make_folder(user.id, "Unsorted"), make_folder(user.id, "Work")]
        mock_db_session.execute.return_value = scalars_result(folders)

        assert await service.folder_names(mock_db_session, user.id) == ["Unsorted", "Work"]

    @pytest.mark.asyncio
    async def test_database_failure_wrapped(self, service, mock_db_session, user):
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

        with pytest.raises(DatabaseError):
            await service.list_folders(mock_db_session, user.id)

    @pytest.mark.asyncio
    async def test_fallback_folder_created_when_missing(self, service, mock_db_session, user):
        mock_db_session.execute.return_value = scalar_result(None)

        folder = await service.ensure_fallback_folder(mock_db_session, user.id)

        assert folder.name == "Unsorted"
        assert folder.user_id == user.id
        mock_db_session.add.assert_called_once_with(folder)
        mock_db_session.flush.assert_awaited_once()


class TestOnboarding:
    @pytest.mark.asyncio
    async def test_seeds_folders_and_returns_them(self, service, mock_db_session, user):
        folders = [make_folder(user.id, n) for n in ("Unsorted", "Work", "Ideas")]
        mock_db_session.execute.side_effect = [MagicMock(), MagicMock(), scalars_result(folders)]

        response = await service.complete_onboarding(
            mock_db_session,
            user.id,
            OnboardingRequest(username="sam_k", folders=["Work", "Ideas"]),
        )

        assert response.onboarding_complete is True
        assert response.username == "sam_k"
        assert [f.name for f in response.folders] == ["Unsorted", "Work", "Ideas"]
        assert mock_db_session.execute.await_count == 3

    @pytest.mark.asyncio
    async def test_taken_username(self, service, mock_db_session, user):
        mock_db_session.execute.side_effect = [
            MagicMock(),
            IntegrityError("INSERT", {}, Exception("duplicate key")),
        ]

        with pytest.raises(ValidationError) as exc_info:
            await service.complete_onboarding(
                mock_db_session,
                user.id,
                OnboardingRequest(username="taken", folders=["Work"]),
            )
        assert exc_info.value.field == "username"

    def test_request_validation(self):
        with pytest.raises(ValueError):
            OnboardingRequest(username="ab", folders=["Work"])
        with pytest.raises(ValueError):
            OnboardingRequest(username="has space", folders=["Work"])
        with pytest.raises(ValueError):
            OnboardingRequest(username="valid_name", folders=["  ", ""])

        request = OnboardingRequest(username=" sam ", folders=[" Work", "Work", "Ideas"])
        assert request.username == "sam"
        assert request.folders == ["Work", "Ideas"]


class TestMemos:
    @pytest.mark.asyncio
    async def test_create_in_owned_folder(self, service, mock_db_session, user):
        work = make_folder(user.id, "Work")
        mock_db_session.execute.return_value = scalar_result(work)

        created = await service.create_memo(
            mock_db_session,
            user.id,
            MemoCreate(title="Email Sam", transcription="Email Sam about the deck", folder_id=work.id),
        )

        stored = mock_db_session.add.call_args.args[0]
        assert isinstance(stored, Memo)
        assert stored.folder_id == work.id
        assert stored.user_id == user.id
        assert created.id == stored.id
        assert created.created_at == stored.created_at

    @pytest.mark.asyncio
    async def test_unknown_folder_uses_fallback(self, service, mock_db_session, user):
        unsorted = make_folder(user.id, "Unsorted")
        mock_db_session.execute.side_effect = [scalar_result(None), scalar_result(unsorted)]

        await service.create_memo(
            mock_db_session,
            user.id,
            MemoCreate(title="Stray", transcription="x", folder_id=uuid4()),
        )

        stored = mock_db_session.add.call_args.args[0]
        assert stored.folder_id == unsorted.id

    @pytest.mark.asyncio
    async def test_list_memos_newest_first_with_folder_names(self, service, mock_db_session, user):
        now = datetime.now(timezone.utc)
        newer = Memo(id=uuid4(), user_id=user.id, title="B", transcription="b", status="ready", created_at=now)
        older = Memo(id=uuid4(), user_id=user.id, title="A", transcription="a", status="ready", created_at=now)
        result = MagicMock()
        result.all.return_value = [(newer, "Work"), (older, None)]
        mock_db_session.execute.return_value = result

        memos = await service.list_memos(mock_db_session, user.id)

        assert [m.title for m in memos] == ["B", "A"]
        assert memos[0].folder == "Work"
        assert memos[1].folder is None

    @pytest.mark.asyncio
    async def test_delete_missing_memo(self, service, mock_db_session, user):
        result = MagicMock()
        result.rowcount = 0
        mock_db_session.execute.return_value = result

        with pytest.raises(NotFoundError):
            await service.delete_memo(mock_db_session, user.id, uuid4())

    @pytest.mark.asyncio
    async def test_delete_existing_memo(self, service, mock_db_session, user):
        result = MagicMock()
        result.rowcount = 1
        mock_db_session.execute.return_value = result

        await service.delete_memo(mock_db_session, user.id, uuid4())
        mock_db_session.execute.assert_awaited_once()
