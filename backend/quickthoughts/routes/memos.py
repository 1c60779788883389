"""
Quick Thoughts Backend: Memo Routes
=====================================

What:  Persistence endpoints the capture client writes materialized thoughts to.

    GET    /api/memos        newest first, with folder names
    POST   /api/memos        insert one memo → 201 {id, created_at}
    DELETE /api/memos/{id}   204, or 404 when the memo is not the caller's

Every query is scoped by the verified caller's id.
"""

import logging
import uuid
from typing import List

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from quickthoughts.auth import AuthenticatedUser, get_current_user
from quickthoughts.database import get_db_session
from quickthoughts.schemas.memo import ErrorResponse, MemoCreate, MemoCreated, MemoResponse
from quickthoughts.services.memo_service import memo_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Memos"])


@router.get(
    "/memos",
    response_model=List[MemoResponse],
    summary="List memos, newest first",
)
async def list_memos(
    limit: int = Query(default=200, ge=1, le=1000),
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[MemoResponse]:
    return await memo_service.list_memos(db, user.id, limit=limit)


@router.post(
    "/memos",
    status_code=201,
    response_model=MemoCreated,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Store one memo",
)
async def create_memo(
    body: MemoCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MemoCreated:
    return await memo_service.create_memo(db, user.id, body)


@router.delete(
    "/memos/{memo_id}",
    status_code=204,
    responses={404: {"description": "Memo not found", "model": ErrorResponse}},
    summary="Delete a memo",
)
async def delete_memo(
    memo_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await memo_service.delete_memo(db, user.id, memo_id)
    return Response(status_code=204)
