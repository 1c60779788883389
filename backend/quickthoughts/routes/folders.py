"""
Quick Thoughts Backend: Folder & Onboarding Routes
====================================================

    GET  /api/folders      the caller's folders (the classification vocabulary)
    POST /api/onboarding   save username, create chosen folders + "Unsorted"
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from quickthoughts.auth import AuthenticatedUser, get_current_user
from quickthoughts.database import get_db_session
from quickthoughts.schemas.memo import (
    ErrorResponse,
    FolderResponse,
    OnboardingRequest,
    OnboardingResponse,
)
from quickthoughts.services.memo_service import memo_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Folders"])


@router.get(
    "/folders",
    response_model=List[FolderResponse],
    responses={400: {"model": ErrorResponse}},
    summary="List the caller's folders",
)
async def list_folders(
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[FolderResponse]:
    folders = await memo_service.list_folders(db, user.id)
    return [FolderResponse.model_validate(f) for f in folders]


@router.post(
    "/onboarding",
    response_model=OnboardingResponse,
    responses={400: {"description": "Invalid or taken username", "model": ErrorResponse}},
    summary="Finish onboarding",
)
async def complete_onboarding(
    body: OnboardingRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> OnboardingResponse:
    return await memo_service.complete_onboarding(db, user.id, body)
