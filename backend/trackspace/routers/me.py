"""
Current-user endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.core.database import get_db
from trackspace.core.dependencies import get_current_user
from trackspace.models.user import User
from trackspace.schemas.context import ContextResponse
from trackspace.services.context_service import ContextService

router = APIRouter()


@router.get(
    "/context",
    response_model=ContextResponse,
    summary="Get the caller's active context",
)
async def get_active_context(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ContextResponse:
    """
    The context requests run in when none is named: the last one switched
    to while still a member, otherwise the personal space.
    """
    resolved = await ContextService(db).resolve_context(current_user)
    return resolved.to_response()
