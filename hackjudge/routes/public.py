"""
hackjudge/routes/public.py
Public leaderboard: published entries only.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hackjudge.config.settings import settings
from hackjudge.database import get_db
from hackjudge.services import scoring_service

router = APIRouter(tags=["Public"])


@router.get("/leaderboard")
async def get_public_leaderboard(
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1, le=200),
    category: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    limit = limit or settings.LEADERBOARD_PAGE_SIZE
    result = await scoring_service.get_leaderboard(
        db, page=page, limit=limit, category=category, published_only=True
    )
    return {"success": True, "page": page, "limit": limit, **result}
