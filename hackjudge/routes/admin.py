"""
hackjudge/routes/admin.py
Admin Routes - Judges, Assignments, Scoring & Leaderboard

Routes for administrators to:
- Manage judge accounts
- Assign, reassign and auto-balance judge assignments
- Lock evaluations
- Aggregate scores, compute and publish the leaderboard
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from hackjudge.config.settings import settings
from hackjudge.database import get_db
from hackjudge.errors import ErrorResponse
from hackjudge.services import roster_service, scoring_service
from hackjudge.services.assignment_service import AssignmentStore
from hackjudge.services.load_balancer import LoadBalancer

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["Admin"])


# ================= SCHEMAS =================

class JudgeCreate(BaseModel):
    email: str = Field(..., max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    first_name: str = Field(..., min_length=1, max_length=100, alias="firstName")
    last_name: str = Field(..., min_length=1, max_length=100, alias="lastName")

    model_config = ConfigDict(populate_by_name=True)


class JudgeUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100, alias="firstName")
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100, alias="lastName")
    is_active: Optional[bool] = Field(default=None, alias="isActive")

    model_config = ConfigDict(populate_by_name=True)


class AssignmentPair(BaseModel):
    judge_id: int = Field(..., alias="judgeId")
    team_id: int = Field(..., alias="teamId")

    model_config = ConfigDict(populate_by_name=True)


class AssignRequest(BaseModel):
    assignments: List[AssignmentPair] = Field(..., min_length=1)


class ReassignRequest(BaseModel):
    team_id: int = Field(..., alias="teamId")
    old_judge_id: int = Field(..., alias="oldJudgeId")
    new_judge_id: int = Field(..., alias="newJudgeId")

    model_config = ConfigDict(populate_by_name=True)


class LockRequest(BaseModel):
    locked: bool


class PublishRequest(BaseModel):
    publish: bool


ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


# ================= JUDGE ACCOUNTS =================

@router.post("/judges", status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
async def create_judge(body: JudgeCreate, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    judge = await roster_service.create_judge(db, body.email, body.first_name, body.last_name)
    return {"success": True, "message": "Judge account created.", "data": judge}


@router.get("/judges")
async def list_judges(
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    limit = limit or settings.DEFAULT_PAGE_SIZE
    result = await roster_service.list_judges(db, page=page, limit=limit)
    return {"success": True, "page": page, "limit": limit, **result}


@router.patch("/judges/{judge_id}", responses=ERROR_RESPONSES)
async def update_judge(
    judge_id: int,
    body: JudgeUpdate,
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    judge = await roster_service.update_judge(
        db, judge_id,
        first_name=body.first_name,
        last_name=body.last_name,
        is_active=body.is_active,
    )
    return {"success": True, "message": "Judge account updated.", "data": judge}


@router.delete("/judges/{judge_id}", responses=ERROR_RESPONSES)
async def delete_judge(
    judge_id: int,
    mode: str = Query(default="soft", pattern="^(soft|hard)$"),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    result = await roster_service.delete_judge(db, judge_id, mode=mode)
    return {"success": True, **result}


# ================= ASSIGNMENTS =================

@router.get("/judge-assignments")
async def get_judge_assignments(db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    matrix = await AssignmentStore(db).list()
    return {"success": True, "data": matrix}


@router.post("/assignments/assign", status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
async def assign_teams(body: AssignRequest, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    created = await AssignmentStore(db).assign([(a.judge_id, a.team_id) for a in body.assignments])
    return {
        "success": True,
        "message": f"{len(created)} teams assigned successfully.",
        "data": created,
    }


@router.post("/assignments/reassign", responses=ERROR_RESPONSES)
async def reassign_team(body: ReassignRequest, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    result = await AssignmentStore(db).reassign(body.team_id, body.old_judge_id, body.new_judge_id)
    return {"success": True, "message": "Team reassigned successfully.", "data": result}


@router.post("/assignments/auto-balance", responses=ERROR_RESPONSES)
async def auto_balance(db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    result = await LoadBalancer(db).auto_balance()
    return {"success": True, **result}


# ================= EVALUATIONS =================

@router.patch("/evaluations/{evaluation_id}/lock", responses=ERROR_RESPONSES)
async def lock_evaluation(
    evaluation_id: int,
    body: LockRequest,
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    evaluation = await scoring_service.set_evaluation_lock(db, evaluation_id, body.locked)
    action = "locked" if body.locked else "unlocked"
    return {"success": True, "message": f"Evaluation {action}.", "data": evaluation}


# ================= SCORING & LEADERBOARD =================

@router.post("/scores/aggregate")
async def aggregate_scores(db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    result = await scoring_service.aggregate_judge_scores(db)
    return {"success": True, **result}


@router.post("/scores/compute-leaderboard")
async def compute_leaderboard(db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    result = await scoring_service.compute_final_leaderboard(db)
    return {"success": True, **result}


@router.get("/leaderboard")
async def get_internal_leaderboard(
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1, le=200),
    team_name: Optional[str] = Query(default=None, alias="teamName"),
    category: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """Full leaderboard, published or not."""
    limit = limit or settings.LEADERBOARD_PAGE_SIZE
    result = await scoring_service.get_leaderboard(
        db, page=page, limit=limit, team_name=team_name, category=category
    )
    return {"success": True, "page": page, "limit": limit, **result}


@router.post("/leaderboard/publish")
async def publish_leaderboard(body: PublishRequest, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    result = await scoring_service.publish_leaderboard(db, body.publish)
    action = "published" if body.publish else "unpublished"
    return {"success": True, "message": f"Leaderboard {action}.", **result}
