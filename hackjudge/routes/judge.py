"""
hackjudge/routes/judge.py
Judge Routes - Assigned Teams & Evaluations

Routes for a judge to:
- View assigned teams, dashboard counters and past reviews
- View the submission under evaluation
- Save drafts, submit and update evaluations

Evaluation bodies are taken as raw JSON objects so that every invalid field
is reported in one ValidationError rather than FastAPI's generic 422.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hackjudge.config.settings import settings
from hackjudge.database import get_db
from hackjudge.errors import ErrorResponse
from hackjudge.services import judge_workspace
from hackjudge.state_machines.evaluation_state import EvaluationStateMachine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/judges/{judge_id}", tags=["Judge"])

EVALUATION_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    423: {"model": ErrorResponse},
}


# ================= ASSIGNED TEAMS =================

@router.get("/assignments")
async def get_assigned_teams(
    judge_id: int,
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    limit = limit or settings.DEFAULT_PAGE_SIZE
    result = await judge_workspace.get_assigned_teams(db, judge_id, page=page, limit=limit)
    return {"success": True, "page": page, "limit": limit, **result}


@router.get("/dashboard")
async def get_dashboard(judge_id: int, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    summary = await judge_workspace.get_dashboard_summary(db, judge_id)
    return {"success": True, "data": summary}


@router.get("/reviews")
async def get_my_reviews(judge_id: int, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    reviews = await judge_workspace.get_my_reviews(db, judge_id)
    return {"success": True, "data": reviews}


@router.get("/teams/{team_id}/submission", responses={403: {"model": ErrorResponse}})
async def get_submission(judge_id: int, team_id: int, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    submission = await judge_workspace.get_submission_for_evaluation(db, judge_id, team_id)
    if submission is None:
        return {"success": True, "message": "Team has not submitted a final project yet.", "data": None}
    return {"success": True, "data": submission}


# ================= EVALUATIONS =================

@router.get("/evaluations/{team_id}")
async def get_evaluation(judge_id: int, team_id: int, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    evaluation = await EvaluationStateMachine(db).get(judge_id, team_id)
    return {"success": True, "data": evaluation}


@router.get("/evaluations/{team_id}/status")
async def get_evaluation_status(judge_id: int, team_id: int, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    evaluation_status = await EvaluationStateMachine(db).get_status(judge_id, team_id)
    return {"success": True, "data": evaluation_status}


@router.post("/evaluations/{team_id}/draft", responses=EVALUATION_RESPONSES)
async def save_draft(
    judge_id: int,
    team_id: int,
    payload: Dict[str, Any] = Body(default={}),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    evaluation = await EvaluationStateMachine(db).save_draft(judge_id, team_id, payload)
    return {"success": True, "message": "Evaluation draft saved.", "data": evaluation}


@router.post("/evaluations/{team_id}/submit", responses=EVALUATION_RESPONSES)
async def submit_evaluation(
    judge_id: int,
    team_id: int,
    payload: Dict[str, Any] = Body(default={}),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    evaluation = await EvaluationStateMachine(db).submit(judge_id, team_id, payload)
    return {"success": True, "message": "Evaluation submitted.", "data": evaluation}


@router.patch("/evaluations/{team_id}/update", responses=EVALUATION_RESPONSES)
async def update_evaluation(
    judge_id: int,
    team_id: int,
    payload: Dict[str, Any] = Body(default={}),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    evaluation = await EvaluationStateMachine(db).update(judge_id, team_id, payload)
    return {"success": True, "message": "Evaluation updated.", "data": evaluation}
