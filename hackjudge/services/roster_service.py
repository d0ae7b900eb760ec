"""
Judge Roster Service

Judge account administration plus the two lookups the judging core depends
on: the active judge roster and a team's submission status.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hackjudge.errors import ConflictError, NotFoundError, ErrorCode
from hackjudge.orm.user import User, UserRole
from hackjudge.orm.team import Submission
from hackjudge.orm.judge_evaluation import JudgeAssignment, Evaluation, EvaluationStatus
from hackjudge.services.scoring_service import recompute_aggregate_for_team

logger = logging.getLogger(__name__)

DELETE_MODES = ("soft", "hard")


# =============================================================================
# Collaborator lookups
# =============================================================================

async def list_active_judges(db: AsyncSession) -> List[int]:
    """
    Active judge ids in a stable order: account creation time, then id.
    """
    result = await db.execute(
        select(User.id)
        .where(User.role == UserRole.JUDGE)
        .where(User.is_active.is_(True))
        .order_by(User.created_at.asc(), User.id.asc())
    )
    return [row[0] for row in result.all()]


async def get_submission_status(db: AsyncSession, team_id: int) -> str:
    """Returns 'none', 'draft' or 'submitted'."""
    result = await db.execute(
        select(Submission.status).where(Submission.team_id == team_id)
    )
    submission_status = result.scalar_one_or_none()
    return submission_status.value if submission_status else "none"


async def get_judge(db: AsyncSession, judge_id: int) -> User:
    result = await db.execute(
        select(User).where(User.id == judge_id).where(User.role == UserRole.JUDGE)
    )
    judge = result.scalar_one_or_none()
    if judge is None:
        raise NotFoundError("Judge", judge_id, code=ErrorCode.JUDGE_NOT_FOUND)
    return judge


# =============================================================================
# Judge administration
# =============================================================================

async def create_judge(
    db: AsyncSession,
    email: str,
    first_name: str,
    last_name: str
) -> Dict[str, Any]:
    """Create an active judge account. Emails are unique across all users."""
    judge = User(
        email=email.strip().lower(),
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        role=UserRole.JUDGE,
        is_active=True,
    )
    db.add(judge)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("User with this email already exists.", code=ErrorCode.DUPLICATE_ACCOUNT)

    await db.refresh(judge)
    logger.info(f"Judge account created: id={judge.id}")
    return judge.to_dict()


async def list_judges(db: AsyncSession, page: int = 1, limit: int = 10) -> Dict[str, Any]:
    """Paginated judge accounts, oldest first, with their assignment load."""
    offset = (page - 1) * limit

    total = await db.scalar(
        select(func.count()).select_from(User).where(User.role == UserRole.JUDGE)
    )

    result = await db.execute(
        select(User)
        .where(User.role == UserRole.JUDGE)
        .order_by(User.created_at.asc(), User.id.asc())
        .offset(offset)
        .limit(limit)
    )
    users = result.scalars().all()

    load_result = await db.execute(
        select(JudgeAssignment.judge_id, func.count(JudgeAssignment.id))
        .where(JudgeAssignment.judge_id.in_([u.id for u in users]))
        .group_by(JudgeAssignment.judge_id)
    )
    load = dict(load_result.all())

    judges = []
    for user in users:
        entry = user.to_dict()
        entry["assignmentLoad"] = load.get(user.id, 0)
        judges.append(entry)

    return {"judges": judges, "totalCount": total or 0}


async def update_judge(
    db: AsyncSession,
    judge_id: int,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    is_active: Optional[bool] = None
) -> Dict[str, Any]:
    """
    Correct a judge's name or toggle the account's active flag.

    Fields left as None are not touched. Reactivating a soft-deleted judge
    returns them to the active roster; their old assignments are still
    stored and count towards their load again.
    """
    judge = await get_judge(db, judge_id)

    if first_name is not None:
        judge.first_name = first_name.strip()
    if last_name is not None:
        judge.last_name = last_name.strip()
    if is_active is not None:
        judge.is_active = is_active

    await db.commit()
    await db.refresh(judge)
    logger.info(f"Judge {judge_id} updated: active={judge.is_active}")
    return judge.to_dict()


async def delete_judge(db: AsyncSession, judge_id: int, mode: str = "soft") -> Dict[str, Any]:
    """
    Soft delete deactivates the account and keeps its assignments, which the
    next rebalance will move to active judges. Hard delete removes the
    account with its assignments and evaluations, then refreshes the
    aggregates of every team it had scored.
    """
    if mode not in DELETE_MODES:
        raise ValueError(f"mode must be one of {DELETE_MODES}, got {mode!r}")

    judge = await get_judge(db, judge_id)

    if mode == "soft":
        judge.is_active = False
        await db.commit()
        logger.info(f"Judge {judge_id} deactivated")
        return {"message": "Judge account deactivated (soft-deleted)."}

    result = await db.execute(
        select(Evaluation.team_id)
        .where(Evaluation.judge_id == judge_id)
        .where(Evaluation.status == EvaluationStatus.SUBMITTED)
    )
    scored_team_ids = sorted({row[0] for row in result.all()})

    await db.execute(delete(Evaluation).where(Evaluation.judge_id == judge_id))
    await db.execute(delete(JudgeAssignment).where(JudgeAssignment.judge_id == judge_id))
    await db.delete(judge)
    await db.flush()

    for team_id in scored_team_ids:
        await recompute_aggregate_for_team(db, team_id, commit=False)

    await db.commit()
    logger.info(f"Judge {judge_id} permanently deleted; re-aggregated teams {scored_team_ids}")
    return {"message": "Judge account permanently deleted."}
