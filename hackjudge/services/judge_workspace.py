"""
Judge Workspace Service

Read models for the judge-facing screens: assigned teams, dashboard
counters, the judge's own reviews and the submission under evaluation.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from hackjudge.errors import NotAssignedError
from hackjudge.orm.team import Submission, SubmissionStatus
from hackjudge.orm.judge_evaluation import JudgeAssignment, Evaluation, EvaluationStatus

logger = logging.getLogger(__name__)


def _assigned_team_view(assignment: JudgeAssignment, evaluation: Optional[Evaluation]) -> Dict[str, Any]:
    team = assignment.team
    submission = team.submission if team else None

    return {
        "teamId": assignment.team_id,
        "teamName": team.name if team else None,
        "verificationStatus": team.verification_status.value if team else "unknown",
        "submissionId": submission.id if submission else None,
        "submissionStatus": submission.status.value if submission else "no_submission",
        "submittedAt": submission.submitted_at.isoformat() if submission and submission.submitted_at else None,
        "evaluationId": evaluation.id if evaluation else None,
        "evaluationStatus": evaluation.status.value if evaluation else EvaluationStatus.NONE.value,
        "evaluationSubmittedAt": (
            evaluation.submitted_at.isoformat() if evaluation and evaluation.submitted_at else None
        ),
        "isReadyForEvaluation": bool(submission and submission.status == SubmissionStatus.SUBMITTED),
    }


async def get_assigned_teams(
    db: AsyncSession,
    judge_id: int,
    page: int = 1,
    limit: int = 10
) -> Dict[str, Any]:
    """Paginated teams assigned to the judge, newest assignment first."""
    total = await db.scalar(
        select(func.count()).select_from(JudgeAssignment).where(JudgeAssignment.judge_id == judge_id)
    )

    result = await db.execute(
        select(JudgeAssignment, Evaluation)
        .outerjoin(Evaluation, and_(
            Evaluation.judge_id == JudgeAssignment.judge_id,
            Evaluation.team_id == JudgeAssignment.team_id,
        ))
        .where(JudgeAssignment.judge_id == judge_id)
        .order_by(JudgeAssignment.created_at.desc(), JudgeAssignment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    teams = [_assigned_team_view(assignment, evaluation) for assignment, evaluation in result.all()]

    return {"teams": teams, "totalCount": total or 0}


async def get_dashboard_summary(db: AsyncSession, judge_id: int) -> Dict[str, int]:
    result = await db.execute(
        select(JudgeAssignment, Evaluation)
        .outerjoin(Evaluation, and_(
            Evaluation.judge_id == JudgeAssignment.judge_id,
            Evaluation.team_id == JudgeAssignment.team_id,
        ))
        .where(JudgeAssignment.judge_id == judge_id)
    )
    views = [_assigned_team_view(assignment, evaluation) for assignment, evaluation in result.all()]

    total = len(views)
    completed = sum(1 for v in views if v["evaluationStatus"] == EvaluationStatus.SUBMITTED.value)
    ready = sum(1 for v in views if v["isReadyForEvaluation"])

    return {
        "totalAssigned": total,
        "readyForEvaluationCount": ready,
        "completedCount": completed,
        "pendingCount": total - completed,
    }


async def get_my_reviews(db: AsyncSession, judge_id: int) -> List[Dict[str, Any]]:
    """The judge's evaluations, most recently modified first."""
    result = await db.execute(
        select(Evaluation)
        .where(Evaluation.judge_id == judge_id)
        .order_by(Evaluation.updated_at.desc(), Evaluation.id.desc())
    )

    reviews = []
    for evaluation in result.scalars().all():
        team = evaluation.team
        submission = team.submission if team else None
        reviews.append({
            "evaluationId": evaluation.id,
            "teamId": evaluation.team_id,
            "teamName": team.name if team else None,
            "evaluationStatus": evaluation.status.value,
            "isLocked": evaluation.is_locked_by_admin,
            "submittedAt": evaluation.submitted_at.isoformat() if evaluation.submitted_at else None,
            "lastUpdatedAt": evaluation.updated_at.isoformat() if evaluation.updated_at else None,
            "submissionStatus": submission.status.value if submission else None,
        })
    return reviews


async def get_submission_for_evaluation(db: AsyncSession, judge_id: int, team_id: int) -> Optional[Dict[str, Any]]:
    """
    The team's final submission, visible only to judges assigned to the team.

    Returns None while the team has not submitted.
    """
    assigned = await db.scalar(
        select(func.count())
        .select_from(JudgeAssignment)
        .where(JudgeAssignment.judge_id == judge_id)
        .where(JudgeAssignment.team_id == team_id)
    )
    if not assigned:
        raise NotAssignedError(judge_id, team_id)

    result = await db.execute(
        select(Submission)
        .where(Submission.team_id == team_id)
        .where(Submission.status == SubmissionStatus.SUBMITTED)
    )
    submission = result.scalar_one_or_none()
    if submission is None:
        logger.warning(f"Submission not found or not final for team {team_id}")
        return None
    return submission.to_dict()
