"""
Scoring Service

Score aggregation, leaderboard computation and publishing, and the admin
evaluation lock.

Aggregation is a pure function of the submitted evaluations: it can be
re-run at any time and always converges on the same AggregatedScore rows.
NO weighting - simple arithmetic means.
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from hackjudge.errors import NotFoundError, ErrorCode
from hackjudge.orm.team import Team, Submission, VerificationStatus
from hackjudge.orm.judge_evaluation import Evaluation, EvaluationStatus
from hackjudge.orm.scoring import AggregatedScore, LeaderboardEntry

logger = logging.getLogger(__name__)

# Scores closer than this are treated as tied when ranking
TIE_PRECISION = 6


# =============================================================================
# Aggregation
# =============================================================================

def average_of_evaluations(evaluations: List[Evaluation]) -> Optional[float]:
    """Mean of each evaluation's four-criterion average, None when empty."""
    if not evaluations:
        return None
    return sum(e.criteria_average for e in evaluations) / len(evaluations)


async def _upsert_aggregate(db: AsyncSession, team_id: int, evaluations: List[Evaluation]) -> Optional[AggregatedScore]:
    result = await db.execute(
        select(AggregatedScore).where(AggregatedScore.team_id == team_id)
    )
    aggregate = result.scalar_one_or_none()

    average = average_of_evaluations(evaluations)
    if average is None:
        if aggregate is not None:
            await db.delete(aggregate)
        return None

    if aggregate is None:
        aggregate = AggregatedScore(team_id=team_id)
        db.add(aggregate)

    aggregate.average_score = average
    aggregate.review_count = len(evaluations)
    aggregate.aggregated_at = datetime.utcnow()
    return aggregate


async def recompute_aggregate_for_team(
    db: AsyncSession,
    team_id: int,
    commit: bool = True
) -> Optional[AggregatedScore]:
    """
    Recompute one team's aggregate from its submitted evaluations.

    The row is removed when the team no longer has any submitted evaluation.
    """
    result = await db.execute(
        select(Evaluation)
        .where(Evaluation.team_id == team_id)
        .where(Evaluation.status == EvaluationStatus.SUBMITTED)
    )
    evaluations = result.scalars().all()

    aggregate = await _upsert_aggregate(db, team_id, evaluations)
    if commit:
        await db.commit()

    logger.info(f"Aggregate recomputed for team {team_id}: reviews={len(evaluations)}")
    return aggregate


async def aggregate_judge_scores(db: AsyncSession) -> Dict[str, Any]:
    """Recompute aggregates for every team with submitted evaluations."""
    result = await db.execute(
        select(Evaluation).where(Evaluation.status == EvaluationStatus.SUBMITTED)
    )
    by_team: Dict[int, List[Evaluation]] = defaultdict(list)
    for evaluation in result.scalars().all():
        by_team[evaluation.team_id].append(evaluation)

    # Drop aggregates of teams that lost all their submitted evaluations
    await db.execute(
        delete(AggregatedScore).where(AggregatedScore.team_id.not_in(list(by_team.keys())))
    )

    if not by_team:
        await db.commit()
        return {"message": "No submitted evaluations found to aggregate.", "teamsProcessed": 0}

    for team_id in sorted(by_team):
        await _upsert_aggregate(db, team_id, by_team[team_id])

    await db.commit()
    logger.info(f"Judge scores aggregated for {len(by_team)} teams")
    return {
        "message": "Judge scores aggregated and saved successfully.",
        "teamsProcessed": len(by_team),
    }


# =============================================================================
# Leaderboard
# =============================================================================

def rank_scores(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Assign competition ranks to rows already sorted best-first.

    Tied scores share a rank; the next distinct score takes its 1-based
    position, so ties leave gaps: 1, 2, 2, 4.
    """
    ranked = []
    rank = 1
    previous_score = None

    for index, row in enumerate(rows):
        score = round(row["final_score"], TIE_PRECISION)
        if previous_score is not None and score != previous_score:
            rank = index + 1
        previous_score = score
        ranked.append({**row, "rank": rank})

    return ranked


async def compute_final_leaderboard(db: AsyncSession) -> Dict[str, Any]:
    """
    Rank verified teams by aggregated score and replace the leaderboard.

    Ordering: average score DESC, submission time ASC (earliest wins the
    listing order among equals), team id ASC. The current global publish
    state carries over to the recomputed rows.

    The publish state is not stored on its own: it is read back from the
    existing rows, so an empty leaderboard always recomputes unpublished.
    """
    result = await db.execute(
        select(AggregatedScore, Submission.submitted_at)
        .join(Team, Team.id == AggregatedScore.team_id)
        .outerjoin(Submission, Submission.team_id == Team.id)
        .where(Team.verification_status == VerificationStatus.VERIFIED)
    )
    rows = [
        {
            "team_id": aggregate.team_id,
            "final_score": aggregate.average_score,
            "submitted_at": submitted_at,
        }
        for aggregate, submitted_at in result.all()
    ]

    rows.sort(key=lambda r: (
        -r["final_score"],
        r["submitted_at"] is None,
        r["submitted_at"] or datetime.max,
        r["team_id"],
    ))
    ranked = rank_scores(rows)

    is_published = bool(await db.scalar(
        select(func.count()).select_from(LeaderboardEntry).where(LeaderboardEntry.is_published.is_(True))
    ))

    await db.execute(delete(LeaderboardEntry))

    if not ranked:
        await db.commit()
        return {"message": "No verified teams with scores found to compute leaderboard.", "teamsRanked": 0}

    computed_at = datetime.utcnow()
    for row in ranked:
        db.add(LeaderboardEntry(
            team_id=row["team_id"],
            rank=row["rank"],
            final_score=row["final_score"],
            is_published=is_published,
            computed_at=computed_at,
        ))

    await db.commit()
    logger.info(f"Leaderboard computed: {len(ranked)} teams ranked, published={is_published}")
    return {
        "message": "Final leaderboard computed and saved successfully.",
        "teamsRanked": len(ranked),
    }


async def get_leaderboard(
    db: AsyncSession,
    page: int = 1,
    limit: int = 50,
    team_name: Optional[str] = None,
    category: Optional[str] = None,
    published_only: bool = False
) -> Dict[str, Any]:
    """
    Leaderboard in ranked order, optionally filtered and published-only.

    Entries are stored in listing order, so ties keep the order chosen by
    compute_final_leaderboard.
    """
    query = select(LeaderboardEntry).join(Team, Team.id == LeaderboardEntry.team_id)

    if published_only:
        query = query.where(LeaderboardEntry.is_published.is_(True))
    if team_name:
        query = query.where(Team.name.ilike(f"%{team_name}%"))
    if category:
        query = query.where(Team.project_category == category)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    result = await db.execute(
        query.order_by(LeaderboardEntry.rank.asc(), LeaderboardEntry.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    entries = [entry.to_dict() for entry in result.scalars().all()]

    return {"leaderboard": entries, "totalCount": total or 0}


async def publish_leaderboard(db: AsyncSession, should_publish: bool) -> Dict[str, Any]:
    """
    Toggle the publish flag on every leaderboard row at once.

    The flag lives on the rows themselves. Publishing an empty leaderboard
    updates nothing, and the next compute_final_leaderboard starts
    unpublished.
    """
    result = await db.execute(
        update(LeaderboardEntry).values(is_published=should_publish)
    )
    await db.commit()

    action = "PUBLISHED" if should_publish else "UNPUBLISHED"
    logger.info(f"Leaderboard publishing status changed to {action} ({result.rowcount} rows)")
    return {"isPublished": should_publish, "updatedCount": result.rowcount}


# =============================================================================
# Admin lock
# =============================================================================

async def set_evaluation_lock(db: AsyncSession, evaluation_id: int, locked: bool) -> Dict[str, Any]:
    """Freeze or unfreeze an evaluation against further judge edits."""
    result = await db.execute(
        select(Evaluation).where(Evaluation.id == evaluation_id)
    )
    evaluation = result.scalar_one_or_none()
    if evaluation is None:
        raise NotFoundError("Evaluation", evaluation_id, code=ErrorCode.EVALUATION_NOT_FOUND)

    evaluation.is_locked_by_admin = locked
    await db.commit()
    await db.refresh(evaluation)

    logger.info(f"Evaluation {evaluation_id} lock set to {locked}")
    return evaluation.to_dict()
