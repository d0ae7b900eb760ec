"""
Assignment Store

The authoritative judge <-> team pairing set. Every mutation runs in a single
transaction: either all of its deletes and inserts land, or none do.

Deleting an assignment also deletes the evaluation attached to the same
(judge, team) pair, so an evaluation never outlives its assignment.
"""
import logging
from typing import Any, Dict, Iterable, List, Sequence, Set, Tuple

from sqlalchemy import select, delete, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hackjudge.errors import APIError, ConflictError, NotFoundError, ValidationError, ErrorCode
from hackjudge.orm.user import User, UserRole
from hackjudge.orm.team import Team
from hackjudge.orm.judge_evaluation import JudgeAssignment, Evaluation, EvaluationStatus
from hackjudge.services.scoring_service import recompute_aggregate_for_team

logger = logging.getLogger(__name__)

Pair = Tuple[int, int]


class AssignmentStore:
    """
    Judge assignment persistence.

    Pairs are (judge_id, team_id) tuples. At most one assignment exists per
    pair; the uniqueness constraint on judge_assignments is the last line of
    enforcement, but duplicates are detected up front so that the caller gets
    a ConflictError naming the offending pairs.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def _evaluation_statuses(self) -> Dict[Pair, EvaluationStatus]:
        result = await self.db.execute(
            select(Evaluation.judge_id, Evaluation.team_id, Evaluation.status)
        )
        return {(judge_id, team_id): status for judge_id, team_id, status in result.all()}

    async def list_records(self) -> List[Dict[str, Any]]:
        """
        Every assignment of every judge, active or not, with its evaluation
        status, oldest first.
        """
        result = await self.db.execute(
            select(JudgeAssignment).order_by(JudgeAssignment.created_at.asc(), JudgeAssignment.id.asc())
        )
        statuses = await self._evaluation_statuses()

        return [
            {
                "assignmentId": a.id,
                "judgeId": a.judge_id,
                "teamId": a.team_id,
                "evaluationStatus": statuses.get((a.judge_id, a.team_id), EvaluationStatus.NONE).value,
                "createdAt": a.created_at,
            }
            for a in result.scalars().all()
        ]

    async def list(self) -> List[Dict[str, Any]]:
        """
        Assignment matrix: each active judge with the teams assigned to them
        and a load summary.
        """
        judge_result = await self.db.execute(
            select(User)
            .where(User.role == UserRole.JUDGE)
            .where(User.is_active.is_(True))
            .order_by(User.last_name.asc(), User.first_name.asc(), User.id.asc())
        )
        judges = judge_result.scalars().all()

        assignment_result = await self.db.execute(
            select(JudgeAssignment)
            .where(JudgeAssignment.judge_id.in_([j.id for j in judges]))
            .order_by(JudgeAssignment.created_at.asc(), JudgeAssignment.id.asc())
        )
        by_judge: Dict[int, List[JudgeAssignment]] = {j.id: [] for j in judges}
        for assignment in assignment_result.scalars().all():
            by_judge[assignment.judge_id].append(assignment)

        statuses = await self._evaluation_statuses()

        matrix = []
        for judge in judges:
            teams_assigned = []
            completed = 0
            for assignment in by_judge[judge.id]:
                status = statuses.get((judge.id, assignment.team_id), EvaluationStatus.NONE)
                if status == EvaluationStatus.SUBMITTED:
                    completed += 1
                team = assignment.team
                teams_assigned.append({
                    "assignmentId": assignment.id,
                    "teamId": assignment.team_id,
                    "teamName": team.name if team else "N/A",
                    "teamStatus": team.verification_status.value if team else None,
                    "evaluationStatus": status.value,
                })

            total = len(teams_assigned)
            matrix.append({
                "judgeId": judge.id,
                "judgeName": judge.display_name,
                "email": judge.email,
                "loadStats": {
                    "totalAssigned": total,
                    "completedCount": completed,
                    "pendingCount": total - completed,
                },
                "teamsAssigned": teams_assigned,
            })

        return matrix

    # -------------------------------------------------------------------------
    # Transaction building blocks (flush only, never commit)
    # -------------------------------------------------------------------------

    async def _load(self, model, ids: Set[int], *criteria) -> Dict[int, Any]:
        if not ids:
            return {}
        result = await self.db.execute(select(model).where(model.id.in_(sorted(ids)), *criteria))
        return {row.id: row for row in result.scalars().all()}

    async def _insert_pairs(self, pairs: Sequence[Pair]) -> List[Dict[str, Any]]:
        seen: Set[Pair] = set()
        duplicates = []
        for pair in pairs:
            if pair in seen:
                duplicates.append(pair)
            seen.add(pair)
        if duplicates:
            raise ConflictError(
                "The request contains the same judge-team pair more than once.",
                details={"pairs": [{"judgeId": j, "teamId": t} for j, t in duplicates]}
            )

        judge_ids = {j for j, _ in pairs}
        team_ids = {t for _, t in pairs}

        judges = await self._load(User, judge_ids, User.role == UserRole.JUDGE)
        missing_judges = sorted(judge_ids - judges.keys())
        if missing_judges:
            raise NotFoundError("Judge", missing_judges[0], code=ErrorCode.JUDGE_NOT_FOUND)

        teams = await self._load(Team, team_ids)
        missing_teams = sorted(team_ids - teams.keys())
        if missing_teams:
            raise NotFoundError("Team", missing_teams[0], code=ErrorCode.TEAM_NOT_FOUND)

        result = await self.db.execute(
            select(JudgeAssignment.judge_id, JudgeAssignment.team_id)
            .where(JudgeAssignment.judge_id.in_(sorted(judge_ids)))
            .where(JudgeAssignment.team_id.in_(sorted(team_ids)))
        )
        existing = {(j, t) for j, t in result.all()} & seen
        if existing:
            raise ConflictError(
                "One or more teams are already assigned to the specified judge(s).",
                details={"pairs": [{"judgeId": j, "teamId": t} for j, t in sorted(existing)]}
            )

        rows = [JudgeAssignment(judge_id=j, team_id=t) for j, t in pairs]
        self.db.add_all(rows)
        await self.db.flush()

        return [
            {
                "assignmentId": row.id,
                "judgeId": row.judge_id,
                "teamId": row.team_id,
                "judgeName": judges[row.judge_id].display_name,
                "teamName": teams[row.team_id].name,
            }
            for row in rows
        ]

    async def _delete_assignments(self, records: Iterable[Dict[str, Any]]) -> int:
        records = list(records)
        if not records:
            return 0

        for record in records:
            await self.db.execute(
                delete(Evaluation).where(and_(
                    Evaluation.judge_id == record["judgeId"],
                    Evaluation.team_id == record["teamId"],
                ))
            )
        await self.db.execute(
            delete(JudgeAssignment).where(JudgeAssignment.id.in_([r["assignmentId"] for r in records]))
        )
        return len(records)

    async def _run_in_transaction(self, work):
        try:
            outcome = await work()
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Assignment conflicts with an existing judge-team pair.")
        except APIError:
            await self.db.rollback()
            raise
        return outcome

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def assign(self, pairs: Sequence[Pair]) -> List[Dict[str, Any]]:
        """
        Insert all pairs in one batch.

        Raises:
            ValidationError: empty batch
            ConflictError: a pair is repeated in the batch or already stored
            NotFoundError: unknown judge or team
        """
        pairs = [(int(judge_id), int(team_id)) for judge_id, team_id in pairs]
        if not pairs:
            raise ValidationError(
                [{"field": "assignments", "message": "At least one judge-team pair is required."}],
                message="Invalid assignment request."
            )

        created = await self._run_in_transaction(lambda: self._insert_pairs(pairs))
        logger.info(f"Assigned {len(created)} judge-team pairs")
        return created

    async def reassign(self, team_id: int, old_judge_id: int, new_judge_id: int) -> Dict[str, Any]:
        """
        Move a team from one judge to another in a single transaction.

        The old pair's evaluation goes with it. When that evaluation had been
        submitted, the team's aggregate is refreshed in the same transaction.
        """
        if old_judge_id == new_judge_id:
            raise ConflictError("Team is already assigned to this judge.")

        result = await self.db.execute(
            select(JudgeAssignment)
            .where(JudgeAssignment.team_id == team_id)
            .where(JudgeAssignment.judge_id == old_judge_id)
        )
        old = result.scalar_one_or_none()
        if old is None:
            raise NotFoundError(
                f"Assignment of team {team_id} to judge {old_judge_id}",
                code=ErrorCode.ASSIGNMENT_NOT_FOUND
            )

        old_status = await self.db.scalar(
            select(Evaluation.status)
            .where(Evaluation.judge_id == old_judge_id)
            .where(Evaluation.team_id == team_id)
        )
        had_submitted = old_status == EvaluationStatus.SUBMITTED
        old_record = {"assignmentId": old.id, "judgeId": old_judge_id, "teamId": team_id}

        async def work():
            await self._delete_assignments([old_record])
            created = await self._insert_pairs([(new_judge_id, team_id)])
            if had_submitted:
                await recompute_aggregate_for_team(self.db, team_id, commit=False)
            return created[0]

        new_assignment = await self._run_in_transaction(work)
        logger.info(f"Team {team_id} reassigned from judge {old_judge_id} to judge {new_judge_id}")
        return {
            "oldJudgeId": old_judge_id,
            "newJudgeId": new_judge_id,
            "teamId": team_id,
            "newAssignment": new_assignment,
        }

    async def reconcile(
        self,
        current: Sequence[Dict[str, Any]],
        planned: Sequence[Pair]
    ) -> Dict[str, int]:
        """
        Replace the `current` assignment records with the `planned` pairs.

        Records whose pair is also planned are kept untouched, drafts
        included; the rest are deleted and the missing planned pairs inserted.
        """
        planned_set = set(planned)
        current_pairs = {(r["judgeId"], r["teamId"]) for r in current}

        to_delete = [r for r in current if (r["judgeId"], r["teamId"]) not in planned_set]
        to_insert = [pair for pair in planned if pair not in current_pairs]

        async def work():
            deleted = await self._delete_assignments(to_delete)
            inserted = await self._insert_pairs(to_insert) if to_insert else []
            return {"deleted": deleted, "inserted": len(inserted), "kept": len(planned_set) - len(inserted)}

        counts = await self._run_in_transaction(work)
        logger.info(
            f"Assignments reconciled: deleted={counts['deleted']} "
            f"inserted={counts['inserted']} kept={counts['kept']}"
        )
        return counts
