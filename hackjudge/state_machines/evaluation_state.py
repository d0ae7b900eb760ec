"""
Evaluation State Machine
Server-side lifecycle enforcement for judge evaluations.

States:
    none      - no evaluation row for the (judge, team) pair
    draft     - scores saved, not final
    submitted - finalized; feeds score aggregation

Transitions:
    none/draft --save_draft--> draft
    none/draft --submit------> submitted
    submitted  --update------> submitted (new content, same status)

The admin lock is an orthogonal flag checked on every mutation. Every guard
is re-read from the database on each call; nothing is cached on the instance.
"""
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hackjudge.config.settings import settings
from hackjudge.errors import (
    ValidationError,
    PreconditionError,
    NotAssignedError,
    LockedError,
    AlreadySubmittedError,
    NotSubmittedError,
)
from hackjudge.orm.judge_evaluation import JudgeAssignment, Evaluation, EvaluationStatus, SCORE_FIELDS
from hackjudge.schemas.evaluation import DraftEvaluationInput, validate_evaluation_payload
from hackjudge.services.roster_service import get_submission_status
from hackjudge.services.scoring_service import recompute_aggregate_for_team

logger = logging.getLogger(__name__)

AggregationTrigger = Callable[[AsyncSession, int], Awaitable[Any]]


class EvaluationStateMachine:
    """
    Enforces the evaluation lifecycle for one judge at a time.

    `on_submitted` is awaited after a successful submit or update. It is
    best-effort: a failing trigger is logged and never raised.
    """

    def __init__(self, db: AsyncSession, on_submitted: Optional[AggregationTrigger] = recompute_aggregate_for_team):
        self.db = db
        self.on_submitted = on_submitted

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    def _validate(self, payload: Optional[Dict[str, Any]], final: bool) -> DraftEvaluationInput:
        valid, errors = validate_evaluation_payload(payload, final=final)
        if errors:
            raise ValidationError([e.model_dump() for e in errors])
        return valid

    async def _require_assignment(self, judge_id: int, team_id: int) -> JudgeAssignment:
        result = await self.db.execute(
            select(JudgeAssignment)
            .where(JudgeAssignment.judge_id == judge_id)
            .where(JudgeAssignment.team_id == team_id)
        )
        assignment = result.scalar_one_or_none()
        if assignment is None:
            raise NotAssignedError(judge_id, team_id)
        return assignment

    async def _require_final_submission(self, team_id: int) -> None:
        if await get_submission_status(self.db, team_id) != "submitted":
            raise PreconditionError("Team has not submitted their final project yet.")

    async def _load(self, judge_id: int, team_id: int) -> Optional[Evaluation]:
        result = await self.db.execute(
            select(Evaluation)
            .where(Evaluation.judge_id == judge_id)
            .where(Evaluation.team_id == team_id)
        )
        return result.scalar_one_or_none()

    async def _load_mutable(self, judge_id: int, team_id: int) -> Optional[Evaluation]:
        """Load the evaluation for a draft save or submit; locked or final rows are rejected."""
        evaluation = await self._load(judge_id, team_id)
        if evaluation is not None:
            if evaluation.is_locked_by_admin:
                raise LockedError()
            if evaluation.status == EvaluationStatus.SUBMITTED:
                raise AlreadySubmittedError()
        return evaluation

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def save_draft(self, judge_id: int, team_id: int, payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Upsert a draft with the fields present in `payload`.

        Raises:
            ValidationError: a present score is outside [1, 10]
            NotAssignedError: judge is not assigned to the team
            PreconditionError: team's submission is not final
            LockedError: evaluation locked by an administrator
            AlreadySubmittedError: evaluation already finalized
        """
        values = self._validate(payload, final=False).to_values()
        assignment = await self._require_assignment(judge_id, team_id)
        await self._require_final_submission(team_id)
        evaluation = await self._load_mutable(judge_id, team_id)

        if evaluation is None:
            evaluation = Evaluation(
                judge_id=judge_id,
                team_id=team_id,
                assignment_id=assignment.id,
                status=EvaluationStatus.DRAFT,
            )
            self.db.add(evaluation)

        for field, value in values.items():
            setattr(evaluation, field, value)

        await self.db.commit()
        await self.db.refresh(evaluation)

        logger.info(f"Draft saved: judge={judge_id} team={team_id} fields={sorted(values)}")
        return evaluation.to_dict()

    async def submit(self, judge_id: int, team_id: int, payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Finalize the evaluation. Allowed from `none` and `draft`.

        Raises:
            ValidationError: any score missing or invalid, or comments too short
            NotAssignedError, PreconditionError, LockedError, AlreadySubmittedError
        """
        values = self._validate(payload, final=True).to_values()
        assignment = await self._require_assignment(judge_id, team_id)
        await self._require_final_submission(team_id)
        evaluation = await self._load_mutable(judge_id, team_id)

        if evaluation is None:
            evaluation = Evaluation(judge_id=judge_id, team_id=team_id, assignment_id=assignment.id)
            self.db.add(evaluation)

        for field, value in values.items():
            setattr(evaluation, field, value)
        evaluation.status = EvaluationStatus.SUBMITTED
        evaluation.submitted_at = datetime.utcnow()

        await self.db.commit()
        await self.db.refresh(evaluation)
        logger.info(f"Evaluation submitted: judge={judge_id} team={team_id}")

        result = evaluation.to_dict()
        await self._trigger_aggregation(team_id)
        return result

    async def update(self, judge_id: int, team_id: int, payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Replace the scores and comments of a submitted evaluation.

        Status and submitted_at are left as they are.

        Raises:
            ValidationError: any score missing or invalid, or comments too short
            NotSubmittedError: no evaluation, or it is still a draft
            LockedError: evaluation locked by an administrator
        """
        values = self._validate(payload, final=True).to_values()

        evaluation = await self._load(judge_id, team_id)
        if evaluation is None or evaluation.status != EvaluationStatus.SUBMITTED:
            raise NotSubmittedError()
        if evaluation.is_locked_by_admin:
            raise LockedError()

        for field in SCORE_FIELDS + ("comments",):
            setattr(evaluation, field, values[field])

        await self.db.commit()
        await self.db.refresh(evaluation)
        logger.info(f"Evaluation updated: judge={judge_id} team={team_id}")

        result = evaluation.to_dict()
        await self._trigger_aggregation(team_id)
        return result

    async def _trigger_aggregation(self, team_id: int) -> None:
        if self.on_submitted is None or not settings.FEATURE_AGGREGATE_ON_SUBMIT:
            return
        try:
            await self.on_submitted(self.db, team_id)
        except Exception as e:
            logger.error(f"Aggregation for team {team_id} failed after submission: {e}", exc_info=True)
            await self.db.rollback()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, judge_id: int, team_id: int) -> Dict[str, Any]:
        """The evaluation, or an empty template with status 'none'."""
        evaluation = await self._load(judge_id, team_id)
        if evaluation is None:
            return {
                "id": None,
                "status": EvaluationStatus.NONE.value,
                "comments": "",
                "submitted_at": None,
                "is_locked_by_admin": False,
                **{field: None for field in SCORE_FIELDS},
            }
        return evaluation.to_dict()

    async def get_status(self, judge_id: int, team_id: int) -> Dict[str, Any]:
        evaluation = await self._load(judge_id, team_id)
        if evaluation is None:
            return {"status": EvaluationStatus.NONE.value, "isLocked": False}
        return {"status": evaluation.status.value, "isLocked": evaluation.is_locked_by_admin}
