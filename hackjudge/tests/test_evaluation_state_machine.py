"""
Unit Tests for the Evaluation State Machine

Covers validation completeness, guard order, draft idempotency, submission
monotonicity, the admin lock and the best-effort aggregation trigger.
"""
import pytest
import pytest_asyncio
from sqlalchemy import select

from hackjudge.errors import (
    ValidationError,
    PreconditionError,
    NotAssignedError,
    LockedError,
    AlreadySubmittedError,
    NotSubmittedError,
    ErrorCode,
)
from hackjudge.orm.judge_evaluation import Evaluation
from hackjudge.orm.scoring import AggregatedScore
from hackjudge.orm.team import SubmissionStatus
from hackjudge.services.scoring_service import set_evaluation_lock
from hackjudge.state_machines.evaluation_state import EvaluationStateMachine

from conftest import VALID_PAYLOAD


@pytest.fixture
def machine(db_session):
    return EvaluationStateMachine(db_session)


@pytest_asyncio.fixture
async def pair(make_judge, make_team, make_assignment):
    judge = await make_judge()
    team = await make_team()
    await make_assignment(judge, team)
    return judge.id, team.id


class TestValidation:

    @pytest.mark.asyncio
    async def test_submit_reports_every_invalid_field(self, machine, pair):
        judge_id, team_id = pair
        payload = {
            "score_innovation": 9,
            "score_feasibility": 11,
            "score_execution": 0,
            "score_presentation": 5,
            "comments": "ten chars!",
        }

        with pytest.raises(ValidationError) as exc_info:
            await machine.submit(judge_id, team_id, payload)

        assert exc_info.value.fields == ["score_feasibility", "score_execution", "comments"]
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_validation_runs_before_assignment_check(self, machine, make_judge, make_team):
        judge = await make_judge()
        team = await make_team()

        with pytest.raises(ValidationError):
            await machine.save_draft(judge.id, team.id, {"score_innovation": 42})


class TestGuards:

    @pytest.mark.asyncio
    async def test_unassigned_judge_is_forbidden(self, machine, make_judge, make_team):
        judge = await make_judge()
        team = await make_team()

        with pytest.raises(NotAssignedError) as exc_info:
            await machine.save_draft(judge.id, team.id, {"score_innovation": 5})

        assert exc_info.value.status_code == 403
        assert isinstance(exc_info.value, PreconditionError)

    @pytest.mark.asyncio
    async def test_unsubmitted_project_cannot_be_evaluated(self, machine, make_judge, make_team, make_assignment):
        judge = await make_judge()
        team = await make_team(submission_status=SubmissionStatus.DRAFT)
        await make_assignment(judge, team)

        with pytest.raises(PreconditionError) as exc_info:
            await machine.save_draft(judge.id, team.id, {"score_innovation": 5})

        assert exc_info.value.code == ErrorCode.PREREQUISITE_NOT_MET

    @pytest.mark.asyncio
    async def test_missing_submission_cannot_be_evaluated(self, machine, make_judge, make_team, make_assignment):
        judge = await make_judge()
        team = await make_team(submission_status=None)
        await make_assignment(judge, team)

        with pytest.raises(PreconditionError):
            await machine.submit(judge.id, team.id, VALID_PAYLOAD)


class TestDraft:

    @pytest.mark.asyncio
    async def test_first_draft_creates_row(self, machine, pair):
        judge_id, team_id = pair

        evaluation = await machine.save_draft(judge_id, team_id, {"score_innovation": 7})

        assert evaluation["status"] == "draft"
        assert evaluation["score_innovation"] == 7
        assert evaluation["score_execution"] is None
        assert evaluation["submitted_at"] is None

    @pytest.mark.asyncio
    async def test_draft_save_is_idempotent(self, machine, pair, db_session):
        judge_id, team_id = pair
        payload = {"score_innovation": 7, "score_feasibility": 4, "comments": "first pass"}

        first = await machine.save_draft(judge_id, team_id, payload)
        second = await machine.save_draft(judge_id, team_id, payload)

        assert first == second
        rows = (await db_session.execute(select(Evaluation))).scalars().all()
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_draft_only_writes_sent_fields(self, machine, pair):
        judge_id, team_id = pair
        await machine.save_draft(judge_id, team_id, {"score_innovation": 7, "comments": "keep me"})

        evaluation = await machine.save_draft(judge_id, team_id, {"score_execution": 3})

        assert evaluation["score_innovation"] == 7
        assert evaluation["score_execution"] == 3
        assert evaluation["comments"] == "keep me"

    @pytest.mark.asyncio
    async def test_draft_after_submit_rejected(self, machine, pair):
        judge_id, team_id = pair
        await machine.submit(judge_id, team_id, VALID_PAYLOAD)

        with pytest.raises(AlreadySubmittedError):
            await machine.save_draft(judge_id, team_id, {"score_innovation": 2})


class TestSubmitAndUpdate:

    @pytest.mark.asyncio
    async def test_submit_then_update_changes_only_innovation(self, machine, pair):
        judge_id, team_id = pair

        submitted = await machine.submit(judge_id, team_id, VALID_PAYLOAD)
        assert submitted["status"] == "submitted"
        assert submitted["submitted_at"] is not None

        updated = await machine.update(judge_id, team_id, {**VALID_PAYLOAD, "score_innovation": 9})

        assert updated["score_innovation"] == 9
        assert {k: v for k, v in updated.items() if k != "score_innovation"} == {
            k: v for k, v in submitted.items() if k != "score_innovation"
        }

    @pytest.mark.asyncio
    async def test_submit_from_draft(self, machine, pair):
        judge_id, team_id = pair
        await machine.save_draft(judge_id, team_id, {"score_innovation": 2})

        evaluation = await machine.submit(judge_id, team_id, VALID_PAYLOAD)

        assert evaluation["status"] == "submitted"
        assert evaluation["score_innovation"] == 8

    @pytest.mark.asyncio
    async def test_second_submit_rejected(self, machine, pair):
        judge_id, team_id = pair
        await machine.submit(judge_id, team_id, VALID_PAYLOAD)

        with pytest.raises(AlreadySubmittedError) as exc_info:
            await machine.submit(judge_id, team_id, VALID_PAYLOAD)

        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_update_requires_submitted_evaluation(self, machine, pair):
        judge_id, team_id = pair

        with pytest.raises(NotSubmittedError):
            await machine.update(judge_id, team_id, VALID_PAYLOAD)

        await machine.save_draft(judge_id, team_id, {"score_innovation": 2})
        with pytest.raises(NotSubmittedError):
            await machine.update(judge_id, team_id, VALID_PAYLOAD)


class TestAdminLock:

    @pytest.mark.asyncio
    async def test_lock_freezes_every_mutation(self, machine, pair, db_session):
        judge_id, team_id = pair
        draft = await machine.save_draft(judge_id, team_id, {"score_innovation": 5})
        await set_evaluation_lock(db_session, draft["id"], True)

        with pytest.raises(LockedError) as exc_info:
            await machine.save_draft(judge_id, team_id, {"score_innovation": 6})
        assert exc_info.value.status_code == 423

        with pytest.raises(LockedError):
            await machine.submit(judge_id, team_id, VALID_PAYLOAD)

    @pytest.mark.asyncio
    async def test_update_blocked_while_locked_and_allowed_after_unlock(self, machine, pair, db_session):
        judge_id, team_id = pair
        submitted = await machine.submit(judge_id, team_id, VALID_PAYLOAD)
        await set_evaluation_lock(db_session, submitted["id"], True)

        with pytest.raises(LockedError):
            await machine.update(judge_id, team_id, VALID_PAYLOAD)

        await set_evaluation_lock(db_session, submitted["id"], False)
        updated = await machine.update(judge_id, team_id, {**VALID_PAYLOAD, "score_execution": 10})
        assert updated["score_execution"] == 10

    @pytest.mark.asyncio
    async def test_lock_on_submitted_evaluation_reports_lock_first(self, machine, pair, db_session):
        judge_id, team_id = pair
        submitted = await machine.submit(judge_id, team_id, VALID_PAYLOAD)
        await set_evaluation_lock(db_session, submitted["id"], True)

        with pytest.raises(LockedError):
            await machine.submit(judge_id, team_id, VALID_PAYLOAD)


class TestAggregationTrigger:

    @pytest.mark.asyncio
    async def test_submit_recomputes_team_aggregate(self, machine, pair, db_session):
        judge_id, team_id = pair

        await machine.submit(judge_id, team_id, VALID_PAYLOAD)

        aggregate = (await db_session.execute(
            select(AggregatedScore).where(AggregatedScore.team_id == team_id)
        )).scalar_one()
        assert aggregate.average_score == pytest.approx(7.5)
        assert aggregate.review_count == 1

    @pytest.mark.asyncio
    async def test_failing_trigger_does_not_fail_submission(self, db_session, pair):
        judge_id, team_id = pair
        calls = []

        async def broken_trigger(db, team_id):
            calls.append(team_id)
            raise RuntimeError("aggregation store unavailable")

        machine = EvaluationStateMachine(db_session, on_submitted=broken_trigger)
        evaluation = await machine.submit(judge_id, team_id, VALID_PAYLOAD)

        assert calls == [team_id]
        assert evaluation["status"] == "submitted"
        status = await machine.get_status(judge_id, team_id)
        assert status == {"status": "submitted", "isLocked": False}


class TestReads:

    @pytest.mark.asyncio
    async def test_get_without_row_returns_empty_template(self, machine, pair):
        judge_id, team_id = pair

        evaluation = await machine.get(judge_id, team_id)

        assert evaluation["status"] == "none"
        assert evaluation["id"] is None
        assert evaluation["is_locked_by_admin"] is False

    @pytest.mark.asyncio
    async def test_get_status_of_missing_row(self, machine, pair):
        judge_id, team_id = pair
        assert await machine.get_status(judge_id, team_id) == {"status": "none", "isLocked": False}
