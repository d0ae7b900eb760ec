"""
Tests for judge roster administration and the collaborator lookups.
"""
import pytest
from sqlalchemy import select, func

from hackjudge.errors import ConflictError, NotFoundError, ErrorCode
from hackjudge.orm.judge_evaluation import JudgeAssignment, Evaluation
from hackjudge.orm.scoring import AggregatedScore
from hackjudge.orm.team import SubmissionStatus
from hackjudge.orm.user import User
from hackjudge.services import roster_service
from hackjudge.services.assignment_service import AssignmentStore
from hackjudge.state_machines.evaluation_state import EvaluationStateMachine

from conftest import VALID_PAYLOAD


class TestLookups:

    @pytest.mark.asyncio
    async def test_active_judges_in_creation_order(self, db_session, make_judge):
        first = await make_judge(last_name="Zulu")
        await make_judge(is_active=False)
        third = await make_judge(last_name="Alpha")

        assert await roster_service.list_active_judges(db_session) == [first.id, third.id]

    @pytest.mark.asyncio
    async def test_submission_status(self, db_session, make_team):
        submitted = await make_team()
        draft = await make_team(submission_status=SubmissionStatus.DRAFT)
        missing = await make_team(submission_status=None)

        assert await roster_service.get_submission_status(db_session, submitted.id) == "submitted"
        assert await roster_service.get_submission_status(db_session, draft.id) == "draft"
        assert await roster_service.get_submission_status(db_session, missing.id) == "none"


class TestJudgeAccounts:

    @pytest.mark.asyncio
    async def test_create_normalizes_email(self, db_session):
        judge = await roster_service.create_judge(db_session, "  Grace@Example.COM ", "Grace", "Hopper")

        assert judge["email"] == "grace@example.com"
        assert judge["role"] == "judge"
        assert judge["isActive"] is True

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, db_session):
        await roster_service.create_judge(db_session, "grace@example.com", "Grace", "Hopper")

        with pytest.raises(ConflictError) as exc_info:
            await roster_service.create_judge(db_session, "GRACE@example.com", "Other", "Person")

        assert exc_info.value.code == ErrorCode.DUPLICATE_ACCOUNT

    @pytest.mark.asyncio
    async def test_list_with_assignment_load(self, db_session, make_judge, make_team):
        j1 = await make_judge()
        j2 = await make_judge()
        t1 = await make_team()
        t2 = await make_team()
        await AssignmentStore(db_session).assign([(j1.id, t1.id), (j1.id, t2.id)])

        result = await roster_service.list_judges(db_session, page=1, limit=10)

        assert result["totalCount"] == 2
        assert [(j["id"], j["assignmentLoad"]) for j in result["judges"]] == [(j1.id, 2), (j2.id, 0)]

    @pytest.mark.asyncio
    async def test_list_pagination(self, db_session, make_judge):
        judges = [await make_judge() for _ in range(3)]

        page_two = await roster_service.list_judges(db_session, page=2, limit=2)

        assert page_two["totalCount"] == 3
        assert [j["id"] for j in page_two["judges"]] == [judges[2].id]

    @pytest.mark.asyncio
    async def test_soft_delete_deactivates(self, db_session, make_judge, make_team):
        judge = await make_judge()
        team = await make_team()
        await AssignmentStore(db_session).assign([(judge.id, team.id)])

        await roster_service.delete_judge(db_session, judge.id, mode="soft")

        assert await roster_service.list_active_judges(db_session) == []
        assignments = await db_session.scalar(select(func.count()).select_from(JudgeAssignment))
        assert assignments == 1

    @pytest.mark.asyncio
    async def test_reactivation_restores_roster_and_matrix(self, db_session, make_judge, make_team):
        judge = await make_judge()
        team = await make_team()
        store = AssignmentStore(db_session)
        await store.assign([(judge.id, team.id)])
        await roster_service.delete_judge(db_session, judge.id, mode="soft")
        assert await store.list() == []

        updated = await roster_service.update_judge(db_session, judge.id, is_active=True)

        assert updated["isActive"] is True
        assert await roster_service.list_active_judges(db_session) == [judge.id]
        matrix = await store.list()
        assert [row["judgeId"] for row in matrix] == [judge.id]
        assert matrix[0]["loadStats"]["totalAssigned"] == 1

    @pytest.mark.asyncio
    async def test_update_corrects_names_only(self, db_session, make_judge):
        judge = await make_judge(first_name="Grase", last_name="Hoper")

        updated = await roster_service.update_judge(db_session, judge.id, first_name=" Grace ", last_name="Hopper")

        assert (updated["firstName"], updated["lastName"]) == ("Grace", "Hopper")
        assert updated["isActive"] is True
        assert updated["email"] == judge.email

    @pytest.mark.asyncio
    async def test_update_unknown_judge(self, db_session):
        with pytest.raises(NotFoundError) as exc_info:
            await roster_service.update_judge(db_session, 12345, first_name="Nobody")

        assert exc_info.value.code == ErrorCode.JUDGE_NOT_FOUND

    @pytest.mark.asyncio
    async def test_hard_delete_removes_work_and_refreshes_aggregates(self, db_session, make_judge, make_team):
        leaving = await make_judge()
        staying = await make_judge()
        team = await make_team()
        await AssignmentStore(db_session).assign([(leaving.id, team.id), (staying.id, team.id)])
        machine = EvaluationStateMachine(db_session)
        await machine.submit(leaving.id, team.id, {**VALID_PAYLOAD, "score_innovation": 10})
        await machine.submit(staying.id, team.id, VALID_PAYLOAD)

        await roster_service.delete_judge(db_session, leaving.id, mode="hard")

        users = await db_session.scalar(select(func.count()).select_from(User).where(User.id == leaving.id))
        evaluations = await db_session.scalar(select(func.count()).select_from(Evaluation))
        aggregate = (await db_session.execute(select(AggregatedScore))).scalar_one()
        assert users == 0
        assert evaluations == 1
        assert aggregate.review_count == 1
        assert aggregate.average_score == pytest.approx(7.5)

    @pytest.mark.asyncio
    async def test_delete_unknown_judge(self, db_session):
        with pytest.raises(NotFoundError) as exc_info:
            await roster_service.delete_judge(db_session, 12345)

        assert exc_info.value.code == ErrorCode.JUDGE_NOT_FOUND
