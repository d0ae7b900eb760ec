"""
Shared fixtures: an in-memory database per test plus small factories for
judges, teams and assignments.
"""
import itertools
from datetime import datetime, timedelta
from typing import AsyncGenerator

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from hackjudge.orm.base import Base
from hackjudge.orm.user import User, UserRole
from hackjudge.orm.team import Team, Submission, SubmissionStatus, VerificationStatus
from hackjudge.orm.judge_evaluation import JudgeAssignment

# Test database setup
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

VALID_PAYLOAD = {
    "score_innovation": 8,
    "score_feasibility": 7,
    "score_execution": 9,
    "score_presentation": 6,
    "comments": "Solid execution, clear demo.",
}


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def make_judge(db_session: AsyncSession):
    """Factory: active judge accounts with distinct emails, created in call order."""
    counter = itertools.count(1)

    async def _make(first_name: str = "Judge", last_name: str = None, is_active: bool = True) -> User:
        n = next(counter)
        judge = User(
            email=f"judge{n}@test.com",
            first_name=first_name,
            last_name=last_name or f"{n:02d}",
            role=UserRole.JUDGE,
            is_active=is_active,
            created_at=datetime(2024, 1, 1) + timedelta(minutes=n),
        )
        db_session.add(judge)
        await db_session.commit()
        return judge

    return _make


@pytest_asyncio.fixture
async def make_team(db_session: AsyncSession):
    """
    Factory: teams with an optional submission.

    The submission is attached in the same commit so that the team's
    submission relationship is populated in the session.
    """
    counter = itertools.count(1)

    async def _make(
        name: str = None,
        submission_status: SubmissionStatus = SubmissionStatus.SUBMITTED,
        verification_status: VerificationStatus = VerificationStatus.VERIFIED,
        category: str = "web",
        submitted_at: datetime = None,
    ) -> Team:
        n = next(counter)
        team = Team(
            name=name or f"Team {n}",
            verification_status=verification_status,
            project_category=category,
        )
        if submission_status is not None:
            team.submission = Submission(
                status=submission_status,
                repo_url=f"https://example.com/team-{n}",
                submitted_at=(
                    submitted_at or datetime(2024, 1, 2) + timedelta(minutes=n)
                    if submission_status == SubmissionStatus.SUBMITTED else None
                ),
            )
        else:
            team.submission = None
        db_session.add(team)
        await db_session.commit()
        return team

    return _make


@pytest_asyncio.fixture
async def make_assignment(db_session: AsyncSession):
    """Factory: raw assignment rows, bypassing the store's checks."""
    counter = itertools.count(1)

    async def _make(judge: User, team: Team) -> JudgeAssignment:
        n = next(counter)
        assignment = JudgeAssignment(
            judge_id=judge.id,
            team_id=team.id,
            created_at=datetime(2024, 1, 3) + timedelta(minutes=n),
        )
        db_session.add(assignment)
        await db_session.commit()
        return assignment

    return _make
