"""
hackjudge/orm/judge_evaluation.py
Judging: judge assignments and evaluation records

An assignment pairs one judge with one team. The judge's scoring record for
that team is an Evaluation, created lazily on the first draft save and
finalized on submit. An administrator may lock an evaluation, which freezes
it in whatever state it is in.
"""
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, Integer, DateTime, ForeignKey, Boolean, Text,
    UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import relationship

from hackjudge.orm.base import BaseModel


SCORE_FIELDS = (
    "score_innovation",
    "score_feasibility",
    "score_execution",
    "score_presentation",
)


class EvaluationStatus(str, PyEnum):
    """
    Stored evaluation states. The "none" state is the absence of a row and
    is reported as NONE by read helpers.
    """
    NONE = "none"
    DRAFT = "draft"
    SUBMITTED = "submitted"


class JudgeAssignment(BaseModel):
    """
    Judge Assignment

    At most one row per (judge_id, team_id).
    """
    __tablename__ = "judge_assignments"

    judge_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    team_id = Column(
        Integer,
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    team = relationship("Team", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("judge_id", "team_id", name="uq_assignment_judge_team"),
    )

    def __repr__(self):
        return f"<JudgeAssignment(judge={self.judge_id}, team={self.team_id})>"


class Evaluation(BaseModel):
    """
    Evaluation (CORE ENTITY)

    One per (judge_id, team_id). Four integer scores in [1, 10] plus free-text
    comments. Submitted evaluations feed score aggregation.
    """
    __tablename__ = "evaluations"

    judge_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    team_id = Column(
        Integer,
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    assignment_id = Column(
        Integer,
        ForeignKey("judge_assignments.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    score_innovation = Column(Integer, nullable=True)
    score_feasibility = Column(Integer, nullable=True)
    score_execution = Column(Integer, nullable=True)
    score_presentation = Column(Integer, nullable=True)
    comments = Column(Text, nullable=True)

    status = Column(
        SQLEnum(EvaluationStatus),
        nullable=False,
        default=EvaluationStatus.DRAFT
    )
    is_locked_by_admin = Column(Boolean, default=False, nullable=False)
    submitted_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    team = relationship("Team", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("judge_id", "team_id", name="uq_evaluation_judge_team"),
    )

    def __repr__(self):
        return f"<Evaluation({self.status}, judge={self.judge_id}, team={self.team_id})>"

    @property
    def criteria_average(self) -> float:
        """Mean of the four criterion scores. Only meaningful once submitted."""
        return sum(getattr(self, field) for field in SCORE_FIELDS) / len(SCORE_FIELDS)

    def to_dict(self):
        return {
            "id": self.id,
            "status": self.status.value if self.status else None,
            "comments": self.comments,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "is_locked_by_admin": self.is_locked_by_admin,
            "score_innovation": self.score_innovation,
            "score_feasibility": self.score_feasibility,
            "score_execution": self.score_execution,
            "score_presentation": self.score_presentation,
        }
