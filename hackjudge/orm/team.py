"""
hackjudge/orm/team.py
Teams and their project submissions.

Only the fields the judging workflow reads are modelled here; team formation
and file handling live in the participant-facing service.
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship

from hackjudge.orm.base import BaseModel


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class SubmissionStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"


class Team(BaseModel):
    __tablename__ = "teams"

    name = Column(String(200), nullable=False)
    verification_status = Column(
        SQLEnum(VerificationStatus),
        nullable=False,
        default=VerificationStatus.PENDING,
        index=True
    )
    project_category = Column(String(100), nullable=True)

    submission = relationship("Submission", back_populates="team", uselist=False, lazy="selectin")

    def __repr__(self):
        return f"<Team(id={self.id}, name={self.name}, status={self.verification_status})>"


class Submission(BaseModel):
    """One project deliverable per team; gates evaluation once final."""
    __tablename__ = "submissions"

    team_id = Column(
        Integer,
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True
    )
    status = Column(SQLEnum(SubmissionStatus), nullable=False, default=SubmissionStatus.DRAFT)
    repo_url = Column(String(500), nullable=True)
    submitted_at = Column(DateTime, nullable=True)

    team = relationship("Team", back_populates="submission")

    def to_dict(self):
        return {
            "id": self.id,
            "team_id": self.team_id,
            "status": self.status.value if self.status else None,
            "repo_url": self.repo_url,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
        }
