"""
hackjudge/orm/scoring.py
Derived scoring tables: per-team aggregates and the ranked leaderboard.

Both are recomputable views over submitted evaluations and are rewritten
wholesale by the scoring service, never edited in place by clients.
"""
from datetime import datetime

from sqlalchemy import Column, Integer, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from hackjudge.orm.base import BaseModel


class AggregatedScore(BaseModel):
    __tablename__ = "aggregated_scores"

    team_id = Column(
        Integer,
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True
    )
    # Mean of each submitted evaluation's four-criterion average
    average_score = Column(Float, nullable=False)
    review_count = Column(Integer, nullable=False, default=0)
    aggregated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    team = relationship("Team", lazy="selectin")

    def to_dict(self):
        return {
            "team_id": self.team_id,
            "average_score": self.average_score,
            "review_count": self.review_count,
            "aggregated_at": self.aggregated_at.isoformat() if self.aggregated_at else None,
        }


class LeaderboardEntry(BaseModel):
    __tablename__ = "leaderboard_entries"

    team_id = Column(
        Integer,
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True
    )
    rank = Column(Integer, nullable=False, index=True)
    final_score = Column(Float, nullable=False)
    is_published = Column(Boolean, default=False, nullable=False)
    computed_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    team = relationship("Team", lazy="selectin")

    def to_dict(self):
        team = self.team
        return {
            "rank": self.rank,
            "teamId": self.team_id,
            "teamName": team.name if team else None,
            "category": team.project_category if team else None,
            "score": self.final_score,
            "isPublished": self.is_published,
            "computedAt": self.computed_at.isoformat() if self.computed_at else None,
        }
