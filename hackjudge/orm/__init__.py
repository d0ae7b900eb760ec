from .base import Base

# Accounts and teams
from .user import User, UserRole
from .team import Team, Submission, VerificationStatus, SubmissionStatus

# Judging
from .judge_evaluation import JudgeAssignment, Evaluation, EvaluationStatus

# Derived scoring views
from .scoring import AggregatedScore, LeaderboardEntry
