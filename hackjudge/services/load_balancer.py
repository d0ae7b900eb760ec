"""
Load Balancer

Redistributes unresolved judge assignments evenly across the active judges.

Core Principles:
- Submitted work is never moved: a judge who finished scoring a team keeps it
- ZERO randomness: same pending teams, judges and resolved pairs -> same plan
- Loads differ by at most one
- The whole rebalance is one transaction
"""
import asyncio
import logging
from typing import Any, Dict, List, Sequence, Set, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from hackjudge.errors import ConflictError, ErrorCode
from hackjudge.orm.judge_evaluation import EvaluationStatus
from hackjudge.services.assignment_service import AssignmentStore, Pair
from hackjudge.services.roster_service import list_active_judges

logger = logging.getLogger(__name__)

# Serializes rebalance runs within the process (single-flight)
_balance_lock = asyncio.Lock()


def compute_quotas(total: int, judge_ids: Sequence[int]) -> Dict[int, int]:
    """
    Pure function: per-judge share of `total` items.

    The first `total mod J` judges get one extra.
    """
    base, remainder = divmod(total, len(judge_ids))
    return {judge_id: base + (1 if i < remainder else 0) for i, judge_id in enumerate(judge_ids)}


def _place(
    team_id: int,
    judge_ids: Sequence[int],
    quotas: Dict[int, int],
    planned: Dict[int, List[int]],
    resolved: Dict[int, Set[int]],
    visited: Set[int]
) -> bool:
    """
    Find a slot for `team_id`, moving already planned teams when needed.

    The earliest judge with quota left takes the team directly. When every
    eligible judge is full, one of them takes it if one of its planned teams
    can itself be placed elsewhere (an augmenting path). Each judge is
    visited at most once per search.
    """
    eligible = [
        judge_id for judge_id in judge_ids
        if judge_id not in visited
        and team_id not in resolved[judge_id]
        and team_id not in planned[judge_id]
    ]

    for judge_id in eligible:
        if quotas[judge_id] > 0:
            planned[judge_id].append(team_id)
            quotas[judge_id] -= 1
            return True

    for judge_id in eligible:
        if judge_id in visited:
            continue
        visited.add(judge_id)
        for index, other_team in enumerate(planned[judge_id]):
            if _place(other_team, judge_ids, quotas, planned, resolved, visited):
                planned[judge_id][index] = team_id
                return True

    return False


def plan_distribution(
    team_queue: Sequence[int],
    judge_ids: Sequence[int],
    held: Set[Pair]
) -> List[Pair]:
    """
    Pure function: distribute queued teams over judges.

    Each judge ends with exactly its quota. A judge never receives a team it
    already holds (`held`) or has already been planned, since a pair may
    exist only once. Teams are placed in queue order with the earliest
    judge that can take them; when every such judge is full, planned teams
    are shifted between judges to make room.

    Raises:
        ConflictError: no assignment of the queue to the quotas avoids a
            duplicate pair
    """
    quotas = compute_quotas(len(team_queue), judge_ids)
    resolved: Dict[int, Set[int]] = {judge_id: set() for judge_id in judge_ids}
    for judge_id, team_id in held:
        if judge_id in resolved:
            resolved[judge_id].add(team_id)

    planned: Dict[int, List[int]] = {judge_id: [] for judge_id in judge_ids}
    for team_id in team_queue:
        if not _place(team_id, judge_ids, quotas, planned, resolved, set()):
            raise ConflictError(
                f"Team {team_id} cannot be placed without assigning it twice to the same judge.",
                code=ErrorCode.REBALANCE_CONFLICT
            )

    return [(judge_id, team_id) for judge_id in judge_ids for team_id in planned[judge_id]]


class LoadBalancer:
    """Rebalances unresolved assignments over the active judge roster."""

    def __init__(self, db: AsyncSession, store: AssignmentStore = None):
        self.db = db
        self.store = store or AssignmentStore(db)

    async def auto_balance(self) -> Dict[str, Any]:
        async with _balance_lock:
            return await self._auto_balance()

    async def _auto_balance(self) -> Dict[str, Any]:
        records = await self.store.list_records()
        judge_ids = await list_active_judges(self.db)

        resolved = [r for r in records if r["evaluationStatus"] == EvaluationStatus.SUBMITTED.value]
        unresolved = [r for r in records if r["evaluationStatus"] != EvaluationStatus.SUBMITTED.value]

        if not judge_ids:
            logger.warning("Auto-balance skipped: no active judges")
            return {
                "message": "No active judges available to rebalance assignments.",
                "totalRedistributed": 0,
                "newAssignmentsCount": 0,
            }

        if not unresolved:
            logger.info("Auto-balance skipped: nothing to rebalance")
            return {
                "message": "No unresolved assignments to rebalance.",
                "totalRedistributed": 0,
                "newAssignmentsCount": 0,
            }

        queue = [
            r["teamId"]
            for r in sorted(unresolved, key=lambda r: (r["teamId"], r["createdAt"], r["assignmentId"]))
        ]
        held: Set[Tuple[int, int]] = {(r["judgeId"], r["teamId"]) for r in resolved}

        plan = plan_distribution(queue, judge_ids, held)
        counts = await self.store.reconcile(unresolved, plan)

        logger.info(
            f"Auto-balance complete: {len(unresolved)} unresolved assignments over "
            f"{len(judge_ids)} judges (moved={counts['inserted']}, kept={counts['kept']})"
        )
        return {
            "message": "Assignments auto-balanced successfully.",
            "totalRedistributed": len(unresolved),
            "newAssignmentsCount": len(plan),
        }
