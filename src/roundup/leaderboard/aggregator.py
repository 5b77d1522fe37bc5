"""Leaderboard maintenance.

Two write paths:

- ``apply_round_result``: incremental. One add-delta upsert per scope, so two
  rounds revealed at the same moment both land without lost updates.
- ``rebuild``: from scratch. Replays the scoring engine over a set of rounds
  and swaps the scope's rows in one atomic unit. Same input, same rows.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from roundup.core.scope import Scope
from roundup.core.unit_of_work import SqlAlchemyUnitOfWork
from roundup.db.models import LeaderboardEntry
from roundup.db.upsert import insert_for
from roundup.scoring.engine import RoundResult
from roundup.scoring.service import score_scope_rounds

logger = logging.getLogger(__name__)

COUNTERS = ("total_points", "upvotes_received", "downvotes_received", "wins", "rounds_participated")


def round_deltas(result: RoundResult, scope: Scope) -> list[dict[str, Any]]:
    """Per-participant increments one round contributes to a scope."""
    return [
        {
            "league_id": scope.league_id,
            "scope_key": scope.key,
            "season_id": scope.season_id,
            "user_id": tally.user_id,
            "total_points": tally.total_points,
            "upvotes_received": tally.upvotes_received,
            "downvotes_received": tally.downvotes_received,
            "wins": 1 if tally.won else 0,
            "rounds_participated": 1,
        }
        for tally in (result.tallies[user_id] for user_id in result.participants)
    ]


async def apply_round_result(db: AsyncSession, result: RoundResult, scope: Scope) -> int:
    """Add one round's tallies to the scope's leaderboard. Returns rows touched."""
    rows = round_deltas(result, scope)
    if not rows:
        return 0

    stmt = insert_for(db, LeaderboardEntry).values(rows)
    stmt = stmt.on_conflict_do_update(
        index_elements=["league_id", "scope_key", "user_id"],
        set_={col: getattr(LeaderboardEntry, col) + getattr(stmt.excluded, col) for col in COUNTERS},
    )
    async with SqlAlchemyUnitOfWork(db).atomic() as session:
        await session.execute(stmt)

    logger.info("Applied round %d to leaderboard %s (%d players)", result.round_id, scope, len(rows))
    return len(rows)


def aggregate_results(results: Iterable[RoundResult], scope: Scope) -> list[dict[str, Any]]:
    """Fold round results into fresh leaderboard rows, sorted by user id."""
    totals: dict[int, dict[str, int]] = {}
    for result in results:
        for row in round_deltas(result, scope):
            acc = totals.setdefault(row["user_id"], dict.fromkeys(COUNTERS, 0))
            for col in COUNTERS:
                acc[col] += row[col]
    return [
        {
            "league_id": scope.league_id,
            "scope_key": scope.key,
            "season_id": scope.season_id,
            "user_id": user_id,
            **totals[user_id],
        }
        for user_id in sorted(totals)
    ]


async def rebuild(db: AsyncSession, scope: Scope, round_ids: Sequence[int]) -> list[dict[str, Any]]:
    """Recompute the scope's leaderboard from ``round_ids`` and replace it atomically."""
    scored = await score_scope_rounds(db, scope, round_ids)
    entries = aggregate_results((result for _, result in scored), scope)

    async with SqlAlchemyUnitOfWork(db).atomic() as session:
        await session.execute(
            delete(LeaderboardEntry)
            .where(LeaderboardEntry.league_id == scope.league_id, LeaderboardEntry.scope_key == scope.key)
            .execution_options(synchronize_session=False)
        )
        if entries:
            await session.execute(insert(LeaderboardEntry), entries)

    logger.info("Rebuilt leaderboard %s from %d rounds (%d players)", scope, len(scored), len(entries))
    return entries


async def load_entries(db: AsyncSession, scope: Scope) -> list[LeaderboardEntry]:
    """Scope rows in standings order: points, then wins, then user id."""
    result = await db.execute(
        select(LeaderboardEntry)
        .where(LeaderboardEntry.league_id == scope.league_id, LeaderboardEntry.scope_key == scope.key)
        .order_by(
            LeaderboardEntry.total_points.desc(),
            LeaderboardEntry.wins.desc(),
            LeaderboardEntry.user_id,
        )
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
