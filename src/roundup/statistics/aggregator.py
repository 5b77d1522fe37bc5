"""Per-user statistics maintenance.

Placement counters are folded in with a single upsert per scope, computed in
SQL from the stored row so concurrent reveals do not overwrite each other:

    total_submissions  += 1
    placement_total    += placement
    avg_placement       = placement_total / total_submissions
    best_placement      = min(best, placement)
    worst_placement     = max(worst, placement)

Category affinity (genre counts) needs a read-merge-write of a JSON map, so it
runs separately under a row lock and tolerates lookup failures.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from sqlalchemy import Float, case, cast, delete, insert, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from roundup.core.collaborators import CategoryLookup
from roundup.core.outcome import PipelineWarning
from roundup.core.scope import Scope
from roundup.core.timeutil import utcnow
from roundup.core.unit_of_work import SqlAlchemyUnitOfWork
from roundup.db.models import UserStatistic
from roundup.db.upsert import insert_for
from roundup.scoring.engine import RoundResult, SubmissionRecord
from roundup.scoring.service import score_scope_rounds

logger = logging.getLogger(__name__)

_ADDITIVE = (
    "total_submissions",
    "placement_total",
    "total_votes_cast",
    "total_upvotes_cast",
    "total_downvotes_cast",
    "total_points_earned",
    "total_wins",
)


def round_increments(result: RoundResult, scope: Scope) -> list[dict[str, Any]]:
    """Statistic increments for each participant (submitter) of a round."""
    now = utcnow()
    rows = []
    for user_id in result.participants:
        tally = result.tallies[user_id]
        cast_ = result.votes_cast.get(user_id)
        rows.append({
            "league_id": scope.league_id,
            "scope_key": scope.key,
            "season_id": scope.season_id,
            "user_id": user_id,
            "total_submissions": 1,
            "placement_total": tally.placement,
            "avg_placement": float(tally.placement),
            "best_placement": tally.placement,
            "worst_placement": tally.placement,
            "total_votes_cast": cast_.total if cast_ else 0,
            "total_upvotes_cast": cast_.upvotes if cast_ else 0,
            "total_downvotes_cast": cast_.downvotes if cast_ else 0,
            "total_points_earned": tally.total_points,
            "total_wins": 1 if tally.won else 0,
            "category_affinity": {},
            "updated_at": now,
        })
    return rows


async def apply_round_statistics(db: AsyncSession, result: RoundResult, scope: Scope) -> int:
    """Fold one round into the scope's user statistics. Returns rows touched."""
    rows = round_increments(result, scope)
    if not rows:
        return 0

    stmt = insert_for(db, UserStatistic).values(rows)
    new = stmt.excluded
    best, worst = UserStatistic.best_placement, UserStatistic.worst_placement
    set_: dict[str, Any] = {col: getattr(UserStatistic, col) + getattr(new, col) for col in _ADDITIVE}
    set_["avg_placement"] = cast(UserStatistic.placement_total + new.placement_total, Float) / (
        UserStatistic.total_submissions + new.total_submissions
    )
    set_["best_placement"] = case(
        (or_(best.is_(None), new.best_placement < best), new.best_placement),
        else_=best,
    )
    set_["worst_placement"] = case(
        (or_(worst.is_(None), new.worst_placement > worst), new.worst_placement),
        else_=worst,
    )
    set_["updated_at"] = new.updated_at
    stmt = stmt.on_conflict_do_update(index_elements=["league_id", "scope_key", "user_id"], set_=set_)

    async with SqlAlchemyUnitOfWork(db).atomic() as session:
        await session.execute(stmt)

    logger.info("Applied round %d to statistics %s (%d players)", result.round_id, scope, len(rows))
    return len(rows)


# ── Category affinity ──


def merge_affinity(current: Mapping[str, int], additions: Iterable[str], limit: int = 50) -> dict[str, int]:
    """Add category observations to a count map and keep the ``limit`` largest.

    Ties on count are broken by category name so the kept set is stable.
    """
    counts = Counter({str(k): int(v) for k, v in current.items()})
    counts.update(additions)
    top = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]
    return dict(top)


async def lookup_categories(
    lookup: CategoryLookup,
    submissions: Sequence[SubmissionRecord],
    timeout: float,
    round_id: int,
) -> tuple[dict[int, list[str]], list[PipelineWarning]]:
    """Fetch categories for each submission. Failed or slow lookups become warnings."""

    async def _one(sub: SubmissionRecord) -> list[str]:
        return await asyncio.wait_for(lookup.categories_for(sub.provider, sub.provider_item_id), timeout=timeout)

    results = await asyncio.gather(*(_one(s) for s in submissions), return_exceptions=True)
    by_user: dict[int, list[str]] = {}
    warnings: list[PipelineWarning] = []
    for sub, outcome in zip(submissions, results):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            logger.warning("Category lookup failed for submission %d", sub.submission_id, exc_info=outcome)
            reason = "timed out" if isinstance(outcome, asyncio.TimeoutError) else str(outcome) or type(outcome).__name__
            warnings.append(
                PipelineWarning(
                    step="category_lookup",
                    message=f"submission {sub.submission_id}: {reason}",
                    round_id=round_id,
                )
            )
            continue
        by_user.setdefault(sub.user_id, []).extend(outcome)
    return by_user, warnings


async def apply_category_affinity(
    db: AsyncSession,
    categories_by_user: Mapping[int, list[str]],
    scope: Scope,
    limit: int = 50,
) -> int:
    """Merge looked-up categories into each user's affinity map for a scope.

    Only users that already have a statistics row in the scope are updated;
    rows are created by the placement upsert, never here. Returns rows updated.
    """
    if not categories_by_user:
        return 0
    user_ids = sorted(u for u, cats in categories_by_user.items() if cats)
    if not user_ids:
        return 0

    async with SqlAlchemyUnitOfWork(db).atomic() as session:
        result = await session.execute(
            select(UserStatistic)
            .where(
                UserStatistic.league_id == scope.league_id,
                UserStatistic.scope_key == scope.key,
                UserStatistic.user_id.in_(user_ids),
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        existing = {row.user_id: row for row in result.scalars().all()}
        for user_id in user_ids:
            row = existing.get(user_id)
            if row is None:
                logger.info("No statistics for user %d in %s, skipping category affinity", user_id, scope)
                continue
            row.category_affinity = merge_affinity(row.category_affinity or {}, categories_by_user[user_id], limit)
            row.updated_at = utcnow()
    return len(existing)


# ── Rebuild ──


def aggregate_statistics(results: Iterable[RoundResult], scope: Scope) -> dict[int, dict[str, Any]]:
    """Fold round results into fresh statistic rows keyed by user id."""
    stats: dict[int, dict[str, Any]] = {}
    for result in results:
        for inc in round_increments(result, scope):
            row = stats.get(inc["user_id"])
            if row is None:
                stats[inc["user_id"]] = dict(inc)
                continue
            for col in _ADDITIVE:
                row[col] += inc[col]
            row["best_placement"] = min(row["best_placement"], inc["best_placement"])
            row["worst_placement"] = max(row["worst_placement"], inc["worst_placement"])
            row["avg_placement"] = row["placement_total"] / row["total_submissions"]
            row["updated_at"] = inc["updated_at"]
    return stats


async def rebuild_statistics(db: AsyncSession, scope: Scope, round_ids: Sequence[int]) -> list[dict[str, Any]]:
    """Recompute placement and voting statistics for a scope from ``round_ids``.

    Category affinity cannot be replayed without the metadata service, so each
    user's existing map is carried over.
    """
    scored = await score_scope_rounds(db, scope, round_ids)
    stats = aggregate_statistics((result for _, result in scored), scope)

    async with SqlAlchemyUnitOfWork(db).atomic() as session:
        current = await session.execute(
            select(UserStatistic.user_id, UserStatistic.category_affinity).where(
                UserStatistic.league_id == scope.league_id,
                UserStatistic.scope_key == scope.key,
            )
        )
        for user_id, affinity in current.all():
            if user_id in stats and affinity:
                stats[user_id]["category_affinity"] = dict(affinity)

        await session.execute(
            delete(UserStatistic)
            .where(UserStatistic.league_id == scope.league_id, UserStatistic.scope_key == scope.key)
            .execution_options(synchronize_session=False)
        )
        rows = [stats[user_id] for user_id in sorted(stats)]
        if rows:
            await session.execute(insert(UserStatistic), rows)

    logger.info("Rebuilt statistics %s from %d rounds (%d players)", scope, len(scored), len(rows))
    return rows
