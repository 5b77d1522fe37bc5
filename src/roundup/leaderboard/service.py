"""Leaderboard queries, CSV export and scope rebuilds."""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from roundup.core.collaborators import MembershipDirectory
from roundup.db.models import LeaderboardEntry
from roundup.integrations.membership import require_manager, require_member
from roundup.leaderboard.aggregator import load_entries, rebuild
from roundup.scoring.service import resolve_scope, revealed_round_ids
from roundup.statistics.aggregator import rebuild_statistics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankedEntry:
    rank: int
    entry: LeaderboardEntry


@dataclass(frozen=True)
class RebuildReport:
    scope: str
    rounds: int
    leaderboard_rows: int
    statistic_rows: int


async def get_leaderboard(
    db: AsyncSession,
    league_id: int,
    viewer_id: int,
    membership: MembershipDirectory,
    season_id: int | None = None,
) -> list[RankedEntry]:
    await require_member(membership, league_id, viewer_id)
    scope = await resolve_scope(db, league_id, season_id)
    return [RankedEntry(rank=i, entry=e) for i, e in enumerate(await load_entries(db, scope), start=1)]


LEADERBOARD_CSV_HEADER = [
    "Rank",
    "Player",
    "Total Points",
    "Wins",
    "Rounds Played",
    "Upvotes Received",
    "Downvotes Received",
]


def leaderboard_to_csv(entries: Iterable[RankedEntry]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(LEADERBOARD_CSV_HEADER)
    for ranked in entries:
        e = ranked.entry
        writer.writerow([
            ranked.rank,
            e.user_id,
            e.total_points,
            e.wins,
            e.rounds_participated,
            e.upvotes_received,
            e.downvotes_received,
        ])
    return buf.getvalue()


async def rebuild_scope(
    db: AsyncSession,
    league_id: int,
    actor_id: int,
    membership: MembershipDirectory,
    season_id: int | None = None,
) -> RebuildReport:
    """Recompute a scope's leaderboard and statistics from every revealed round in it."""
    await require_manager(membership, league_id, actor_id)
    scope = await resolve_scope(db, league_id, season_id)
    round_ids = await revealed_round_ids(db, scope)
    entries = await rebuild(db, scope, round_ids)
    stats = await rebuild_statistics(db, scope, round_ids)
    logger.info("User %d rebuilt %s", actor_id, scope)
    return RebuildReport(
        scope=scope.key,
        rounds=len(round_ids),
        leaderboard_rows=len(entries),
        statistic_rows=len(stats),
    )
