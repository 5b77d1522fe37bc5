"""Read side of user statistics: stored rows, history, win streak, divisive picks and member comparisons."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from roundup.core.collaborators import MembershipDirectory
from roundup.core.scope import Scope
from roundup.db.models import LeaderboardEntry, Round, Submission, UserStatistic, Vote
from roundup.integrations.membership import require_member
from roundup.rounds.status import RESULTS_VISIBLE
from roundup.scoring.service import resolve_scope, score_persisted_round


@dataclass(frozen=True)
class HistoryItem:
    round_id: int
    theme: str
    submission_id: int
    title: str
    creator: str
    placement: int
    position: int
    points: int


@dataclass
class UserStatisticsView:
    league_id: int
    user_id: int
    season: UserStatistic | None
    alltime: UserStatistic | None
    win_streak: int
    history: list[HistoryItem]


def longest_win_streak(placements: Iterable[int]) -> int:
    """Longest run of consecutive first places."""
    best = current = 0
    for placement in placements:
        current = current + 1 if placement == 1 else 0
        best = max(best, current)
    return best


async def get_statistic(db: AsyncSession, scope: Scope, user_id: int) -> UserStatistic | None:
    result = await db.execute(
        select(UserStatistic)
        .where(
            UserStatistic.league_id == scope.league_id,
            UserStatistic.scope_key == scope.key,
            UserStatistic.user_id == user_id,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_submission_history(
    db: AsyncSession,
    league_id: int,
    user_id: int,
    season_id: int | None = None,
) -> list[HistoryItem]:
    """The user's submissions in revealed/archived rounds, oldest round first."""
    stmt = (
        select(Submission, Round)
        .join(Round, Round.id == Submission.round_id)
        .where(
            Round.league_id == league_id,
            Round.status.in_([s.value for s in RESULTS_VISIBLE]),
            Submission.user_id == user_id,
        )
        .order_by(Round.created_at, Round.id)
    )
    if season_id is not None:
        stmt = stmt.where(Round.season_id == season_id)
    rows = (await db.execute(stmt)).all()

    history = []
    for submission, round_ in rows:
        result = await score_persisted_round(db, round_.id)
        scored = next(s for s in result.ranked if s.submission_id == submission.id)
        history.append(
            HistoryItem(
                round_id=round_.id,
                theme=round_.theme,
                submission_id=submission.id,
                title=submission.title,
                creator=submission.creator,
                placement=scored.placement,
                position=scored.position,
                points=scored.total_points,
            )
        )
    return history


async def get_user_statistics(
    db: AsyncSession,
    league_id: int,
    user_id: int,
    viewer_id: int,
    membership: MembershipDirectory,
    season_id: int | None = None,
) -> UserStatisticsView:
    await require_member(membership, league_id, viewer_id)
    season = await get_statistic(db, Scope(league_id, season_id), user_id) if season_id is not None else None
    alltime = await get_statistic(db, Scope(league_id), user_id)
    history = await get_submission_history(db, league_id, user_id, season_id)
    return UserStatisticsView(
        league_id=league_id,
        user_id=user_id,
        season=season,
        alltime=alltime,
        win_streak=longest_win_streak(item.placement for item in history),
        history=history,
    )


HISTORY_CSV_HEADER = ["Round Theme", "Title", "Creator", "Placement", "Points Earned"]


def history_to_csv(history: Iterable[HistoryItem]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(HISTORY_CSV_HEADER)
    for item in history:
        writer.writerow([item.theme, item.title, item.creator, item.placement, item.points])
    return buf.getvalue()


# ── Controversial submissions ──


@dataclass(frozen=True)
class ControversialSubmission:
    submission_id: int
    round_id: int
    user_id: int
    title: str
    creator: str
    theme: str
    upvote_count: int
    downvote_count: int

    @property
    def controversy_score(self) -> int:
        return self.upvote_count * self.downvote_count


async def get_controversial_submissions(
    db: AsyncSession,
    league_id: int,
    viewer_id: int,
    membership: MembershipDirectory,
    season_id: int | None = None,
    limit: int = 10,
) -> list[ControversialSubmission]:
    """Revealed submissions that drew both upvotes and downvotes, most divisive first.

    Divisiveness is upvote count times downvote count; ties go to the lower
    submission id.
    """
    await require_member(membership, league_id, viewer_id)
    scope = await resolve_scope(db, league_id, season_id)

    upvotes = func.coalesce(func.sum(case((Vote.kind == "upvote", 1), else_=0)), 0)
    downvotes = func.coalesce(func.sum(case((Vote.kind == "downvote", 1), else_=0)), 0)
    stmt = (
        select(
            Submission.id,
            Submission.round_id,
            Submission.user_id,
            Submission.title,
            Submission.creator,
            Round.theme,
            upvotes.label("upvotes"),
            downvotes.label("downvotes"),
        )
        .join(Round, Round.id == Submission.round_id)
        .outerjoin(Vote, Vote.submission_id == Submission.id)
        .where(
            Round.league_id == scope.league_id,
            Round.status.in_([s.value for s in RESULTS_VISIBLE]),
        )
        .group_by(
            Submission.id,
            Submission.round_id,
            Submission.user_id,
            Submission.title,
            Submission.creator,
            Round.theme,
        )
        .having(and_(upvotes >= 1, downvotes >= 1))
        .order_by((upvotes * downvotes).desc(), Submission.id)
        .limit(limit)
    )
    if scope.season_id is not None:
        stmt = stmt.where(Round.season_id == scope.season_id)

    rows = (await db.execute(stmt)).all()
    return [
        ControversialSubmission(
            submission_id=r.id,
            round_id=r.round_id,
            user_id=r.user_id,
            title=r.title,
            creator=r.creator,
            theme=r.theme,
            upvote_count=int(r.upvotes),
            downvote_count=int(r.downvotes),
        )
        for r in rows
    ]


# ── Member comparison ──


@dataclass(frozen=True)
class MemberSummary:
    user_id: int
    total_points: int
    wins: int
    rounds_played: int
    upvotes_received: int
    downvotes_received: int
    avg_placement: float | None


@dataclass(frozen=True)
class HeadToHead:
    first_wins: int
    second_wins: int
    ties: int
    common_rounds: int


@dataclass(frozen=True)
class MemberComparison:
    scope: str
    first: MemberSummary
    second: MemberSummary
    head_to_head: HeadToHead


async def _member_summary(db: AsyncSession, scope: Scope, user_id: int) -> MemberSummary:
    result = await db.execute(
        select(LeaderboardEntry)
        .where(
            LeaderboardEntry.league_id == scope.league_id,
            LeaderboardEntry.scope_key == scope.key,
            LeaderboardEntry.user_id == user_id,
        )
        .execution_options(populate_existing=True)
    )
    entry = result.scalar_one_or_none()
    stat = await get_statistic(db, scope, user_id)
    return MemberSummary(
        user_id=user_id,
        total_points=entry.total_points if entry else 0,
        wins=entry.wins if entry else 0,
        rounds_played=entry.rounds_participated if entry else 0,
        upvotes_received=entry.upvotes_received if entry else 0,
        downvotes_received=entry.downvotes_received if entry else 0,
        avg_placement=stat.avg_placement if stat else None,
    )


def head_to_head(first: Iterable[HistoryItem], second: Iterable[HistoryItem]) -> HeadToHead:
    """Compare display positions in every round both members submitted to.

    Equal positions (same total points) count as a tie.
    """
    first_by_round = {item.round_id: item.position for item in first}
    second_by_round = {item.round_id: item.position for item in second}
    common = sorted(first_by_round.keys() & second_by_round.keys())
    first_wins = sum(1 for r in common if first_by_round[r] < second_by_round[r])
    second_wins = sum(1 for r in common if second_by_round[r] < first_by_round[r])
    return HeadToHead(
        first_wins=first_wins,
        second_wins=second_wins,
        ties=len(common) - first_wins - second_wins,
        common_rounds=len(common),
    )


async def compare_members(
    db: AsyncSession,
    league_id: int,
    first_user_id: int,
    second_user_id: int,
    viewer_id: int,
    membership: MembershipDirectory,
    season_id: int | None = None,
) -> MemberComparison:
    """Two members' standings side by side, plus their head-to-head record."""
    await require_member(membership, league_id, viewer_id)
    scope = await resolve_scope(db, league_id, season_id)
    first_history = await get_submission_history(db, league_id, first_user_id, season_id)
    second_history = await get_submission_history(db, league_id, second_user_id, season_id)
    return MemberComparison(
        scope=scope.key,
        first=await _member_summary(db, scope, first_user_id),
        second=await _member_summary(db, scope, second_user_id),
        head_to_head=head_to_head(first_history, second_history),
    )
