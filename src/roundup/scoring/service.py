"""Loading persisted rounds into the scoring engine."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from roundup.core.collaborators import MembershipDirectory
from roundup.core.errors import InvalidState, NotFound
from roundup.core.scope import Scope
from roundup.db.models import Round, Season, Submission, Vote
from roundup.integrations.membership import require_member
from roundup.rounds.status import RESULTS_VISIBLE, RoundStatus
from roundup.scoring.engine import RoundResult, SubmissionRecord, VoteRecord, score_round


async def get_round(db: AsyncSession, round_id: int) -> Round:
    result = await db.execute(select(Round).where(Round.id == round_id).execution_options(populate_existing=True))
    round_ = result.scalar_one_or_none()
    if round_ is None:
        raise NotFound(f"Round {round_id} not found", round_id=round_id)
    return round_


async def resolve_scope(db: AsyncSession, league_id: int, season_id: int | None) -> Scope:
    """Scope for a league, or for one of its seasons. NotFound for a foreign season."""
    if season_id is not None:
        result = await db.execute(select(Season.league_id).where(Season.id == season_id))
        if result.scalar_one_or_none() != league_id:
            raise NotFound(f"Season {season_id} not found in league {league_id}", season_id=season_id)
    return Scope(league_id, season_id)


async def load_submissions(db: AsyncSession, round_id: int) -> list[Submission]:
    result = await db.execute(
        select(Submission).where(Submission.round_id == round_id).order_by(Submission.id)
    )
    return list(result.scalars().all())


async def score_persisted_round(db: AsyncSession, round_id: int) -> RoundResult:
    """Run the scoring engine over a round's stored submissions and votes."""
    submissions = await load_submissions(db, round_id)
    vote_rows = await db.execute(
        select(Vote.user_id, Vote.submission_id, Vote.points, Vote.kind).where(Vote.round_id == round_id)
    )
    return score_round(
        round_id,
        [
            SubmissionRecord(
                submission_id=s.id,
                user_id=s.user_id,
                created_at=s.created_at,
                provider=s.provider,
                provider_item_id=s.provider_item_id,
            )
            for s in submissions
        ],
        [VoteRecord(user_id=r.user_id, submission_id=r.submission_id, points=r.points, kind=r.kind) for r in vote_rows],
    )


async def get_round_results(
    db: AsyncSession,
    round_id: int,
    viewer_id: int,
    membership: MembershipDirectory,
) -> tuple[Round, RoundResult, dict[int, Submission]]:
    """Scored results of a revealed or archived round, visible to league members."""
    round_ = await get_round(db, round_id)
    await require_member(membership, round_.league_id, viewer_id)
    if RoundStatus(round_.status) not in RESULTS_VISIBLE:
        raise InvalidState("Results are not available until the round is revealed", status=round_.status)
    result = await score_persisted_round(db, round_id)
    submissions = {s.id: s for s in await load_submissions(db, round_id)}
    return round_, result, submissions


async def score_scope_rounds(
    db: AsyncSession,
    scope: Scope,
    round_ids: Sequence[int],
) -> list[tuple[Round, RoundResult]]:
    """Score the given rounds for a standings rebuild, oldest round first.

    Every round must belong to the scope (league, and season for season
    scopes) and have its results revealed.
    """
    wanted = set(round_ids)
    if not wanted:
        return []
    result = await db.execute(select(Round).where(Round.id.in_(wanted)).order_by(Round.created_at, Round.id))
    rounds = list(result.scalars().all())

    missing = wanted - {r.id for r in rounds}
    if missing:
        raise NotFound(f"Rounds not found: {sorted(missing)}", round_ids=sorted(missing))
    for round_ in rounds:
        if round_.league_id != scope.league_id or (
            scope.season_id is not None and round_.season_id != scope.season_id
        ):
            raise NotFound(f"Round {round_.id} is not part of {scope}", round_id=round_.id)
        if RoundStatus(round_.status) not in RESULTS_VISIBLE:
            raise InvalidState(f"Round {round_.id} has not been revealed", round_id=round_.id, status=round_.status)

    return [(round_, await score_persisted_round(db, round_.id)) for round_ in rounds]


async def revealed_round_ids(db: AsyncSession, scope: Scope) -> list[int]:
    """All revealed or archived rounds in a scope."""
    stmt = select(Round.id).where(
        Round.league_id == scope.league_id,
        Round.status.in_([s.value for s in RESULTS_VISIBLE]),
    )
    if scope.season_id is not None:
        stmt = stmt.where(Round.season_id == scope.season_id)
    result = await db.execute(stmt.order_by(Round.created_at, Round.id))
    return list(result.scalars().all())
