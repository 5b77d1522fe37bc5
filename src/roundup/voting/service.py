"""Vote casting: membership check, validation, atomic replacement."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from roundup.core.collaborators import MembershipDirectory
from roundup.core.errors import NotFound
from roundup.core.timeutil import utcnow
from roundup.core.unit_of_work import SqlAlchemyUnitOfWork
from roundup.db.models import League, Round, Submission, Vote
from roundup.integrations.membership import require_member
from roundup.scoring.service import get_round
from roundup.voting.config import VotingConfig, resolve_voting_config
from roundup.voting.validator import VoteInput, VotingWindow, check_voting_window, validate_vote_batch

logger = logging.getLogger(__name__)


async def get_voting_config(db: AsyncSession, league_id: int, round_override: dict | None) -> VotingConfig:
    result = await db.execute(select(League.settings).where(League.id == league_id))
    league_settings = result.scalar_one_or_none() or {}
    return resolve_voting_config(league_settings, round_override)


async def _lock_open_round(db: AsyncSession, round_id: int, now: datetime) -> None:
    """Lock the round row and re-check the voting window inside the write.

    Holds off a concurrent reveal, and serialises two batches from the same
    voter, until the vote replacement commits.
    """
    result = await db.execute(
        select(Round.status, Round.voting_end).where(Round.id == round_id).with_for_update()
    )
    row = result.one_or_none()
    if row is None:
        raise NotFound(f"Round {round_id} not found", round_id=round_id)
    check_voting_window(VotingWindow(status=row.status, voting_end=row.voting_end, now=now))


async def cast_votes(
    db: AsyncSession,
    round_id: int,
    user_id: int,
    votes: Sequence[VoteInput],
    membership: MembershipDirectory,
    now: datetime | None = None,
) -> list[Vote]:
    """Replace the user's votes for a round with ``votes``.

    Validation happens before anything is written; the delete and insert
    commit together or not at all.
    """
    now = now or utcnow()
    round_ = await get_round(db, round_id)
    await require_member(membership, round_.league_id, user_id)

    config = await get_voting_config(db, round_.league_id, round_.voting_config)
    rows = await db.execute(select(Submission.id, Submission.user_id).where(Submission.round_id == round_id))
    submission_rows = rows.all()
    validate_vote_batch(
        votes,
        config,
        round_submission_ids=[r.id for r in submission_rows],
        own_submission_ids=[r.id for r in submission_rows if r.user_id == user_id],
        window=VotingWindow(status=round_.status, voting_end=round_.voting_end, now=now),
    )

    new_votes = [
        Vote(
            round_id=round_id,
            user_id=user_id,
            submission_id=v.submission_id,
            points=v.points,
            kind=v.kind.value,
            created_at=now,
        )
        for v in votes
    ]
    async with SqlAlchemyUnitOfWork(db).atomic() as session:
        await _lock_open_round(session, round_id, now)
        await session.execute(delete(Vote).where(Vote.round_id == round_id, Vote.user_id == user_id))
        session.add_all(new_votes)

    logger.info("User %d cast %d votes in round %d", user_id, len(new_votes), round_id)
    return new_votes


async def clear_votes(
    db: AsyncSession,
    round_id: int,
    user_id: int,
    membership: MembershipDirectory,
    now: datetime | None = None,
) -> int:
    """Withdraw all of the user's votes while voting is still open."""
    round_ = await get_round(db, round_id)
    await require_member(membership, round_.league_id, user_id)
    now = now or utcnow()
    check_voting_window(VotingWindow(status=round_.status, voting_end=round_.voting_end, now=now))

    async with SqlAlchemyUnitOfWork(db).atomic() as session:
        await _lock_open_round(session, round_id, now)
        result = await session.execute(delete(Vote).where(Vote.round_id == round_id, Vote.user_id == user_id))
    return result.rowcount or 0


async def get_my_votes(
    db: AsyncSession,
    round_id: int,
    user_id: int,
    membership: MembershipDirectory,
) -> list[Vote]:
    round_ = await get_round(db, round_id)
    await require_member(membership, round_.league_id, user_id)
    result = await db.execute(
        select(Vote).where(Vote.round_id == round_id, Vote.user_id == user_id).order_by(Vote.points.desc(), Vote.id)
    )
    return list(result.scalars().all())
