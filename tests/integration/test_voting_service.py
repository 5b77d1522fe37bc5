"""Integration tests for casting, reading and withdrawing votes."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import timedelta

import pytest
from sqlalchemy import select, update

from roundup.core.errors import Forbidden, PreconditionFailed, ValidationError, ViolationKind
from roundup.core.timeutil import utcnow
from roundup.core.unit_of_work import SqlAlchemyUnitOfWork
from roundup.db.models import Round, Vote
from roundup.integrations.membership import SqlMembershipDirectory
from roundup.voting.service import cast_votes, clear_votes, get_my_votes
from roundup.voting.validator import VoteInput, VoteKind

pytestmark = pytest.mark.asyncio

OWNER, ALICE, BOB, CAROL = 1, 2, 3, 4


def up(submission_id: int, points: int) -> VoteInput:
    return VoteInput(submission_id=submission_id, points=points, kind=VoteKind.UPVOTE)


async def _open_round(seed, settings=None, voting_config=None):
    league, season = await seed.league(settings=settings)
    round_ = await seed.round(
        league, season, status="voting", voting_end=utcnow() + timedelta(days=1), voting_config=voting_config,
    )
    subs = {u: await seed.submission(round_, u) for u in (ALICE, BOB, CAROL)}
    return round_, subs


async def _stored(db, round_id: int, user_id: int) -> list[tuple[int, int]]:
    rows = await db.execute(
        select(Vote.submission_id, Vote.points).where(Vote.round_id == round_id, Vote.user_id == user_id)
    )
    return sorted(rows.all())


class TestCastVotes:

    async def test_cast_and_replace(self, seed, db_session):
        round_, subs = await _open_round(seed)
        members = SqlMembershipDirectory(db_session)

        await cast_votes(db_session, round_.id, ALICE, [up(subs[BOB].id, 3), up(subs[CAROL].id, 2)], members)
        await cast_votes(db_session, round_.id, ALICE, [up(subs[CAROL].id, 3)], members)

        assert await _stored(db_session, round_.id, ALICE) == [(subs[CAROL].id, 3)]

    async def test_rejected_batch_keeps_previous_votes(self, seed, db_session):
        round_, subs = await _open_round(seed)
        members = SqlMembershipDirectory(db_session)
        await cast_votes(db_session, round_.id, ALICE, [up(subs[BOB].id, 3)], members)

        with pytest.raises(ValidationError) as exc_info:
            await cast_votes(db_session, round_.id, ALICE, [up(subs[ALICE].id, 3)], members)

        assert exc_info.value.kind == ViolationKind.SELF_VOTE_FORBIDDEN
        assert await _stored(db_session, round_.id, ALICE) == [(subs[BOB].id, 3)]

    async def test_non_member_forbidden(self, seed, db_session):
        round_, subs = await _open_round(seed)
        with pytest.raises(Forbidden):
            await cast_votes(db_session, round_.id, 77, [up(subs[BOB].id, 3)], SqlMembershipDirectory(db_session))

    async def test_round_override_applies(self, seed, db_session):
        round_, subs = await _open_round(seed, voting_config={"votingStyle": "single_pick"})
        members = SqlMembershipDirectory(db_session)
        with pytest.raises(ValidationError) as exc_info:
            await cast_votes(db_session, round_.id, OWNER, [up(subs[BOB].id, 3)], members)
        assert exc_info.value.kind == ViolationKind.INVALID_POINT_VALUE
        await cast_votes(db_session, round_.id, OWNER, [up(subs[BOB].id, 1)], members)

    async def test_league_settings_apply(self, seed, db_session):
        round_, subs = await _open_round(seed, settings={"allowSelfVote": True})
        await cast_votes(
            db_session, round_.id, ALICE, [up(subs[ALICE].id, 3)], SqlMembershipDirectory(db_session),
        )
        assert await _stored(db_session, round_.id, ALICE) == [(subs[ALICE].id, 3)]

    async def test_deadline_passed(self, seed, db_session):
        round_, subs = await _open_round(seed)
        later = utcnow() + timedelta(days=2)
        with pytest.raises(PreconditionFailed):
            await cast_votes(
                db_session, round_.id, ALICE, [up(subs[BOB].id, 3)], SqlMembershipDirectory(db_session), now=later,
            )


class TestMyVotes:

    async def test_get_and_clear(self, seed, db_session):
        round_, subs = await _open_round(seed)
        members = SqlMembershipDirectory(db_session)
        await cast_votes(db_session, round_.id, ALICE, [up(subs[BOB].id, 2), up(subs[CAROL].id, 3)], members)

        mine = await get_my_votes(db_session, round_.id, ALICE, members)
        assert [(v.submission_id, v.points) for v in mine] == [(subs[CAROL].id, 3), (subs[BOB].id, 2)]

        assert await clear_votes(db_session, round_.id, ALICE, members) == 2
        assert await _stored(db_session, round_.id, ALICE) == []

    async def test_clear_after_voting_closed(self, seed, db_session):
        league, season = await seed.league()
        round_ = await seed.round(league, season, status="revealed")
        with pytest.raises(ValidationError) as exc_info:
            await clear_votes(db_session, round_.id, ALICE, SqlMembershipDirectory(db_session))
        assert exc_info.value.kind == ViolationKind.ROUND_NOT_VOTING


class TestRankStyle:

    async def test_rank_prefix_accepted(self, seed, db_session):
        round_, subs = await _open_round(seed, settings={"votingStyle": "rank"})
        await cast_votes(
            db_session, round_.id, OWNER, [up(subs[BOB].id, 2), up(subs[ALICE].id, 3)], SqlMembershipDirectory(db_session),
        )
        assert await _stored(db_session, round_.id, OWNER) == sorted([(subs[BOB].id, 2), (subs[ALICE].id, 3)])

    async def test_rank_repeated_value_rejected(self, seed, db_session):
        round_, subs = await _open_round(seed, settings={"votingStyle": "rank"})
        with pytest.raises(ValidationError) as exc_info:
            await cast_votes(
                db_session, round_.id, OWNER, [up(subs[BOB].id, 3), up(subs[ALICE].id, 3)],
                SqlMembershipDirectory(db_session),
            )
        assert exc_info.value.kind == ViolationKind.POINT_SEQUENCE_MISMATCH


class _RevealFirst(SqlAlchemyUnitOfWork):
    """Commits a reveal of every voting round just as the write unit opens."""

    @asynccontextmanager
    async def atomic(self):
        await self.session.execute(update(Round).where(Round.status == "voting").values(status="revealed"))
        await self.session.commit()
        async with super().atomic() as session:
            yield session


class TestConcurrentReveal:

    async def test_cast_rejected_when_round_revealed_before_write(self, seed, db_session, monkeypatch):
        round_, subs = await _open_round(seed)
        round_id = round_.id
        monkeypatch.setattr("roundup.voting.service.SqlAlchemyUnitOfWork", _RevealFirst)

        with pytest.raises(ValidationError) as exc_info:
            await cast_votes(db_session, round_id, ALICE, [up(subs[BOB].id, 3)], SqlMembershipDirectory(db_session))

        assert exc_info.value.kind == ViolationKind.ROUND_NOT_VOTING
        assert await _stored(db_session, round_id, ALICE) == []

    async def test_clear_rejected_when_round_revealed_before_write(self, seed, db_session, monkeypatch):
        round_, subs = await _open_round(seed)
        round_id = round_.id
        members = SqlMembershipDirectory(db_session)
        bob_submission = subs[BOB].id
        await cast_votes(db_session, round_id, ALICE, [up(bob_submission, 3)], members)
        monkeypatch.setattr("roundup.voting.service.SqlAlchemyUnitOfWork", _RevealFirst)

        with pytest.raises(ValidationError):
            await clear_votes(db_session, round_id, ALICE, members)

        assert await _stored(db_session, round_id, ALICE) == [(bob_submission, 3)]
