"""Round scoring. Pure functions, no I/O.

Submissions are ordered by:
1. total points (descending)
2. upvotes received (descending)
3. submission time (ascending, earlier wins)
4. submission id (ascending) so the order is total even on identical timestamps

``placement`` is the strict 1-based position in that order and decides the
winner. ``position`` is the display rank, shared by submissions with equal
total points (1, 1, 3).
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from roundup.core.timeutil import as_utc


@dataclass(frozen=True)
class SubmissionRecord:
    submission_id: int
    user_id: int
    created_at: datetime
    provider: str = ""
    provider_item_id: str = ""


@dataclass(frozen=True)
class VoteRecord:
    user_id: int
    submission_id: int
    points: int
    kind: str


@dataclass(frozen=True)
class ScoredSubmission:
    submission_id: int
    user_id: int
    created_at: datetime
    total_points: int
    upvote_count: int
    downvote_count: int
    placement: int
    position: int


@dataclass
class UserRoundTally:
    """One participant's share of a round result."""

    user_id: int
    total_points: int = 0
    upvotes_received: int = 0
    downvotes_received: int = 0
    placement: int = 0
    won: bool = False


@dataclass(frozen=True)
class VotesCast:
    total: int = 0
    upvotes: int = 0
    downvotes: int = 0


@dataclass
class RoundResult:
    round_id: int
    ranked: list[ScoredSubmission]
    tallies: dict[int, UserRoundTally] = field(default_factory=dict)
    votes_cast: dict[int, VotesCast] = field(default_factory=dict)

    @property
    def winner_user_id(self) -> int | None:
        return self.ranked[0].user_id if self.ranked else None

    @property
    def participants(self) -> list[int]:
        return sorted(self.tallies)


def ranking_key(total_points: int, upvote_count: int, created_at: datetime, submission_id: int) -> tuple:
    return (-total_points, -upvote_count, as_utc(created_at), submission_id)


def score_round(
    round_id: int,
    submissions: Iterable[SubmissionRecord],
    votes: Iterable[VoteRecord],
) -> RoundResult:
    """Score every submission of a round and derive per-user tallies."""
    submissions = list(submissions)
    votes = list(votes)

    points: dict[int, int] = defaultdict(int)
    ups: dict[int, int] = defaultdict(int)
    downs: dict[int, int] = defaultdict(int)
    cast: dict[int, list[int]] = defaultdict(lambda: [0, 0, 0])
    for vote in votes:
        points[vote.submission_id] += vote.points
        counter = cast[vote.user_id]
        counter[0] += 1
        if vote.kind == "upvote":
            ups[vote.submission_id] += 1
            counter[1] += 1
        else:
            downs[vote.submission_id] += 1
            counter[2] += 1

    ordered = sorted(
        submissions,
        key=lambda s: ranking_key(points[s.submission_id], ups[s.submission_id], s.created_at, s.submission_id),
    )

    ranked: list[ScoredSubmission] = []
    position = 0
    previous_total: int | None = None
    for index, sub in enumerate(ordered, start=1):
        total = points[sub.submission_id]
        if total != previous_total:
            position = index
            previous_total = total
        ranked.append(
            ScoredSubmission(
                submission_id=sub.submission_id,
                user_id=sub.user_id,
                created_at=sub.created_at,
                total_points=total,
                upvote_count=ups[sub.submission_id],
                downvote_count=downs[sub.submission_id],
                placement=index,
                position=position,
            )
        )

    result = RoundResult(round_id=round_id, ranked=ranked)
    winner = result.winner_user_id
    for scored in ranked:
        tally = result.tallies.get(scored.user_id)
        if tally is None:
            tally = UserRoundTally(user_id=scored.user_id, placement=scored.placement)
            result.tallies[scored.user_id] = tally
        tally.total_points += scored.total_points
        tally.upvotes_received += scored.upvote_count
        tally.downvotes_received += scored.downvote_count
        tally.placement = min(tally.placement, scored.placement)
    if winner is not None:
        result.tallies[winner].won = True

    result.votes_cast = {
        user_id: VotesCast(total=c[0], upvotes=c[1], downvotes=c[2]) for user_id, c in sorted(cast.items())
    }
    return result
