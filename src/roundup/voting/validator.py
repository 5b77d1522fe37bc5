"""Vote batch validation.

A batch is every vote one user casts in one round. Rules run in a fixed order
and the first failure wins, so the same bad batch always reports the same
violation:

1. every vote targets a submission in the round
2. no vote targets the voter's own submission unless self-voting is allowed
3. upvote/downvote counts are within limits and downvotes are enabled
4. point values fit the voting style
5. the round is open for voting and its deadline has not passed
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from roundup.core.errors import PreconditionFailed, ValidationError, ViolationKind
from roundup.core.timeutil import as_utc
from roundup.rounds.status import RoundStatus
from roundup.voting.config import PointsStyle, RankStyle, SinglePickStyle, VotingConfig


class VoteKind(str, Enum):
    UPVOTE = "upvote"
    DOWNVOTE = "downvote"


@dataclass(frozen=True)
class VoteInput:
    submission_id: int
    points: int
    kind: VoteKind


@dataclass(frozen=True)
class VotingWindow:
    status: str
    voting_end: datetime | None
    now: datetime


def validate_vote_batch(
    votes: Sequence[VoteInput],
    config: VotingConfig,
    round_submission_ids: Collection[int],
    own_submission_ids: Collection[int],
    window: VotingWindow,
) -> None:
    """Raise ValidationError (or PreconditionFailed) for the first broken rule."""
    known = set(round_submission_ids)
    for vote in votes:
        if vote.submission_id not in known:
            raise ValidationError(
                ViolationKind.UNKNOWN_SUBMISSION,
                f"Submission {vote.submission_id} is not part of this round",
                submission_id=vote.submission_id,
            )

    if not config.allow_self_vote:
        own = set(own_submission_ids)
        for vote in votes:
            if vote.submission_id in own:
                raise ValidationError(ViolationKind.SELF_VOTE_FORBIDDEN, "You cannot vote for your own submission")

    upvotes = [v for v in votes if v.kind == VoteKind.UPVOTE]
    downvotes = [v for v in votes if v.kind == VoteKind.DOWNVOTE]
    _check_counts(upvotes, downvotes, config)
    _check_style(upvotes, downvotes, config)
    check_voting_window(window)


def _check_counts(upvotes: list[VoteInput], downvotes: list[VoteInput], config: VotingConfig) -> None:
    if len(upvotes) > config.max_upvotes:
        raise ValidationError(
            ViolationKind.TOO_MANY_UPVOTES,
            f"At most {config.max_upvotes} upvotes allowed",
            limit=config.max_upvotes,
        )
    if downvotes and not config.downvoting_enabled:
        raise ValidationError(ViolationKind.DOWNVOTING_DISABLED, "Downvoting is disabled for this round")
    if len(downvotes) > config.max_downvotes:
        raise ValidationError(
            ViolationKind.TOO_MANY_DOWNVOTES,
            f"At most {config.max_downvotes} downvotes allowed",
            limit=config.max_downvotes,
        )


def _check_style(upvotes: list[VoteInput], downvotes: list[VoteInput], config: VotingConfig) -> None:
    style = config.style
    if isinstance(style, SinglePickStyle):
        if len(upvotes) > 1:
            raise ValidationError(ViolationKind.TOO_MANY_UPVOTES, "Single pick allows one upvote", limit=1)
        if any(v.points != 1 for v in upvotes):
            raise ValidationError(ViolationKind.INVALID_POINT_VALUE, "A single pick is worth exactly 1 point")
        if any(v.points != -1 for v in downvotes):
            raise ValidationError(ViolationKind.INVALID_POINT_VALUE, "A single-pick downvote is worth exactly -1")
    elif isinstance(style, RankStyle):
        _check_rank_sequence(upvotes, style.upvote_points, "upvote")
        _check_rank_sequence(downvotes, style.downvote_points, "downvote")
    elif isinstance(style, PointsStyle):
        _check_point_set(upvotes, style.upvote_points, "upvote")
        _check_point_set(downvotes, style.downvote_points, "downvote")
    else:  # pragma: no cover
        raise TypeError(f"Unsupported voting style: {style!r}")


def _check_rank_sequence(votes: list[VoteInput], sequence: tuple[int, ...], label: str) -> None:
    if not votes:
        return
    expected = sorted(sequence[: len(votes)])
    actual = sorted(v.points for v in votes)
    if actual != expected:
        raise ValidationError(
            ViolationKind.POINT_SEQUENCE_MISMATCH,
            f"Ranked {label}s must use the values {expected} once each",
            expected=expected,
        )


def _check_point_set(votes: list[VoteInput], allowed: tuple[int, ...], label: str) -> None:
    allowed_set = set(allowed)
    for vote in votes:
        if vote.points not in allowed_set:
            raise ValidationError(
                ViolationKind.INVALID_POINT_VALUE,
                f"{vote.points} is not a valid {label} value",
                allowed=sorted(allowed_set, reverse=True),
            )


def check_voting_window(window: VotingWindow) -> None:
    if window.status != RoundStatus.VOTING:
        raise ValidationError(ViolationKind.ROUND_NOT_VOTING, "Round is not open for voting")
    if window.voting_end is not None and as_utc(window.voting_end) <= as_utc(window.now):
        raise PreconditionFailed(ViolationKind.DEADLINE_PASSED, "Voting deadline has passed")
