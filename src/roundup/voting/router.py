"""Voting endpoints: cast (replace), view and withdraw your votes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from roundup.auth.dependencies import get_current_user_id
from roundup.core.collaborators import MembershipDirectory
from roundup.dependencies import get_db, get_membership
from roundup.voting.schemas import CastVotesRequest, ClearVotesResponse, MyVotesResponse, VoteResponse
from roundup.voting.service import cast_votes, clear_votes, get_my_votes
from roundup.voting.validator import VoteInput

router = APIRouter(prefix="/api/v1", tags=["Voting"])


@router.put("/rounds/{round_id}/votes", response_model=MyVotesResponse)
async def put_votes(
    round_id: int,
    body: CastVotesRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    membership: MembershipDirectory = Depends(get_membership),
) -> MyVotesResponse:
    """Replace all of your votes for the round with this batch."""
    votes = [VoteInput(submission_id=v.submission_id, points=v.points, kind=v.kind) for v in body.votes]
    saved = await cast_votes(db, round_id, user_id, votes, membership)
    return MyVotesResponse(round_id=round_id, votes=[VoteResponse.model_validate(v) for v in saved])


@router.get("/rounds/{round_id}/votes/me", response_model=MyVotesResponse)
async def get_votes_me(
    round_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    membership: MembershipDirectory = Depends(get_membership),
) -> MyVotesResponse:
    votes = await get_my_votes(db, round_id, user_id, membership)
    return MyVotesResponse(round_id=round_id, votes=[VoteResponse.model_validate(v) for v in votes])


@router.delete("/rounds/{round_id}/votes/me", response_model=ClearVotesResponse)
async def delete_votes_me(
    round_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    membership: MembershipDirectory = Depends(get_membership),
) -> ClearVotesResponse:
    deleted = await clear_votes(db, round_id, user_id, membership)
    return ClearVotesResponse(round_id=round_id, deleted=deleted)
