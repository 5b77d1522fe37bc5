"""Pydantic request/response models for voting endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from roundup.voting.validator import VoteKind


class VoteItem(BaseModel):
    submission_id: int
    points: int
    kind: VoteKind = VoteKind.UPVOTE


class CastVotesRequest(BaseModel):
    votes: list[VoteItem] = Field(default_factory=list, max_length=100)


class VoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    submission_id: int
    points: int
    kind: VoteKind
    created_at: datetime | None = None


class MyVotesResponse(BaseModel):
    round_id: int
    votes: list[VoteResponse]


class ClearVotesResponse(BaseModel):
    round_id: int
    deleted: int
