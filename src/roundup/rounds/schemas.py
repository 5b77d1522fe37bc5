"""Pydantic request/response models for round endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from roundup.rounds.status import RoundStatus


# ── Shared ──


class WarningResponse(BaseModel):
    step: str
    message: str
    round_id: int | None = None
    scope: str | None = None


class RoundResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    league_id: int
    season_id: int
    theme: str
    description: str | None = None
    status: RoundStatus
    submission_start: datetime | None = None
    submission_end: datetime | None = None
    voting_end: datetime | None = None


# ── Transitions ──


class TransitionRequest(BaseModel):
    status: RoundStatus


class TransitionResponse(BaseModel):
    round: RoundResponse
    previous_status: RoundStatus
    winner_user_id: int | None = None
    warnings: list[WarningResponse]


class SweepResponse(BaseModel):
    transitions: list[TransitionResponse]
    warnings: list[WarningResponse]


# ── Results ──


class ScoredSubmissionResponse(BaseModel):
    submission_id: int
    user_id: int
    title: str
    creator: str
    total_points: int
    upvote_count: int
    downvote_count: int
    placement: int
    position: int


class RoundResultsResponse(BaseModel):
    round: RoundResponse
    winner_user_id: int | None
    submissions: list[ScoredSubmissionResponse]
