"""Pydantic response models for user statistics endpoints."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class StatisticResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    scope_key: str
    season_id: int | None = None
    total_submissions: int
    avg_placement: float | None = None
    best_placement: int | None = None
    worst_placement: int | None = None
    total_votes_cast: int
    total_upvotes_cast: int
    total_downvotes_cast: int
    total_points_earned: int
    total_wins: int
    category_affinity: dict[str, int]


class HistoryItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    round_id: int
    theme: str
    submission_id: int
    title: str
    creator: str
    placement: int
    position: int
    points: int


class UserStatisticsResponse(BaseModel):
    league_id: int
    user_id: int
    season: StatisticResponse | None = None
    alltime: StatisticResponse | None = None
    win_streak: int
    history: list[HistoryItemResponse]


# ── Controversial submissions ──


class ControversialSubmissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    submission_id: int
    round_id: int
    user_id: int
    title: str
    creator: str
    theme: str
    upvote_count: int
    downvote_count: int
    controversy_score: int


class ControversialSubmissionsResponse(BaseModel):
    league_id: int
    season_id: int | None
    submissions: list[ControversialSubmissionResponse]


# ── Member comparison ──


class MemberSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    total_points: int
    wins: int
    rounds_played: int
    upvotes_received: int
    downvotes_received: int
    avg_placement: float | None = None


class HeadToHeadResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    first_wins: int
    second_wins: int
    ties: int
    common_rounds: int


class MemberComparisonResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    scope: str
    first: MemberSummaryResponse
    second: MemberSummaryResponse
    head_to_head: HeadToHeadResponse
