"""Pydantic response models for leaderboard endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class LeaderboardEntryResponse(BaseModel):
    rank: int
    user_id: int
    total_points: int
    wins: int
    rounds_participated: int
    upvotes_received: int
    downvotes_received: int


class LeaderboardResponse(BaseModel):
    league_id: int
    season_id: int | None
    scope: str
    entries: list[LeaderboardEntryResponse]
    total: int


class RebuildResponse(BaseModel):
    scope: str
    rounds: int
    leaderboard_rows: int
    statistic_rows: int
