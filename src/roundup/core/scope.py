"""Standings scope: one season of a league, or the league's all-time table."""

from __future__ import annotations

from dataclasses import dataclass

ALLTIME_KEY = "alltime"


@dataclass(frozen=True)
class Scope:
    league_id: int
    season_id: int | None = None

    @property
    def key(self) -> str:
        if self.season_id is None:
            return ALLTIME_KEY
        return f"season:{self.season_id}"

    @property
    def is_alltime(self) -> bool:
        return self.season_id is None

    def __str__(self) -> str:
        return f"league:{self.league_id}/{self.key}"


def scopes_for_round(league_id: int, season_id: int) -> tuple[Scope, Scope]:
    """Season scope first, then all-time. Aggregation always runs in this order."""
    return Scope(league_id, season_id), Scope(league_id)
