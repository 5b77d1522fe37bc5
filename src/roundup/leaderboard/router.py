"""Leaderboard endpoints: standings, CSV export, rebuild."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from roundup.auth.dependencies import get_current_user_id
from roundup.core.collaborators import MembershipDirectory
from roundup.core.scope import Scope
from roundup.dependencies import get_db, get_membership
from roundup.leaderboard.schemas import LeaderboardEntryResponse, LeaderboardResponse, RebuildResponse
from roundup.leaderboard.service import get_leaderboard, leaderboard_to_csv, rebuild_scope

router = APIRouter(prefix="/api/v1", tags=["Leaderboard"])


@router.get("/leagues/{league_id}/leaderboard", response_model=LeaderboardResponse)
async def get_league_leaderboard(
    league_id: int,
    season_id: int | None = Query(None, description="Omit for the all-time table"),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    membership: MembershipDirectory = Depends(get_membership),
) -> LeaderboardResponse:
    ranked = await get_leaderboard(db, league_id, user_id, membership, season_id=season_id)
    return LeaderboardResponse(
        league_id=league_id,
        season_id=season_id,
        scope=Scope(league_id, season_id).key,
        entries=[
            LeaderboardEntryResponse(
                rank=r.rank,
                user_id=r.entry.user_id,
                total_points=r.entry.total_points,
                wins=r.entry.wins,
                rounds_participated=r.entry.rounds_participated,
                upvotes_received=r.entry.upvotes_received,
                downvotes_received=r.entry.downvotes_received,
            )
            for r in ranked
        ],
        total=len(ranked),
    )


@router.get("/leagues/{league_id}/leaderboard/export", response_class=PlainTextResponse)
async def export_league_leaderboard(
    league_id: int,
    season_id: int | None = Query(None),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    membership: MembershipDirectory = Depends(get_membership),
) -> PlainTextResponse:
    """Leaderboard as CSV."""
    ranked = await get_leaderboard(db, league_id, user_id, membership, season_id=season_id)
    filename = f"leaderboard-{league_id}-{Scope(league_id, season_id).key.replace(':', '-')}.csv"
    return PlainTextResponse(
        leaderboard_to_csv(ranked),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/leagues/{league_id}/leaderboard/rebuild", response_model=RebuildResponse)
async def post_rebuild(
    league_id: int,
    season_id: int | None = Query(None),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    membership: MembershipDirectory = Depends(get_membership),
) -> RebuildResponse:
    """Recompute standings for the scope from every revealed round. League owners and admins only."""
    report = await rebuild_scope(db, league_id, user_id, membership, season_id=season_id)
    return RebuildResponse(
        scope=report.scope,
        rounds=report.rounds,
        leaderboard_rows=report.leaderboard_rows,
        statistic_rows=report.statistic_rows,
    )
