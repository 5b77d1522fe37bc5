"""User statistics endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from roundup.auth.dependencies import get_current_user_id
from roundup.core.collaborators import MembershipDirectory
from roundup.dependencies import get_db, get_membership
from roundup.integrations.membership import require_member
from roundup.statistics.schemas import (
    ControversialSubmissionResponse,
    ControversialSubmissionsResponse,
    HistoryItemResponse,
    MemberComparisonResponse,
    StatisticResponse,
    UserStatisticsResponse,
)
from roundup.statistics.service import (
    compare_members,
    get_controversial_submissions,
    get_submission_history,
    get_user_statistics,
    history_to_csv,
)

router = APIRouter(prefix="/api/v1", tags=["Statistics"])


@router.get("/leagues/{league_id}/members/{member_id}/statistics", response_model=UserStatisticsResponse)
async def get_member_statistics(
    league_id: int,
    member_id: int,
    season_id: int | None = Query(None),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    membership: MembershipDirectory = Depends(get_membership),
) -> UserStatisticsResponse:
    view = await get_user_statistics(db, league_id, member_id, user_id, membership, season_id=season_id)
    return UserStatisticsResponse(
        league_id=view.league_id,
        user_id=view.user_id,
        season=StatisticResponse.model_validate(view.season) if view.season else None,
        alltime=StatisticResponse.model_validate(view.alltime) if view.alltime else None,
        win_streak=view.win_streak,
        history=[HistoryItemResponse.model_validate(item) for item in view.history],
    )


@router.get("/leagues/{league_id}/members/{member_id}/history/export", response_class=PlainTextResponse)
async def export_member_history(
    league_id: int,
    member_id: int,
    season_id: int | None = Query(None),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    membership: MembershipDirectory = Depends(get_membership),
) -> PlainTextResponse:
    """Submission history as CSV."""
    await require_member(membership, league_id, user_id)
    history = await get_submission_history(db, league_id, member_id, season_id)
    return PlainTextResponse(
        history_to_csv(history),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="history-{league_id}-{member_id}.csv"'},
    )


@router.get("/leagues/{league_id}/statistics/controversial", response_model=ControversialSubmissionsResponse)
async def get_controversial(
    league_id: int,
    season_id: int | None = Query(None),
    limit: int = Query(10, ge=1, le=100),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    membership: MembershipDirectory = Depends(get_membership),
) -> ControversialSubmissionsResponse:
    """Revealed submissions that split the league, most divisive first."""
    picks = await get_controversial_submissions(db, league_id, user_id, membership, season_id=season_id, limit=limit)
    return ControversialSubmissionsResponse(
        league_id=league_id,
        season_id=season_id,
        submissions=[ControversialSubmissionResponse.model_validate(p) for p in picks],
    )


@router.get("/leagues/{league_id}/statistics/compare", response_model=MemberComparisonResponse)
async def get_comparison(
    league_id: int,
    first: int = Query(..., description="User id of the first member"),
    second: int = Query(..., description="User id of the second member"),
    season_id: int | None = Query(None),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    membership: MembershipDirectory = Depends(get_membership),
) -> MemberComparisonResponse:
    comparison = await compare_members(db, league_id, first, second, user_id, membership, season_id=season_id)
    return MemberComparisonResponse.model_validate(comparison)
