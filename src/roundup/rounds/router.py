"""Round endpoints: transitions, cancellation, deadline sweeps, results."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from roundup.auth.dependencies import get_current_user_id
from roundup.core.collaborators import Collaborators, MembershipDirectory
from roundup.dependencies import get_collaborators, get_db, get_membership
from roundup.integrations.membership import require_manager
from roundup.rounds.lifecycle import TransitionOutcome, cancel_round, sweep_deadlines, transition_round
from roundup.rounds.schemas import (
    RoundResponse,
    RoundResultsResponse,
    ScoredSubmissionResponse,
    SweepResponse,
    TransitionRequest,
    TransitionResponse,
    WarningResponse,
)
from roundup.scoring.service import get_round_results

router = APIRouter(prefix="/api/v1", tags=["Rounds"])


def _transition_response(outcome: TransitionOutcome) -> TransitionResponse:
    return TransitionResponse(
        round=RoundResponse.model_validate(outcome.round),
        previous_status=outcome.previous_status,
        winner_user_id=outcome.result.winner_user_id if outcome.result else None,
        warnings=[WarningResponse(**w.as_dict()) for w in outcome.warnings],
    )


@router.post("/rounds/{round_id}/transition", response_model=TransitionResponse)
async def post_transition(
    round_id: int,
    body: TransitionRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
) -> TransitionResponse:
    """Advance a round to its next status. Revealing scores the round and updates standings."""
    outcome = await transition_round(db, round_id, body.status, user_id, collaborators)
    return _transition_response(outcome)


@router.post("/rounds/{round_id}/cancel", status_code=204)
async def post_cancel(
    round_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    membership: MembershipDirectory = Depends(get_membership),
) -> Response:
    """Cancel a draft or submitting round, deleting its submissions."""
    await cancel_round(db, round_id, user_id, membership)
    return Response(status_code=204)


@router.post("/leagues/{league_id}/rounds/sweep", response_model=SweepResponse)
async def post_sweep(
    league_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
) -> SweepResponse:
    """Apply overdue deadlines in one league now instead of waiting for the worker."""
    await require_manager(collaborators.membership, league_id, user_id)
    report = await sweep_deadlines(db, collaborators, league_id=league_id)
    return SweepResponse(
        transitions=[_transition_response(t) for t in report.transitions],
        warnings=[WarningResponse(**w.as_dict()) for w in report.warnings],
    )


@router.get("/rounds/{round_id}/results", response_model=RoundResultsResponse)
async def get_results(
    round_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    membership: MembershipDirectory = Depends(get_membership),
) -> RoundResultsResponse:
    round_, result, submissions = await get_round_results(db, round_id, user_id, membership)
    return RoundResultsResponse(
        round=RoundResponse.model_validate(round_),
        winner_user_id=result.winner_user_id,
        submissions=[
            ScoredSubmissionResponse(
                submission_id=s.submission_id,
                user_id=s.user_id,
                title=submissions[s.submission_id].title,
                creator=submissions[s.submission_id].creator,
                total_points=s.total_points,
                upvote_count=s.upvote_count,
                downvote_count=s.downvote_count,
                placement=s.placement,
                position=s.position,
            )
            for s in result.ranked
        ],
    )
