"""Round lifecycle: status transitions, cancellation, deadline sweeps.

A transition is committed on its own. Everything that follows it (the reveal
pipeline and the round-event hooks) is best-effort: failures are logged,
returned as warnings and never undo the status change. Standings that miss a
round this way are repaired with a scope rebuild.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TypeVar

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from roundup.core.collaborators import Collaborators, MembershipDirectory, RoundEvent
from roundup.core.errors import InvalidState, InvalidTransition
from roundup.core.outcome import PipelineWarning
from roundup.core.scope import scopes_for_round
from roundup.core.timeutil import utcnow
from roundup.core.unit_of_work import SqlAlchemyUnitOfWork
from roundup.db.models import Round, Submission, Vote
from roundup.integrations.membership import require_manager
from roundup.leaderboard.aggregator import apply_round_result
from roundup.rounds.status import CANCELLABLE, RoundStatus, validate_transition
from roundup.scoring.engine import RoundResult, SubmissionRecord
from roundup.scoring.service import get_round, score_persisted_round
from roundup.statistics.aggregator import apply_category_affinity, apply_round_statistics, lookup_categories

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class TransitionOutcome:
    round: Round
    previous_status: RoundStatus
    status: RoundStatus
    warnings: list[PipelineWarning] = field(default_factory=list)
    result: RoundResult | None = None


@dataclass
class SweepReport:
    transitions: list[TransitionOutcome] = field(default_factory=list)

    @property
    def warnings(self) -> list[PipelineWarning]:
        return [w for t in self.transitions for w in t.warnings]


# ── Status changes ──


async def _apply_status(db: AsyncSession, round_: Round, current: RoundStatus, target: RoundStatus) -> None:
    """Conditional UPDATE so a concurrent transition of the same round cannot apply twice."""
    async with SqlAlchemyUnitOfWork(db).atomic() as session:
        result = await session.execute(
            update(Round)
            .where(Round.id == round_.id, Round.status == current.value)
            .values(status=target.value)
        )
        if result.rowcount != 1:
            raise InvalidTransition(
                f"Round {round_.id} is no longer {current.value}",
                current=current.value,
                target=target.value,
            )
    await db.refresh(round_)
    logger.info("round_transitioned", round_id=round_.id, previous=current.value, status=target.value)


async def _step(
    db: AsyncSession,
    warnings: list[PipelineWarning],
    step: str,
    round_id: int,
    fn: Callable[[], Awaitable[T]],
    scope: str | None = None,
) -> T | None:
    try:
        return await fn()
    except Exception as exc:  # noqa: BLE001
        await db.rollback()
        logger.warning("reveal_step_failed", step=step, round_id=round_id, scope=scope, error=str(exc), exc_info=True)
        warnings.append(PipelineWarning(step=step, message=str(exc) or type(exc).__name__, round_id=round_id, scope=scope))
        return None


async def run_reveal_pipeline(
    db: AsyncSession,
    round_: Round,
    collaborators: Collaborators,
) -> tuple[RoundResult | None, list[PipelineWarning]]:
    """Score the round and fold it into the season and all-time standings.

    Order: scoring, leaderboard (season, all-time), statistics (season,
    all-time), category affinity. A failed step is skipped; the rest still run.
    """
    warnings: list[PipelineWarning] = []
    round_id, league_id, season_id = round_.id, round_.league_id, round_.season_id

    result = await _step(db, warnings, "scoring", round_id, lambda: score_persisted_round(db, round_id))
    if result is None:
        return None, warnings

    scopes = scopes_for_round(league_id, season_id)
    for scope in scopes:
        await _step(
            db, warnings, "leaderboard", round_id, lambda s=scope: apply_round_result(db, result, s), scope=scope.key,
        )
    for scope in scopes:
        await _step(
            db, warnings, "statistics", round_id, lambda s=scope: apply_round_statistics(db, result, s), scope=scope.key,
        )

    if collaborators.categories is not None and result.ranked:
        records = await _step(db, warnings, "category_lookup", round_id, lambda: _submission_records(db, round_id))
        if records:
            categories, lookup_warnings = await lookup_categories(
                collaborators.categories, records, collaborators.lookup_timeout, round_id,
            )
            warnings.extend(lookup_warnings)
            for scope in scopes:
                await _step(
                    db,
                    warnings,
                    "category_affinity",
                    round_id,
                    lambda s=scope: apply_category_affinity(db, categories, s, collaborators.affinity_limit),
                    scope=scope.key,
                )

    logger.info(
        "reveal_pipeline_finished",
        round_id=round_id,
        winner_user_id=result.winner_user_id,
        submissions=len(result.ranked),
        warnings=len(warnings),
    )
    return result, warnings


async def _submission_records(db: AsyncSession, round_id: int) -> list[SubmissionRecord]:
    rows = await db.execute(
        select(Submission.id, Submission.user_id, Submission.created_at, Submission.provider, Submission.provider_item_id)
        .where(Submission.round_id == round_id)
        .order_by(Submission.id)
    )
    records = [
        SubmissionRecord(
            submission_id=r.id,
            user_id=r.user_id,
            created_at=r.created_at,
            provider=r.provider,
            provider_item_id=r.provider_item_id,
        )
        for r in rows
    ]
    # no transaction may stay open across the metadata lookups
    await db.commit()
    return records


async def fire_round_hooks(
    round_: Round,
    previous: RoundStatus,
    collaborators: Collaborators,
) -> list[PipelineWarning]:
    """Run every round-event hook concurrently, each bounded by the hook timeout."""
    if not collaborators.hooks:
        return []
    event = RoundEvent(
        round_id=round_.id,
        league_id=round_.league_id,
        season_id=round_.season_id,
        theme=round_.theme,
        previous_status=previous.value,
        status=round_.status,
        occurred_at=utcnow(),
    )
    outcomes = await asyncio.gather(
        *(asyncio.wait_for(hook.on_round_transition(event), timeout=collaborators.hook_timeout) for hook in collaborators.hooks),
        return_exceptions=True,
    )
    warnings = []
    for hook, outcome in zip(collaborators.hooks, outcomes):
        if not isinstance(outcome, BaseException):
            continue
        if not isinstance(outcome, Exception):
            raise outcome
        message = "timed out" if isinstance(outcome, asyncio.TimeoutError) else str(outcome) or type(outcome).__name__
        logger.warning("round_hook_failed", hook=hook.name, round_id=round_.id, error=message, exc_info=outcome)
        warnings.append(PipelineWarning(step=f"hook:{hook.name}", message=message, round_id=round_.id))
    return warnings


async def _advance(
    db: AsyncSession,
    round_: Round,
    target: RoundStatus,
    collaborators: Collaborators,
) -> TransitionOutcome:
    previous = RoundStatus(round_.status)
    validate_transition(previous, target)
    await _apply_status(db, round_, previous, target)

    outcome = TransitionOutcome(round=round_, previous_status=previous, status=target)
    if target == RoundStatus.REVEALED:
        outcome.result, outcome.warnings = await run_reveal_pipeline(db, round_, collaborators)
        # a failed step rolls the session back and expires loaded objects
        await db.refresh(round_)
    outcome.warnings.extend(await fire_round_hooks(round_, previous, collaborators))
    return outcome


async def transition_round(
    db: AsyncSession,
    round_id: int,
    target: RoundStatus | str,
    actor_id: int,
    collaborators: Collaborators,
) -> TransitionOutcome:
    """Move a round to its next status. League owners and admins only."""
    round_ = await get_round(db, round_id)
    await require_manager(collaborators.membership, round_.league_id, actor_id)
    return await _advance(db, round_, RoundStatus(target), collaborators)


# ── Cancellation ──


async def cancel_round(
    db: AsyncSession,
    round_id: int,
    actor_id: int,
    membership: MembershipDirectory,
) -> None:
    """Delete a round that has not reached voting, with its submissions and votes."""
    round_ = await get_round(db, round_id)
    await require_manager(membership, round_.league_id, actor_id)
    if RoundStatus(round_.status) not in CANCELLABLE:
        raise InvalidState(
            f"Round cannot be cancelled while {round_.status}",
            status=round_.status,
        )

    async with SqlAlchemyUnitOfWork(db).atomic() as session:
        await session.execute(delete(Vote).where(Vote.round_id == round_id))
        await session.execute(delete(Submission).where(Submission.round_id == round_id))
        result = await session.execute(
            delete(Round).where(Round.id == round_id, Round.status.in_([s.value for s in CANCELLABLE]))
        )
        if result.rowcount != 1:
            raise InvalidState("Round changed status while being cancelled", round_id=round_id)

    logger.info("round_cancelled", round_id=round_id, actor_id=actor_id)


# ── Deadlines ──


async def _due_round_ids(
    db: AsyncSession,
    status: RoundStatus,
    now: datetime,
    league_id: int | None,
) -> list[int]:
    deadline = Round.submission_end if status == RoundStatus.SUBMITTING else Round.voting_end
    stmt = select(Round.id).where(Round.status == status.value, deadline.is_not(None), deadline <= now)
    if league_id is not None:
        stmt = stmt.where(Round.league_id == league_id)
    result = await db.execute(stmt.order_by(deadline, Round.id))
    return list(result.scalars().all())


async def sweep_deadlines(
    db: AsyncSession,
    collaborators: Collaborators,
    now: datetime | None = None,
    league_id: int | None = None,
) -> SweepReport:
    """Close submissions and voting for every round whose deadline has passed.

    Safe to run repeatedly or from several workers at once: a round another
    sweep already moved is skipped.
    """
    now = now or utcnow()
    report = SweepReport()
    for status, target in ((RoundStatus.SUBMITTING, RoundStatus.VOTING), (RoundStatus.VOTING, RoundStatus.REVEALED)):
        for round_id in await _due_round_ids(db, status, now, league_id):
            round_ = await get_round(db, round_id)
            try:
                report.transitions.append(await _advance(db, round_, target, collaborators))
            except InvalidTransition:
                logger.info("round_already_transitioned", round_id=round_id, expected=status.value)
    if report.transitions:
        logger.info("deadline_sweep", transitions=len(report.transitions), warnings=len(report.warnings))
    return report
