"""Deadline sweep arq worker.

Every few minutes: close submissions for rounds past ``submission_end`` and
reveal rounds past ``voting_end`` (which scores them and updates standings).
Overlapping runs are harmless; each round only moves once.
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from arq import cron
from arq.connections import RedisSettings

from roundup.config import get_settings
from roundup.core.collaborators import Collaborators, RoundEventHook
from roundup.database import close_db, get_session, init_db
from roundup.integrations.membership import SqlMembershipDirectory
from roundup.integrations.metadata import HttpCategoryLookup
from roundup.integrations.notifications import RedisRoundPublisher
from roundup.rounds.lifecycle import sweep_deadlines

logger = logging.getLogger(__name__)


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    settings = get_settings()
    await init_db(settings.database_url)
    ctx["publisher_redis"] = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=10,
    )
    logger.info("Deadline worker started")


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    publisher: aioredis.Redis | None = ctx.get("publisher_redis")
    if publisher:
        await publisher.aclose()
    await close_db()
    logger.info("Deadline worker shut down")


async def sweep_round_deadlines(ctx: dict) -> int:  # type: ignore[type-arg]
    """Run one deadline sweep across all leagues. Returns the number of transitions."""
    settings = get_settings()
    hooks: list[RoundEventHook] = []
    publisher: aioredis.Redis | None = ctx.get("publisher_redis")
    if publisher is not None:
        hooks.append(RedisRoundPublisher(publisher))

    async for db in get_session():
        collaborators = Collaborators(
            membership=SqlMembershipDirectory(db),
            categories=(
                HttpCategoryLookup(settings.metadata_service_url, timeout=settings.collaborator_timeout_seconds)
                if settings.metadata_service_url
                else None
            ),
            hooks=hooks,
            lookup_timeout=settings.collaborator_timeout_seconds,
            hook_timeout=settings.side_effect_timeout_seconds,
            affinity_limit=settings.category_affinity_limit,
        )
        report = await sweep_deadlines(db, collaborators)
        for warning in report.warnings:
            logger.warning("Round %s step %s failed: %s", warning.round_id, warning.step, warning.message)
        if report.transitions:
            logger.info("Deadline sweep moved %d rounds", len(report.transitions))
        return len(report.transitions)
    return 0


def _sweep_minutes() -> set[int]:
    interval = max(1, get_settings().deadline_sweep_interval_minutes)
    return set(range(0, 60, interval))


class WorkerSettings:
    """arq worker settings for deadline sweeps."""

    functions = [sweep_round_deadlines]
    cron_jobs = [
        cron(sweep_round_deadlines, minute=_sweep_minutes(), run_at_startup=True, unique=True),
    ]
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    on_startup = startup
    on_shutdown = shutdown
    max_jobs = get_settings().worker_max_jobs
    job_timeout = 300
