"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from roundup.config import get_settings
from roundup.core.collaborators import CategoryLookup, Collaborators, MembershipDirectory, RoundEventHook
from roundup.database import get_session
from roundup.integrations.membership import SqlMembershipDirectory
from roundup.integrations.metadata import HttpCategoryLookup
from roundup.integrations.notifications import RedisRoundPublisher
from roundup.redis_client import get_redis, redis_available

get_db = get_session


def get_membership(db: AsyncSession = Depends(get_db)) -> MembershipDirectory:
    return SqlMembershipDirectory(db)


def get_category_lookup() -> CategoryLookup | None:
    """Metadata lookups are optional; without a configured service affinity is not tracked."""
    settings = get_settings()
    if not settings.metadata_service_url:
        return None
    return HttpCategoryLookup(settings.metadata_service_url, timeout=settings.collaborator_timeout_seconds)


def get_round_hooks() -> list[RoundEventHook]:
    if not redis_available():
        return []
    return [RedisRoundPublisher(get_redis())]


def get_collaborators(
    membership: MembershipDirectory = Depends(get_membership),
    categories: CategoryLookup | None = Depends(get_category_lookup),
    hooks: list[RoundEventHook] = Depends(get_round_hooks),
) -> Collaborators:
    settings = get_settings()
    return Collaborators(
        membership=membership,
        categories=categories,
        hooks=hooks,
        lookup_timeout=settings.collaborator_timeout_seconds,
        hook_timeout=settings.side_effect_timeout_seconds,
        affinity_limit=settings.category_affinity_limit,
    )
