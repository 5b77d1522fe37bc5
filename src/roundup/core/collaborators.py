"""Narrow interfaces to services outside the round/standings core."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol


class MemberRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"

    @property
    def can_manage(self) -> bool:
        return self in (MemberRole.OWNER, MemberRole.ADMIN)


class MembershipDirectory(Protocol):
    async def role_for(self, league_id: int, user_id: int) -> MemberRole | None:
        """Return the user's role in the league, or None if not a member."""
        ...


class CategoryLookup(Protocol):
    async def categories_for(self, provider: str, provider_item_id: str) -> list[str]:
        """Return category tags (genres) for a submitted item."""
        ...


@dataclass(frozen=True)
class RoundEvent:
    round_id: int
    league_id: int
    season_id: int
    theme: str
    previous_status: str
    status: str
    occurred_at: datetime


class RoundEventHook(Protocol):
    """Best-effort side effect fired after a round changes status."""

    name: str

    async def on_round_transition(self, event: RoundEvent) -> None: ...


@dataclass
class Collaborators:
    """Everything a round command needs from the outside world."""

    membership: MembershipDirectory
    categories: CategoryLookup | None = None
    hooks: list[RoundEventHook] = field(default_factory=list)
    lookup_timeout: float = 5.0
    hook_timeout: float = 10.0
    affinity_limit: int = 50
