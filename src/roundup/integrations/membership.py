"""League membership lookups and role checks."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from roundup.core.collaborators import MemberRole, MembershipDirectory
from roundup.core.errors import Forbidden
from roundup.db.models import LeagueMember


class SqlMembershipDirectory:
    """Reads roles from the league_members table maintained by the league service."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def role_for(self, league_id: int, user_id: int) -> MemberRole | None:
        result = await self.db.execute(
            select(LeagueMember.role).where(
                LeagueMember.league_id == league_id,
                LeagueMember.user_id == user_id,
            )
        )
        role = result.scalar_one_or_none()
        if role is None:
            return None
        return MemberRole(role)


async def require_member(directory: MembershipDirectory, league_id: int, user_id: int) -> MemberRole:
    role = await directory.role_for(league_id, user_id)
    if role is None:
        raise Forbidden("You are not a member of this league")
    return role


async def require_manager(directory: MembershipDirectory, league_id: int, user_id: int) -> MemberRole:
    """Owner or admin of the league."""
    role = await directory.role_for(league_id, user_id)
    if role is None or not role.can_manage:
        raise Forbidden("Only league owners and admins can do this")
    return role
