"""Atomic units of work.

Commands that must not be observed half-applied (vote replacement, status
changes, cancellation, standings rebuilds) run their writes inside
``UnitOfWork.atomic()``. Everything done on the session since its last commit
belongs to the unit: it is committed when the block exits normally and rolled
back when it raises.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession


class UnitOfWork(Protocol):
    def atomic(self) -> AbstractAsyncContextManager[AsyncSession]: ...


class SqlAlchemyUnitOfWork:
    """UnitOfWork backed by an AsyncSession transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[AsyncSession]:
        try:
            yield self.session
        except BaseException:
            await self.session.rollback()
            raise
        await self.session.commit()
