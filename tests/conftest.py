"""Shared test fixtures."""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from roundup.auth.jwt import reset_keys
from roundup.config import get_settings
from roundup.core.collaborators import Collaborators, MemberRole, RoundEvent
from roundup.database import close_db, get_engine, get_session, init_db
from roundup.db.base import Base
from roundup.db.models import League, LeagueMember, Round, Season, Submission, Vote

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _ensure_test_keys() -> str:
    """Generate an RSA key pair once per session; return the private key PEM."""
    private = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    public_pem = private.public_key().public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    tmpdir = tempfile.mkdtemp(prefix="roundup_test_keys_")
    public_path = os.path.join(tmpdir, "jwt_public.pem")
    with open(public_path, "wb") as fh:
        fh.write(public_pem)

    os.environ["ROUNDUP_JWT_PUBLIC_KEY_PATH"] = public_path
    get_settings.cache_clear()
    reset_keys()
    return private.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()


@pytest.fixture(scope="session")
def private_key() -> str:
    return _ensure_test_keys()


@pytest.fixture
def make_token(private_key: str):
    """Sign an access token the way the account service would."""

    def _make(user_id: int, **overrides: Any) -> str:
        settings = get_settings()
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "iat": now,
            "exp": now + timedelta(minutes=60),
            "iss": settings.jwt_issuer,
            "type": "access",
        }
        payload.update(overrides)
        return jwt.encode(payload, private_key, algorithm="RS256")

    return _make


# ── Database ──


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database with all tables, one session."""
    await init_db(TEST_DATABASE_URL)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async for session in get_session():
        yield session
        break
    await close_db()


class Seeder:
    """Builds leagues, rounds, submissions and votes for tests."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self._clock = BASE_TIME

    def tick(self, minutes: int = 1) -> datetime:
        self._clock += timedelta(minutes=minutes)
        return self._clock

    async def league(
        self,
        members: dict[int, str] | None = None,
        settings: dict[str, Any] | None = None,
    ) -> tuple[League, Season]:
        league = League(name="Test League", settings=settings or {})
        self.db.add(league)
        await self.db.flush()
        season = Season(league_id=league.id, number=1, name="Season 1")
        self.db.add(season)
        members = members if members is not None else {1: "owner", 2: "member", 3: "member", 4: "member"}
        for user_id, role in members.items():
            self.db.add(LeagueMember(league_id=league.id, user_id=user_id, role=role))
        await self.db.flush()
        await self.db.commit()
        return league, season

    async def season(self, league: League, number: int = 2) -> Season:
        season = Season(league_id=league.id, number=number, name=f"Season {number}")
        self.db.add(season)
        await self.db.commit()
        return season

    async def round(
        self,
        league: League,
        season: Season,
        status: str = "draft",
        theme: str = "Songs about rain",
        submission_end: datetime | None = None,
        voting_end: datetime | None = None,
        voting_config: dict[str, Any] | None = None,
    ) -> Round:
        round_ = Round(
            league_id=league.id,
            season_id=season.id,
            theme=theme,
            status=status,
            submission_end=submission_end,
            voting_end=voting_end,
            voting_config=voting_config,
            created_at=self.tick(),
        )
        self.db.add(round_)
        await self.db.commit()
        return round_

    async def submission(self, round_: Round, user_id: int, title: str | None = None) -> Submission:
        sub = Submission(
            round_id=round_.id,
            user_id=user_id,
            title=title or f"Track by {user_id}",
            creator=f"Artist {user_id}",
            provider="spotify",
            provider_item_id=f"item-{round_.id}-{user_id}",
            created_at=self.tick(),
        )
        self.db.add(sub)
        await self.db.commit()
        return sub

    async def vote(self, submission: Submission, user_id: int, points: int) -> Vote:
        vote = Vote(
            round_id=submission.round_id,
            user_id=user_id,
            submission_id=submission.id,
            points=points,
            kind="upvote" if points > 0 else "downvote",
            created_at=self.tick(),
        )
        self.db.add(vote)
        await self.db.commit()
        return vote


@pytest_asyncio.fixture
async def seed(db_session: AsyncSession) -> Seeder:
    return Seeder(db_session)


# ── Collaborators ──


class FakeMembership:
    """Membership directory backed by a dict: {(league_id, user_id): role}."""

    def __init__(self, roles: dict[tuple[int, int], str] | None = None) -> None:
        self.roles = dict(roles or {})

    async def role_for(self, league_id: int, user_id: int) -> MemberRole | None:
        role = self.roles.get((league_id, user_id))
        return MemberRole(role) if role else None


class FakeCategories:
    """Category lookup with canned answers; items listed in ``failing`` raise."""

    def __init__(self, by_item: dict[str, list[str]] | None = None, failing: set[str] | None = None) -> None:
        self.by_item = by_item or {}
        self.failing = failing or set()
        self.calls: list[str] = []

    async def categories_for(self, provider: str, provider_item_id: str) -> list[str]:
        self.calls.append(provider_item_id)
        if provider_item_id in self.failing:
            raise ConnectionError(f"metadata service unavailable for {provider_item_id}")
        return list(self.by_item.get(provider_item_id, []))


class RecordingHook:
    name = "recording"

    def __init__(self) -> None:
        self.events: list[RoundEvent] = []

    async def on_round_transition(self, event: RoundEvent) -> None:
        self.events.append(event)


class FailingHook:
    name = "failing"

    async def on_round_transition(self, event: RoundEvent) -> None:
        raise RuntimeError("chat service down")


@pytest.fixture
def hook() -> RecordingHook:
    return RecordingHook()


@pytest_asyncio.fixture
async def collaborators(db_session: AsyncSession, hook: RecordingHook) -> Collaborators:
    from roundup.integrations.membership import SqlMembershipDirectory

    return Collaborators(membership=SqlMembershipDirectory(db_session), hooks=[hook], hook_timeout=1.0)


# ── HTTP client ──


@pytest.fixture
def auth(make_token):
    """Authorization header for a user id."""

    def _auth(user_id: int) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return _auth


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, private_key: str) -> AsyncGenerator[AsyncClient, None]:
    """ASGI client sharing the test database. Redis is not initialised, so rate limiting is off."""
    from roundup.dependencies import get_category_lookup, get_round_hooks
    from roundup.main import create_app

    app = create_app()
    app.dependency_overrides[get_category_lookup] = lambda: None
    app.dependency_overrides[get_round_hooks] = lambda: []

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
