"""ORM models for leagues, rounds, votes and derived standings.

League, LeagueMember and Season rows are owned by the account/league service;
this service only reads them. Rounds, submissions and votes are written by the
round and voting commands. Leaderboard entries and user statistics are derived
data maintained by the aggregators and never edited by hand.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from roundup.db.base import Base, JSONType


# ---------------------------------------------------------------------------
# Leagues (external, read-only here)
# ---------------------------------------------------------------------------


class League(Base):
    """League with its loosely-typed settings blob (voting defaults live here)."""

    __tablename__ = "leagues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    settings: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class LeagueMember(Base):
    """Membership of a user in a league with a role (owner, admin, member)."""

    __tablename__ = "league_members"
    __table_args__ = (
        UniqueConstraint("league_id", "user_id", name="league_members_league_user_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    league_id: Mapped[int] = mapped_column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, server_default="member")
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Season(Base):
    """A numbered season inside a league."""

    __tablename__ = "seasons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    league_id: Mapped[int] = mapped_column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    number: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# ---------------------------------------------------------------------------
# Rounds, submissions, votes
# ---------------------------------------------------------------------------


class Round(Base):
    """A themed round. Status only changes through the round lifecycle."""

    __tablename__ = "rounds"
    __table_args__ = (
        Index("ix_rounds_status_deadlines", "status", "submission_end", "voting_end"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    league_id: Mapped[int] = mapped_column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    season_id: Mapped[int] = mapped_column(Integer, ForeignKey("seasons.id", ondelete="CASCADE"), nullable=False)
    theme: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="draft")
    submission_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    submission_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    voting_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    voting_config: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Submission(Base):
    """One item submitted to a round. A user submits at most once per round."""

    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("round_id", "user_id", name="submissions_round_user_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(Integer, ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    creator: Mapped[str] = mapped_column(String(256), nullable=False)
    album: Mapped[str | None] = mapped_column(String(256), nullable=True)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    provider_item_id: Mapped[str] = mapped_column(String(128), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Vote(Base):
    """A signed-point vote. A user's votes for a round are replaced as a set."""

    __tablename__ = "votes"
    __table_args__ = (
        Index("ix_votes_round_user", "round_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(Integer, ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    submission_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False,
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[str] = mapped_column(String(8), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# ---------------------------------------------------------------------------
# Derived standings
# ---------------------------------------------------------------------------
# scope_key is "alltime" or "season:<id>" so both scopes share one primary key.


class LeaderboardEntry(Base):
    """Aggregate per (league, season-or-all-time, user)."""

    __tablename__ = "leaderboard_entries"

    league_id: Mapped[int] = mapped_column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), primary_key=True)
    scope_key: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    season_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    upvotes_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    downvotes_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rounds_participated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class UserStatistic(Base):
    """Placement history and voting behaviour per (league, scope, user)."""

    __tablename__ = "user_statistics"

    league_id: Mapped[int] = mapped_column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), primary_key=True)
    scope_key: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    season_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_submissions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    placement_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_placement: Mapped[float | None] = mapped_column(Float, nullable=True)
    best_placement: Mapped[int | None] = mapped_column(Integer, nullable=True)
    worst_placement: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_votes_cast: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_upvotes_cast: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_downvotes_cast: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_points_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category_affinity: Mapped[dict[str, int]] = mapped_column(JSONType, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(),
    )
