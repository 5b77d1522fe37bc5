"""Voting configuration.

Leagues store their voting settings as a loose JSON blob and rounds may carry a
partial override. Both are parsed once, here, into a ``VotingConfig`` whose
``style`` is one of three tagged variants. Nothing past this module reads the
raw blobs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from roundup.core.errors import InvalidState

DEFAULT_UPVOTE_POINTS: tuple[int, ...] = (3, 2, 1)
DEFAULT_DOWNVOTE_POINTS: tuple[int, ...] = (-1,)


class VotingStyleName(str, Enum):
    POINTS = "points"
    RANK = "rank"
    SINGLE_PICK = "single_pick"


@dataclass(frozen=True)
class PointsStyle:
    """Each vote's points must be one of the configured values."""

    upvote_points: tuple[int, ...] = DEFAULT_UPVOTE_POINTS
    downvote_points: tuple[int, ...] = DEFAULT_DOWNVOTE_POINTS
    name: Literal["points"] = "points"


@dataclass(frozen=True)
class RankStyle:
    """N upvotes must use exactly the first N configured values, once each."""

    upvote_points: tuple[int, ...] = DEFAULT_UPVOTE_POINTS
    downvote_points: tuple[int, ...] = DEFAULT_DOWNVOTE_POINTS
    name: Literal["rank"] = "rank"


@dataclass(frozen=True)
class SinglePickStyle:
    """One upvote worth 1 point."""

    name: Literal["single_pick"] = "single_pick"


VotingStyle = Union[PointsStyle, RankStyle, SinglePickStyle]


@dataclass(frozen=True)
class VotingConfig:
    style: VotingStyle = field(default_factory=PointsStyle)
    max_upvotes: int = 3
    max_downvotes: int = 1
    downvoting_enabled: bool = False
    allow_self_vote: bool = False


class VotingSettings(BaseModel):
    """Raw voting keys as they appear in league settings or a round override.

    Accepts both snake_case and the camelCase keys written by older clients.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    voting_style: VotingStyleName | None = None
    max_upvotes: int | None = None
    max_downvotes: int | None = None
    downvoting_enabled: bool | None = None
    allow_self_vote: bool | None = None
    upvote_points: list[int] | None = None
    downvote_points: list[int] | None = None


def _parse(blob: dict[str, Any] | None, source: str) -> dict[str, Any]:
    if not blob:
        return {}
    try:
        parsed = VotingSettings.model_validate(blob)
    except PydanticValidationError as exc:
        errors = exc.errors(include_url=False, include_context=False, include_input=False)
        raise InvalidState(f"Invalid voting settings in {source}", errors=errors) from exc
    return parsed.model_dump(exclude_none=True)


def resolve_voting_config(
    league_settings: dict[str, Any] | None,
    round_override: dict[str, Any] | None = None,
) -> VotingConfig:
    """Merge defaults <- league settings <- round override into a VotingConfig."""
    merged = _parse(league_settings, "league settings")
    merged.update(_parse(round_override, "round override"))

    style_name = merged.get("voting_style", VotingStyleName.POINTS)
    upvote_points = tuple(merged.get("upvote_points", DEFAULT_UPVOTE_POINTS))
    downvote_points = tuple(merged.get("downvote_points", DEFAULT_DOWNVOTE_POINTS))

    style: VotingStyle
    if style_name == VotingStyleName.SINGLE_PICK:
        style = SinglePickStyle()
    elif style_name == VotingStyleName.RANK:
        style = RankStyle(upvote_points=upvote_points, downvote_points=downvote_points)
    else:
        style = PointsStyle(upvote_points=upvote_points, downvote_points=downvote_points)

    return VotingConfig(
        style=style,
        max_upvotes=merged.get("max_upvotes", 3),
        max_downvotes=merged.get("max_downvotes", 1),
        downvoting_enabled=merged.get("downvoting_enabled", False),
        allow_self_vote=merged.get("allow_self_vote", False),
    )
