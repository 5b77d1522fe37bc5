"""Unit tests for voting configuration resolution."""

from __future__ import annotations

import pytest

from roundup.core.errors import InvalidState
from roundup.voting.config import PointsStyle, RankStyle, SinglePickStyle, VotingConfig, resolve_voting_config


class TestResolveVotingConfig:

    def test_defaults(self):
        """No settings at all gives points style with 3/2/1 and no downvotes."""
        config = resolve_voting_config(None)
        assert config == VotingConfig()
        assert isinstance(config.style, PointsStyle)
        assert config.style.upvote_points == (3, 2, 1)
        assert config.style.downvote_points == (-1,)
        assert config.max_upvotes == 3
        assert config.max_downvotes == 1
        assert config.downvoting_enabled is False
        assert config.allow_self_vote is False

    def test_league_settings_camel_case(self):
        """Keys written by older clients are camelCase."""
        config = resolve_voting_config({
            "votingStyle": "rank",
            "maxUpvotes": 2,
            "upvotePoints": [5, 3],
            "downvotingEnabled": True,
        })
        assert isinstance(config.style, RankStyle)
        assert config.style.upvote_points == (5, 3)
        assert config.max_upvotes == 2
        assert config.downvoting_enabled is True

    def test_round_override_wins(self):
        league = {"voting_style": "points", "max_upvotes": 5, "allow_self_vote": True}
        config = resolve_voting_config(league, {"voting_style": "single_pick"})
        assert isinstance(config.style, SinglePickStyle)
        assert config.max_upvotes == 5
        assert config.allow_self_vote is True

    def test_unrelated_keys_ignored(self):
        config = resolve_voting_config({"theme_color": "blue", "maxUpvotes": 1})
        assert config.max_upvotes == 1

    def test_invalid_blob(self):
        with pytest.raises(InvalidState):
            resolve_voting_config({"votingStyle": "borda"})
