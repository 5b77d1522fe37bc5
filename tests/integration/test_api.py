"""HTTP tests for round, voting, leaderboard and statistics endpoints."""

from __future__ import annotations

from datetime import timedelta

import pytest
from httpx import AsyncClient

from roundup.core.timeutil import utcnow

pytestmark = pytest.mark.asyncio

OWNER, ALICE, BOB, CAROL = 1, 2, 3, 4


async def _voting_round(seed, **kwargs):
    league, season = await seed.league(**kwargs)
    round_ = await seed.round(league, season, status="voting", voting_end=utcnow() + timedelta(days=1))
    subs = {u: await seed.submission(round_, u) for u in (ALICE, BOB, CAROL)}
    return league, season, round_, subs


class TestAuth:

    async def test_missing_token(self, client: AsyncClient, seed):
        """Requests without a bearer token are rejected."""
        league, _ = await seed.league()
        resp = await client.get(f"/api/v1/leagues/{league.id}/leaderboard")
        assert resp.status_code in (401, 403)

    async def test_invalid_token(self, client: AsyncClient, seed):
        """A token signed by another key is a 401."""
        league, _ = await seed.league()
        resp = await client.get(
            f"/api/v1/leagues/{league.id}/leaderboard", headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert resp.status_code == 401

    async def test_refresh_token_rejected(self, client: AsyncClient, seed, make_token):
        """Only access tokens are accepted."""
        league, _ = await seed.league()
        token = make_token(ALICE, type="refresh")
        resp = await client.get(
            f"/api/v1/leagues/{league.id}/leaderboard", headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 401

    async def test_non_member_forbidden(self, client: AsyncClient, seed, auth):
        """Authenticated users outside the league get 403."""
        league, _ = await seed.league()
        resp = await client.get(f"/api/v1/leagues/{league.id}/leaderboard", headers=auth(42))
        assert resp.status_code == 403
        assert resp.json()["code"] == "forbidden"


class TestVotingAPI:

    async def test_cast_read_clear(self, client: AsyncClient, seed, auth):
        """PUT replaces the batch, GET returns it, DELETE withdraws it."""
        _, _, round_, subs = await _voting_round(seed)
        body = {"votes": [{"submission_id": subs[BOB].id, "points": 3}, {"submission_id": subs[CAROL].id, "points": 1}]}

        resp = await client.put(f"/api/v1/rounds/{round_.id}/votes", json=body, headers=auth(ALICE))
        assert resp.status_code == 200
        assert len(resp.json()["votes"]) == 2

        resp = await client.get(f"/api/v1/rounds/{round_.id}/votes/me", headers=auth(ALICE))
        assert [v["points"] for v in resp.json()["votes"]] == [3, 1]

        resp = await client.delete(f"/api/v1/rounds/{round_.id}/votes/me", headers=auth(ALICE))
        assert resp.json() == {"round_id": round_.id, "deleted": 2}

    async def test_rule_violation_is_400(self, client: AsyncClient, seed, auth):
        """A broken voting rule returns 400 with the violation kind."""
        _, _, round_, subs = await _voting_round(seed)
        body = {"votes": [{"submission_id": subs[BOB].id, "points": 5}]}
        resp = await client.put(f"/api/v1/rounds/{round_.id}/votes", json=body, headers=auth(ALICE))
        assert resp.status_code == 400
        data = resp.json()
        assert data["code"] == "validation_error"
        assert data["kind"] == "invalid_point_value"

    async def test_downvote_when_disabled(self, client: AsyncClient, seed, auth):
        """Downvotes are refused unless the league enables them."""
        _, _, round_, subs = await _voting_round(seed)
        body = {"votes": [{"submission_id": subs[BOB].id, "points": -1, "kind": "downvote"}]}
        resp = await client.put(f"/api/v1/rounds/{round_.id}/votes", json=body, headers=auth(ALICE))
        assert resp.status_code == 400
        assert resp.json()["kind"] == "downvoting_disabled"

    async def test_deadline_passed_is_412(self, client: AsyncClient, seed, auth):
        """Votes after the voting deadline return 412."""
        league, season = await seed.league()
        round_ = await seed.round(league, season, status="voting", voting_end=utcnow() - timedelta(minutes=1))
        sub = await seed.submission(round_, BOB)
        body = {"votes": [{"submission_id": sub.id, "points": 3}]}
        resp = await client.put(f"/api/v1/rounds/{round_.id}/votes", json=body, headers=auth(ALICE))
        assert resp.status_code == 412
        assert resp.json()["kind"] == "deadline_passed"

    async def test_unknown_round_is_404(self, client: AsyncClient, seed, auth):
        await seed.league()
        resp = await client.put("/api/v1/rounds/999/votes", json={"votes": []}, headers=auth(ALICE))
        assert resp.status_code == 404


class TestRoundAPI:

    async def test_transition_and_results(self, client: AsyncClient, seed, auth):
        """Revealing a round scores it and makes results visible."""
        _, _, round_, subs = await _voting_round(seed)
        await seed.vote(subs[BOB], ALICE, 3)
        await seed.vote(subs[ALICE], BOB, 2)

        resp = await client.get(f"/api/v1/rounds/{round_.id}/results", headers=auth(ALICE))
        assert resp.status_code == 409

        resp = await client.post(
            f"/api/v1/rounds/{round_.id}/transition", json={"status": "revealed"}, headers=auth(OWNER),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["previous_status"] == "voting"
        assert data["round"]["status"] == "revealed"
        assert data["winner_user_id"] == BOB
        assert data["warnings"] == []

        resp = await client.get(f"/api/v1/rounds/{round_.id}/results", headers=auth(CAROL))
        assert resp.status_code == 200
        ranked = resp.json()["submissions"]
        assert [(s["user_id"], s["placement"], s["position"]) for s in ranked] == [
            (BOB, 1, 1), (ALICE, 2, 2), (CAROL, 3, 3),
        ]

    async def test_skipping_a_status_is_409(self, client: AsyncClient, seed, auth):
        league, season = await seed.league()
        round_ = await seed.round(league, season, status="draft")
        resp = await client.post(
            f"/api/v1/rounds/{round_.id}/transition", json={"status": "revealed"}, headers=auth(OWNER),
        )
        assert resp.status_code == 409
        data = resp.json()
        assert data["code"] == "invalid_transition"
        assert data["allowed"] == ["submitting"]

    async def test_member_cannot_transition(self, client: AsyncClient, seed, auth):
        league, season = await seed.league()
        round_ = await seed.round(league, season, status="draft")
        resp = await client.post(
            f"/api/v1/rounds/{round_.id}/transition", json={"status": "submitting"}, headers=auth(ALICE),
        )
        assert resp.status_code == 403

    async def test_cancel(self, client: AsyncClient, seed, auth):
        league, season = await seed.league()
        round_ = await seed.round(league, season, status="submitting")
        await seed.submission(round_, ALICE)

        resp = await client.post(f"/api/v1/rounds/{round_.id}/cancel", headers=auth(OWNER))
        assert resp.status_code == 204

        resp = await client.get(f"/api/v1/rounds/{round_.id}/results", headers=auth(OWNER))
        assert resp.status_code == 404

    async def test_sweep(self, client: AsyncClient, seed, auth):
        """The manual sweep closes overdue rounds in the league."""
        league, season = await seed.league()
        round_ = await seed.round(
            league, season, status="submitting", submission_end=utcnow() - timedelta(minutes=5),
        )
        resp = await client.post(f"/api/v1/leagues/{league.id}/rounds/sweep", headers=auth(OWNER))
        assert resp.status_code == 200
        transitions = resp.json()["transitions"]
        assert [(t["round"]["id"], t["round"]["status"]) for t in transitions] == [(round_.id, "voting")]


class TestStandingsAPI:

    async def _revealed(self, client, seed, auth):
        league, season, round_, subs = await _voting_round(seed)
        await seed.vote(subs[ALICE], BOB, 3)
        await seed.vote(subs[BOB], ALICE, 1)
        resp = await client.post(
            f"/api/v1/rounds/{round_.id}/transition", json={"status": "revealed"}, headers=auth(OWNER),
        )
        assert resp.status_code == 200
        return league, season

    async def test_leaderboard_scopes(self, client: AsyncClient, seed, auth):
        league, season = await self._revealed(client, seed, auth)

        alltime = (await client.get(f"/api/v1/leagues/{league.id}/leaderboard", headers=auth(CAROL))).json()
        seasonal = (
            await client.get(f"/api/v1/leagues/{league.id}/leaderboard?season_id={season.id}", headers=auth(CAROL))
        ).json()

        assert alltime["scope"] == "alltime"
        assert seasonal["scope"] == f"season:{season.id}"
        assert [(e["rank"], e["user_id"], e["total_points"]) for e in alltime["entries"]] == [
            (1, ALICE, 3), (2, BOB, 1), (3, CAROL, 0),
        ]
        assert seasonal["entries"] == alltime["entries"]

    async def test_leaderboard_export(self, client: AsyncClient, seed, auth):
        league, _ = await self._revealed(client, seed, auth)
        resp = await client.get(f"/api/v1/leagues/{league.id}/leaderboard/export", headers=auth(ALICE))
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert "attachment" in resp.headers["content-disposition"]
        lines = resp.text.strip().split("\n")
        assert lines[0].startswith("Rank,Player,Total Points")
        assert lines[1] == f"1,{ALICE},3,1,1,1,0"

    async def test_rebuild_requires_manager(self, client: AsyncClient, seed, auth):
        league, _ = await self._revealed(client, seed, auth)
        resp = await client.post(f"/api/v1/leagues/{league.id}/leaderboard/rebuild", headers=auth(ALICE))
        assert resp.status_code == 403

        resp = await client.post(f"/api/v1/leagues/{league.id}/leaderboard/rebuild", headers=auth(OWNER))
        assert resp.status_code == 200
        assert resp.json() == {"scope": "alltime", "rounds": 1, "leaderboard_rows": 3, "statistic_rows": 3}

    async def test_member_statistics_and_history(self, client: AsyncClient, seed, auth):
        league, season = await self._revealed(client, seed, auth)

        resp = await client.get(
            f"/api/v1/leagues/{league.id}/members/{ALICE}/statistics?season_id={season.id}", headers=auth(BOB),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["win_streak"] == 1
        assert data["alltime"]["total_wins"] == 1
        assert data["season"]["best_placement"] == 1
        assert [h["placement"] for h in data["history"]] == [1]

        resp = await client.get(f"/api/v1/leagues/{league.id}/members/{ALICE}/history/export", headers=auth(BOB))
        assert resp.status_code == 200
        lines = resp.text.strip().split("\n")
        assert lines[0] == "Round Theme,Title,Creator,Placement,Points Earned"
        assert lines[1] == f"Songs about rain,Track by {ALICE},Artist {ALICE},1,3"


class TestStatisticsViewsAPI:

    async def _split_round(self, client, seed, auth):
        league, season, round_, subs = await _voting_round(seed)
        await seed.vote(subs[ALICE], BOB, 3)
        await seed.vote(subs[ALICE], CAROL, -1)
        await seed.vote(subs[BOB], ALICE, 2)
        resp = await client.post(
            f"/api/v1/rounds/{round_.id}/transition", json={"status": "revealed"}, headers=auth(OWNER),
        )
        assert resp.status_code == 200
        return league, season

    async def test_controversial(self, client: AsyncClient, seed, auth):
        league, _ = await self._split_round(client, seed, auth)

        resp = await client.get(f"/api/v1/leagues/{league.id}/statistics/controversial", headers=auth(CAROL))

        assert resp.status_code == 200
        picks = resp.json()["submissions"]
        assert [(p["user_id"], p["upvote_count"], p["downvote_count"], p["controversy_score"]) for p in picks] == [
            (ALICE, 1, 1, 1),
        ]

    async def test_controversial_limit_validated(self, client: AsyncClient, seed, auth):
        league, _ = await seed.league()
        resp = await client.get(
            f"/api/v1/leagues/{league.id}/statistics/controversial?limit=0", headers=auth(ALICE),
        )
        assert resp.status_code == 422

    async def test_compare(self, client: AsyncClient, seed, auth):
        league, season = await self._split_round(client, seed, auth)

        resp = await client.get(
            f"/api/v1/leagues/{league.id}/statistics/compare?first={ALICE}&second={BOB}&season_id={season.id}",
            headers=auth(CAROL),
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["scope"] == f"season:{season.id}"
        assert (data["first"]["total_points"], data["second"]["total_points"]) == (2, 2)
        assert data["head_to_head"] == {"first_wins": 0, "second_wins": 0, "ties": 1, "common_rounds": 1}

    async def test_compare_requires_membership(self, client: AsyncClient, seed, auth):
        league, _ = await seed.league()
        resp = await client.get(
            f"/api/v1/leagues/{league.id}/statistics/compare?first={ALICE}&second={BOB}", headers=auth(42),
        )
        assert resp.status_code == 403
