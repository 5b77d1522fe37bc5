"""Round transition fan-out over Redis pub/sub.

Chat notifications and playlist generation subscribe to these channels;
publishing is fire-and-forget from the lifecycle's point of view.
"""

from __future__ import annotations

import json

import redis.asyncio as aioredis

from roundup.core.collaborators import RoundEvent

ROUND_CHANNEL = "pubsub:round_update"


def league_channel(league_id: int) -> str:
    return f"pubsub:league:{league_id}:rounds"


class RedisRoundPublisher:
    name = "redis_publish"

    def __init__(self, redis: aioredis.Redis) -> None:
        self.redis = redis

    async def on_round_transition(self, event: RoundEvent) -> None:
        payload = json.dumps({
            "type": "round_status",
            "roundId": event.round_id,
            "leagueId": event.league_id,
            "seasonId": event.season_id,
            "theme": event.theme,
            "from": event.previous_status,
            "to": event.status,
            "at": event.occurred_at.isoformat(),
        })
        pipe = self.redis.pipeline()
        pipe.publish(ROUND_CHANNEL, payload)
        pipe.publish(league_channel(event.league_id), payload)
        await pipe.execute()
