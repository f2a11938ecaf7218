"""Cancellation tokens checked at every simulation suspension point."""

from __future__ import annotations

import asyncio

import redis.asyncio as redis

CANCEL_KEY_TTL_SECONDS = 24 * 60 * 60


def cancel_key(experiment_id: str) -> str:
    return f"behaviorlab:experiment:{experiment_id}:cancel"


class LocalCancellationToken:
    """In-process token backed by an asyncio.Event."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    async def is_cancelled(self) -> bool:
        return self._event.is_set()


class RedisCancellationToken:
    """Cross-process token: the API sets a Redis key, the worker polls it."""

    def __init__(self, client: redis.Redis, experiment_id: str) -> None:  # type: ignore[type-arg]
        self.client = client
        self.key = cancel_key(experiment_id)

    async def is_cancelled(self) -> bool:
        return bool(await self.client.exists(self.key))


async def request_cancel(client: redis.Redis, experiment_id: str) -> None:  # type: ignore[type-arg]
    await client.set(cancel_key(experiment_id), "1", ex=CANCEL_KEY_TTL_SECONDS)
