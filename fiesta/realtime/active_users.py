"""Approximate count of open realtime connections.

Kept in Redis when ``REDIS_URL`` is set so every worker shares it,
otherwise in this process. Races between workers are tolerated.
"""
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from redis import asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

load_dotenv()

REDIS_URL = os.getenv("REDIS_URL")
ACTIVE_USERS_KEY = "active_users_count"


class ActiveUserCounter:
    def __init__(self, redis_url: Optional[str] = REDIS_URL):
        self._redis = redis.from_url(redis_url, decode_responses=True) if redis_url else None
        self._local = 0

    async def increment(self) -> int:
        if self._redis is None:
            self._local += 1
            return self._local
        try:
            return await self._redis.incr(ACTIVE_USERS_KEY)
        except RedisError:
            logger.exception("Could not increment %s", ACTIVE_USERS_KEY)
            self._local += 1
            return self._local

    async def decrement(self) -> int:
        if self._redis is None:
            self._local = max(self._local - 1, 0)
            return self._local
        try:
            value = await self._redis.decr(ACTIVE_USERS_KEY)
            if value < 0:
                await self._redis.set(ACTIVE_USERS_KEY, 0)
                value = 0
            return value
        except RedisError:
            logger.exception("Could not decrement %s", ACTIVE_USERS_KEY)
            self._local = max(self._local - 1, 0)
            return self._local

    async def get(self) -> int:
        if self._redis is None:
            return self._local
        try:
            value = await self._redis.get(ACTIVE_USERS_KEY)
        except RedisError:
            logger.exception("Could not read %s", ACTIVE_USERS_KEY)
            return self._local
        return max(int(value or 0), 0)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()


active_users = ActiveUserCounter()
