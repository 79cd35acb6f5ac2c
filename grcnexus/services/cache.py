"""Redis-backed response cache for tenant stats.

Keys are namespaced by tenant schema, so one tenant can never read another
tenant's cached payload. A Redis outage is logged and treated as a miss.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from grcnexus.config import Settings

logger = logging.getLogger("grcnexus.cache")

KEY_PREFIX = "grcnexus"


class ResponseCache:
    def __init__(self, client: Optional[aioredis.Redis], ttl_seconds: int = 60) -> None:
        self.client = client
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> ResponseCache:
        if not settings.redis_addr:
            return cls(None, settings.cache_ttl_seconds)
        addr = settings.redis_addr
        url = addr if "://" in addr else f"redis://{addr}"
        client = aioredis.from_url(
            url,
            password=settings.redis_password or None,
            db=settings.redis_db,
            encoding="utf-8",
            decode_responses=True,
        )
        logger.info("Response cache enabled (redis %s)", url.split("@")[-1])
        return cls(client, settings.cache_ttl_seconds)

    @property
    def enabled(self) -> bool:
        return self.client is not None

    @staticmethod
    def key(schema: str, family: str, name: str = "stats") -> str:
        return f"{KEY_PREFIX}:{schema}:{family}:{name}"

    async def get(self, schema: str, family: str, name: str = "stats") -> Optional[Any]:
        if self.client is None:
            return None
        try:
            raw = await self.client.get(self.key(schema, family, name))
        except RedisError as exc:
            logger.warning("Cache read failed for %s/%s: %s", schema, family, exc)
            return None
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, schema: str, family: str, value: Any, name: str = "stats") -> None:
        if self.client is None:
            return
        try:
            await self.client.set(self.key(schema, family, name), json.dumps(value, default=str), ex=self.ttl_seconds)
        except RedisError as exc:
            logger.warning("Cache write failed for %s/%s: %s", schema, family, exc)

    async def invalidate(self, schema: str, family: str) -> None:
        if self.client is None:
            return
        try:
            await self.client.delete(self.key(schema, family))
        except RedisError as exc:
            logger.warning("Cache invalidation failed for %s/%s: %s", schema, family, exc)

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
