"""
Redis Response Cache

Caches successful catalog responses (list, search, detail) as JSON with a TTL
so repeated pages and detail fallbacks do not hit the upstream quota.
Cache failures never fail a request: they are logged and treated as misses.
"""

import hashlib
import json
import logging
import os
from typing import Any, Dict, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "mytrip:tour"


class ResponseCache:
    """
    JSON response cache on top of redis.asyncio.

    Keys look like ``<namespace>:<endpoint>:<sha1 of sorted params>``.
    """

    def __init__(self, redis_client: Redis, ttl: int = 3600, namespace: str = DEFAULT_NAMESPACE):
        """
        Args:
            redis_client: Redis async client (``decode_responses=True`` recommended)
            ttl: Time to live in seconds; 0 disables expiry
            namespace: Key prefix
        """
        self.redis = redis_client
        self.ttl = ttl
        self.namespace = namespace

    def make_key(self, endpoint: str, params: Dict[str, Any]) -> str:
        # serviceKey never takes part in the key
        material = {k: str(v) for k, v in params.items() if k != "serviceKey" and v is not None}
        digest = hashlib.sha1(
            json.dumps(material, sort_keys=True, ensure_ascii=False).encode("utf-8")
        ).hexdigest()
        return f"{self.namespace}:{endpoint.strip('/')}:{digest}"

    async def get(self, endpoint: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        key = self.make_key(endpoint, params)
        try:
            raw = await self.redis.get(key)
        except RedisError as e:
            logger.warning(f"Response cache read failed for {key}: {e}")
            return None

        if raw is None:
            return None

        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Discarding corrupt cache entry {key}: {e}")
            return None

        logger.debug(f"Response cache hit: {key}")
        return payload

    async def set(self, endpoint: str, params: Dict[str, Any], payload: Dict[str, Any]) -> None:
        key = self.make_key(endpoint, params)
        try:
            data = json.dumps(payload, ensure_ascii=False)
            if self.ttl > 0:
                await self.redis.set(key, data, ex=self.ttl)
            else:
                await self.redis.set(key, data)
        except (RedisError, TypeError, ValueError) as e:
            logger.warning(f"Response cache write failed for {key}: {e}")

    async def clear(self) -> int:
        """Delete every key in this cache's namespace. Returns the number removed."""
        removed = 0
        try:
            async for key in self.redis.scan_iter(match=f"{self.namespace}:*"):
                removed += await self.redis.delete(key)
        except RedisError as e:
            logger.warning(f"Response cache clear failed: {e}")
        return removed


async def create_response_cache(ttl: int = 3600) -> Optional[ResponseCache]:
    """
    Build a ResponseCache from the environment.

    Environment:
        ENABLE_RESPONSE_CACHE: "true" / "false" (default "false")
        REDIS_URL: Redis connection URL

    Returns:
        ResponseCache, or None when caching is disabled or Redis is unreachable
    """
    if os.getenv("ENABLE_RESPONSE_CACHE", "false").lower() != "true":
        logger.info("Response cache disabled")
        return None

    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        logger.warning("ENABLE_RESPONSE_CACHE is set but REDIS_URL is missing; cache disabled")
        return None

    client = Redis.from_url(redis_url, decode_responses=True, encoding="utf-8")
    try:
        await client.ping()
    except RedisError as e:
        logger.error(f"Redis connection failed, response cache disabled: {e}")
        await client.aclose()
        return None

    logger.info(f"Response cache connected (TTL: {ttl}s)")
    return ResponseCache(client, ttl=ttl)
