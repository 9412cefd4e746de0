# config/cache.py
# Redis backs the request rate limiter only; job state never leaves the process.
import logging
from typing import Awaitable, Callable, Optional

from fastapi import Request
from fastapi_limiter import FastAPILimiter
from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from config.settings import settings

logger = logging.getLogger(__name__)

_client: Optional[Redis] = None


async def init_rate_limiter(identifier: Callable[[Request], Awaitable[str]]) -> bool:
    """
    Connect to Redis and hand the client to fastapi-limiter.
    - RATE_LIMIT_ENABLED=false: no connection is attempted, returns False.
    - Unreachable Redis raises, so startup fails instead of serving unlimited.
    """
    global _client
    if not settings.RATE_LIMIT_ENABLED:
        logger.info("ratelimit.disabled")
        return False
    if _client is None:
        _client = from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_keepalive=True,
            health_check_interval=30,
        )
        await _client.ping()
    await FastAPILimiter.init(_client, identifier=identifier)
    logger.info(
        "ratelimit.enabled times=%d seconds=%d",
        settings.RATE_LIMIT_TIMES,
        settings.RATE_LIMIT_SECONDS,
    )
    return True


async def close_rate_limiter() -> None:
    global _client
    if _client is None:
        return
    try:
        await _client.aclose()
    except RedisError as e:
        logger.warning("ratelimit.close.error err=%s", e)
    finally:
        _client = None
