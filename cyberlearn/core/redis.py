# ruff: noqa: PLW0603
"""Redis lock backend.

The engine only uses Redis for the per-learner profile locks handed out by
``UserLockManager``. When it is unreachable at startup the engine falls back
to process-local locks.
"""

import redis.asyncio as redis

from cyberlearn.config import Settings, get_settings
from cyberlearn.core.logging import get_logger


logger = get_logger(__name__)

PROFILE_LOCK_PREFIX = "locks:profile"

# Client shared by every lock of this process
_redis_client: redis.Redis | None = None


async def init_redis(settings: Settings | None = None) -> redis.Redis:
    """Connect the lock backend.

    Raises:
        redis.ConnectionError: If the server does not answer a ping.
    """
    global _redis_client

    settings = settings or get_settings()

    client = redis.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        retry_on_timeout=settings.redis_retry_on_timeout,
        health_check_interval=settings.redis_health_check_interval,
    )

    try:
        await client.ping()
    except redis.ConnectionError as e:
        logger.warning("lock_backend_unreachable", url=settings.redis_url, error=str(e))
        await client.aclose()
        raise

    _redis_client = client
    logger.info(
        "lock_backend_connected",
        url=settings.redis_url,
        lock_timeout=settings.profile_lock_timeout_seconds,
    )
    return client


async def shutdown_redis() -> None:
    """Close the lock backend connection, if any."""
    global _redis_client

    if _redis_client is None:
        return
    await _redis_client.aclose()
    _redis_client = None
    logger.info("lock_backend_closed")


def profile_lock_key(user_id: str) -> str:
    """Lock name guarding one learner's profile row."""
    return f"{PROFILE_LOCK_PREFIX}:{user_id}"
