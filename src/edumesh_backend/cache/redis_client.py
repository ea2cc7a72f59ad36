'''
Redis connection used by the OTP store.
Mirrors database/engine.py: created by the app's lifespan, handed to
services through the `get_redis` dependency.
'''
from typing import Optional
from redis.asyncio import ConnectionPool, Redis

from ..common.config import settings
from ..common.logger import log

redis_pool: ConnectionPool | None = None
redis_client: Redis | None = None

async def create_redis_client(url: Optional[str] = None):
    """Creates the connection pool and client. Called by the app's lifespan."""
    global redis_pool, redis_client

    log.info("Creating Redis connection pool...")
    try:
        redis_pool = ConnectionPool.from_url(url or settings.REDIS_URL, decode_responses=True)
        redis_client = Redis(connection_pool=redis_pool)
        await redis_client.ping()
        log.info("Redis client connected successfully.")
    except Exception as e:
        log.critical(f"Failed to connect to Redis: {e}", exc_info=True)
        raise

async def close_redis_client():
    """Closes the client and its pool. Called by the app's lifespan."""
    global redis_pool, redis_client
    if redis_client is not None:
        await redis_client.aclose()
        log.info("Redis client closed.")
    if redis_pool is not None:
        await redis_pool.disconnect()
    redis_client = None
    redis_pool = None

def get_redis() -> Redis:
    """FastAPI dependency that returns the shared Redis client."""
    if redis_client is None:
        log.error("Redis client is not initialized. App lifespan may not have run.")
        raise RuntimeError("Redis client is not available.")
    return redis_client
