import redis.asyncio as redis
from src.infra.config.settings import Settings, settings as default_settings
from src.core.logger.logger import logger


def create_redis_pool(settings: Settings = default_settings) -> redis.ConnectionPool:
    """Create Redis connection pool"""
    return redis.ConnectionPool.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        max_connections=settings.REDIS_MAX_CONNECTIONS
    )


async def get_redis(settings: Settings = default_settings) -> redis.Redis:
    """Open a Redis client on a fresh pool and check the connection"""
    try:
        redis_client = redis.Redis(connection_pool=create_redis_pool(settings))
        # Test connection
        await redis_client.ping()
        logger.info("Connected to Redis successfully")
        return redis_client
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}")
        raise


async def check_redis_health(redis_client: redis.Redis) -> dict:
    """Check Redis connection health."""
    try:
        await redis_client.ping()
        return {"status": "healthy", "message": "Connected"}
    except Exception as e:
        return {"status": "unhealthy", "message": f"Connection failed: {str(e)}"}
