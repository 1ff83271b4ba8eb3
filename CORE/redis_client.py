import os
import redis

def get_redis_client():
    """
    Returns a configured Redis client instance.
    Uses environment variables REDIS_HOST, REDIS_PORT and REDIS_DB.
    Defaults to 'localhost', 6379 and 0.
    """
    return redis.Redis(
        host=os.getenv('REDIS_HOST', 'localhost'),
        port=int(os.getenv('REDIS_PORT', 6379)),
        db=int(os.getenv('REDIS_DB', 0)),
        decode_responses=True,
        socket_timeout=5,
    )
