# carwash/redis_client.py

from redis import Redis

from .config import settings

# Connections are opened lazily; nothing is contacted at import time
redis_client = Redis.from_url(
    settings.redis_url,
    decode_responses=True,
    socket_timeout=settings.redis_socket_timeout,
    socket_connect_timeout=settings.redis_socket_timeout,
)
