import logging
from typing import Dict, Optional, Tuple

from redis import Redis
from redis.exceptions import RedisError

log = logging.getLogger("uvicorn.error")
_clients: Dict[str, Redis] = {}


def get_redis(url: Optional[str]) -> Optional[Redis]:
    if not url:
        return None
    client = _clients.get(url)
    if client is not None:
        return client
    try:
        client = Redis.from_url(url, decode_responses=False)
    except Exception as exc:
        log.warning(f"[cache] Redis init failed: {exc}")
        return None
    _clients[url] = client
    return client


def incr_window(client: Redis, key: str, window_seconds: int) -> Optional[Tuple[int, int]]:
    """Count one hit in the fixed window stored at ``key``.

    Returns ``(hits, seconds_left)`` or None if Redis is unavailable.
    """
    try:
        pipe = client.pipeline()
        pipe.incr(key)
        pipe.expire(key, window_seconds, nx=True)
        pipe.ttl(key)
        hits, _, ttl = pipe.execute()
    except RedisError as exc:
        log.warning(f"[cache] INCR failed for {key}: {exc}")
        return None
    if ttl is None or ttl < 0:
        ttl = window_seconds
    return int(hits), int(ttl)
