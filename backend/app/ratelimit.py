from __future__ import annotations

import logging
import os
import time
from typing import Optional

from fastapi import HTTPException, Request, Response
import redis

logger = logging.getLogger(__name__)

REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/2")
RATE_LIMIT_ENABLED = os.environ.get("RATE_LIMIT_ENABLED", "0") == "1"
MAX_CALLS_PER_DAY = int(os.environ.get("MAX_CALLS_PER_DAY", "50"))
DAY_SECONDS = 24 * 60 * 60

_redis: Optional[redis.Redis] = None
if RATE_LIMIT_ENABLED:
    try:
        _redis = redis.from_url(REDIS_URL)
    except Exception as e:  # noqa: BLE001
        logger.warning("rate limiting disabled, cannot connect to redis: %s", e)
        _redis = None


def _key(ip: str, now: float) -> str:
    return f"rl:tryon:{ip}:{int(now // DAY_SECONDS)}"


async def rate_limit(request: Request, response: Response) -> None:
    """Per-IP daily cap on try-on calls."""
    if not RATE_LIMIT_ENABLED or _redis is None:
        return
    ip = request.client.host if request.client else "unknown"
    now = time.time()
    key = _key(ip, now)
    pipe = _redis.pipeline()
    pipe.incr(key, 1)
    pipe.expire(key, DAY_SECONDS)
    count, _ = pipe.execute()
    count = int(count)
    if count > MAX_CALLS_PER_DAY:
        reset = (int(now // DAY_SECONDS) + 1) * DAY_SECONDS
        raise HTTPException(
            status_code=429,
            detail=f"Daily try-on limit reached ({MAX_CALLS_PER_DAY} calls)",
            headers={
                "X-RateLimit-Limit": str(MAX_CALLS_PER_DAY),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(reset),
            },
        )
    response.headers["X-RateLimit-Limit"] = str(MAX_CALLS_PER_DAY)
    response.headers["X-RateLimit-Remaining"] = str(MAX_CALLS_PER_DAY - count)
