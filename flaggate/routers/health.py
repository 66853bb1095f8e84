import redis
import structlog
from fastapi import APIRouter, Depends

from flaggate.cache import get_redis

router = APIRouter(tags=["health"])
logger = structlog.get_logger(__name__)


@router.get("/healthz")
def health(client: redis.Redis = Depends(get_redis)):
    try:
        client.ping()
        store = "ok"
    except redis.RedisError:
        logger.warning("redis_unavailable", exc_info=True)
        store = "unavailable"
    return {"status": "ok", "store": store}
