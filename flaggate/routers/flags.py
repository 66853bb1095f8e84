import asyncio

import redis
from fastapi import APIRouter, Depends

from flaggate.cache import RedisKeyValueStore, get_redis, installation_prefix
from flaggate.providers import InMemoryKeyValueStore, OverlayKeyValueStore, SnapshotDevice, SnapshotIdentity, SnapshotPush
from flaggate.schemas import DeviceSnapshot, EvaluationRequest, EvaluationResult
from flaggate.services.engine import FeatureFlagEngine

router = APIRouter(tags=["flags"])


def engine_for(device: DeviceSnapshot, client: redis.Redis) -> FeatureFlagEngine:
    # request-supplied storage entries shadow what the server persisted for this installation
    storage = OverlayKeyValueStore(
        InMemoryKeyValueStore(device.storage),
        RedisKeyValueStore(client, prefix=installation_prefix(device.installation_id)),
    )
    return FeatureFlagEngine(
        platform=device.platform,
        device=SnapshotDevice(device),
        storage=storage,
        push=SnapshotPush(device.push_token, device.notifications_enabled),
        identity=SnapshotIdentity(device.user),
        locale_source=lambda: device.locale,
    )


@router.post("/evaluate", response_model=EvaluationResult)
def evaluate(payload: EvaluationRequest, client: redis.Redis = Depends(get_redis)):
    # plain def: FastAPI runs it in its threadpool, so the blocking redis calls
    # made by the engine stay off the server's event loop
    engine = engine_for(payload.device, client)
    return asyncio.run(engine.explain(payload.feature, payload.config, payload.default))
