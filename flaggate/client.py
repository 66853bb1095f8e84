import json
import time
from typing import Any, Dict, Optional, Tuple

import requests
import structlog

logger = structlog.get_logger(__name__)

CacheKey = Tuple[str, str]


class FlagGateClient:
    """Asks a flaggate service to evaluate features for a device snapshot.

    Answers are cached per feature and request body, so different devices,
    configs or defaults never share an entry.
    """

    def __init__(self, api_url: str, timeout: float = 2.0, cache_ttl: float = 30.0):
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self._cache: Dict[CacheKey, Tuple[bool, float]] = {}  # (feature, body) -> (enabled, ts)

    def _post(self, path: str, payload: dict):
        url = f"{self.api_url}{path}"
        r = requests.post(url, json=payload, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def is_enabled(self, feature: str, config: Optional[Dict[str, Any]], device: Dict[str, Any], default: bool = False) -> bool:
        payload = {"feature": feature, "default": default, "config": config, "device": device}
        key = (feature, json.dumps(payload, sort_keys=True, default=str))
        now = time.time()
        cached = self._cache.get(key)
        if cached and (now - cached[1] < self.cache_ttl):
            return cached[0]
        try:
            data = self._post("/evaluate", payload)
        except requests.RequestException:
            logger.warning("remote_evaluation_failed", feature=feature, exc_info=True)
            return default
        self._cache[key] = (data["enabled"], now)
        return data["enabled"]

    def invalidate(self, feature: Optional[str] = None):
        if feature is None:
            self._cache.clear()
            return
        for key in [key for key in self._cache if key[0] == feature]:
            del self._cache[key]
