import random
import threading
from typing import Callable, Optional

import structlog

from flaggate.providers import KeyValueStore

logger = structlog.get_logger(__name__)

ROLLOUT_ID_KEY = "rollout_id"
BUCKETS = 100


def _parse_bucket(value: Optional[str]) -> Optional[int]:
    # plain ASCII decimal only; "+5", "5_0" and non-ASCII digits are invalid
    if value is None:
        return None
    value = value.strip()
    if not (value.isascii() and value.isdigit()):
        return None
    bucket = int(value)
    if bucket < BUCKETS:
        return bucket
    return None


class RolloutBucketAssigner:
    """Stable per-installation bucket in [0, 100) for percentage rollouts.

    The bucket is read from ``store`` once, or generated and written back when
    the stored value is missing or invalid. A stored valid value is never
    overwritten. When the store offers ``set_string_if_absent`` a fresh bucket
    is written only if no other writer got there first, and the winner's value
    is adopted. The in-memory copy survives a failed write.
    """

    def __init__(self, store: KeyValueStore, key: str = ROLLOUT_ID_KEY, randbelow: Callable[[int], int] = random.randrange):
        self.store = store
        self.key = key
        self._randbelow = randbelow
        self._bucket: Optional[int] = None
        self._lock = threading.Lock()

    def get_bucket(self) -> int:
        if self._bucket is not None:
            return self._bucket
        with self._lock:
            if self._bucket is None:
                self._bucket = self._load_or_generate()
        return self._bucket

    def reset(self):
        with self._lock:
            self._bucket = None

    def _read(self) -> Optional[str]:
        try:
            return self.store.get_string(self.key)
        except Exception:
            logger.warning("rollout_id_read_failed", key=self.key, exc_info=True)
            return None

    def _load_or_generate(self) -> int:
        stored = self._read()
        bucket = _parse_bucket(stored)
        if bucket is not None:
            return bucket

        bucket = self._randbelow(BUCKETS)
        set_if_absent = getattr(self.store, "set_string_if_absent", None)
        try:
            if stored is None and set_if_absent is not None:
                if not set_if_absent(self.key, str(bucket)):
                    winner = _parse_bucket(self._read())
                    if winner is not None:
                        logger.info("rollout_id_adopted", bucket=winner)
                        return winner
                    self.store.set_string(self.key, str(bucket))
            else:
                self.store.set_string(self.key, str(bucket))
        except Exception:
            logger.warning("rollout_id_write_failed", key=self.key, exc_info=True)
        logger.info("rollout_id_generated", bucket=bucket, replaced=stored is not None)
        return bucket
