from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from flaggate.providers import DeviceInfoProvider, IdentityProvider, KeyValueStore, LocaleSource, PushProvider
from flaggate.schemas import CurrentUser
from flaggate.services.locale import resolve_locale
from flaggate.services.rollout import RolloutBucketAssigner

PLAN_TYPE_KEY = "user_plan_type"
SESSION_COUNT_KEY = "session_count"
ONBOARDING_DONE_KEY = "has_completed_onboarding"
DEFAULT_PLAN = "free"

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EvaluationContext:
    """Facts about the current client, looked up on first use.

    One context lives for a single ``evaluate()`` call. Every fact is fetched
    at most once per context, and only when a populated condition asks for it,
    so a rule that fails on ``platform`` never reaches the push provider.
    A failed lookup is not cached and raises to the caller.
    """

    def __init__(
        self,
        platform: str,
        device: DeviceInfoProvider,
        storage: KeyValueStore,
        push: PushProvider,
        identity: IdentityProvider,
        locale_source: LocaleSource,
        rollout: RolloutBucketAssigner,
        clock: Clock = utcnow,
    ):
        self.platform = platform
        self.device = device
        self.storage = storage
        self.push = push
        self.identity = identity
        self.locale_source = locale_source
        self.rollout = rollout
        self.clock = clock
        self._facts: Dict[str, Any] = {}

    def _once(self, key: str, fetch: Callable[[], Any]) -> Any:
        if key not in self._facts:
            self._facts[key] = fetch()
        return self._facts[key]

    async def _once_async(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        if key not in self._facts:
            self._facts[key] = await fetch()
        return self._facts[key]

    def build_number(self) -> Optional[int]:
        def fetch():
            try:
                return int(self.device.get_build_number())
            except (TypeError, ValueError):
                return None

        return self._once("build_number", fetch)

    def app_version(self) -> str:
        return self._once("app_version", self.device.get_version)

    def device_name(self) -> str:
        return self._once("device_name", lambda: f"{self.device.get_brand()} {self.device.get_model()}")

    def language_and_country(self) -> Tuple[str, str]:
        return self._once("locale", lambda: resolve_locale(self.locale_source))

    def rollout_bucket(self) -> int:
        return self._once("rollout_bucket", self.rollout.get_bucket)

    def plan_type(self) -> str:
        return self._once("plan_type", lambda: self.storage.get_string(PLAN_TYPE_KEY) or DEFAULT_PLAN)

    def is_first_time_user(self) -> bool:
        def fetch():
            onboarded = self.storage.get_bool(ONBOARDING_DONE_KEY) is True
            try:
                sessions = int(self.storage.get_string(SESSION_COUNT_KEY) or 0)
            except ValueError:
                sessions = 0
            return not onboarded and sessions <= 1

        return self._once("first_time_user", fetch)

    def now(self) -> datetime:
        return self._once("now", self.clock)

    async def current_user(self) -> Optional[CurrentUser]:
        return await self._once_async("user", self.identity.get_current_user)

    async def push_token(self) -> Optional[str]:
        return await self._once_async("push_token", self.push.get_token)

    async def notifications_enabled(self) -> bool:
        return await self._once_async("notifications", self.push.check_permission)

    async def first_install_time(self) -> Optional[datetime]:
        return await self._once_async("first_install_time", self.device.get_first_install_time)
