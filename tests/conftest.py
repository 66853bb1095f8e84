"""Shared doubles for the engine's collaborators."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from flaggate.models import EvaluationContext
from flaggate.providers import InMemoryKeyValueStore
from flaggate.schemas import CurrentUser, RemoteConfigSchema
from flaggate.services.engine import FeatureFlagEngine
from flaggate.services.rollout import RolloutBucketAssigner

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

# the bare key-value contract, without set_string_if_absent
BASIC_STORE = ["get_string", "set_string", "get_bool"]


def build_config(name: str, enabled: bool, conditions: dict | None = None) -> RemoteConfigSchema:
    rules = [{"action": "enable", "conditions": conditions}] if conditions is not None else None
    return RemoteConfigSchema.model_validate({"features": [{"name": name, "enabled": enabled, "rules": rules}]})


class FakeDevice:
    def __init__(self):
        self.build_number = "10"
        self.version = "1.2.3"
        self.brand = "Google"
        self.model = "Pixel 7"
        self.first_install_time = NOW - timedelta(days=10)
        self.install_time_calls = 0

    def get_build_number(self) -> str:
        return self.build_number

    def get_version(self) -> str:
        return self.version

    def get_brand(self) -> str:
        return self.brand

    def get_model(self) -> str:
        return self.model

    async def get_first_install_time(self):
        self.install_time_calls += 1
        return self.first_install_time


class Client:
    """Bundle of collaborators for one simulated installation."""

    def __init__(self):
        self.platform = "android"
        self.device = FakeDevice()
        self.storage = InMemoryKeyValueStore({"user_plan_type": "free", "session_count": "0"})
        self.push = MagicMock()
        self.push.get_token = AsyncMock(return_value="token-123")
        self.push.check_permission = AsyncMock(return_value=True)
        self.identity = MagicMock()
        self.identity.get_current_user = AsyncMock(
            return_value=CurrentUser(id="user-1", email="test@example.com", providers=["password"])
        )
        self.locale = "en-US"
        self.randbelow = MagicMock(return_value=42)

    def set_user(self, user: CurrentUser | None):
        self.identity.get_current_user.return_value = user

    def rollout(self) -> RolloutBucketAssigner:
        return RolloutBucketAssigner(self.storage, randbelow=self.randbelow)

    def engine(self) -> FeatureFlagEngine:
        return FeatureFlagEngine(
            platform=self.platform,
            device=self.device,
            storage=self.storage,
            push=self.push,
            identity=self.identity,
            locale_source=lambda: self.locale,
            clock=lambda: NOW,
            rollout=self.rollout(),
        )

    def context(self) -> EvaluationContext:
        return self.engine().new_context()


@pytest.fixture
def client() -> Client:
    return Client()
