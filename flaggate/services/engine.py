import asyncio
from typing import Dict, Iterable, List, Optional, Tuple

import structlog

from flaggate.metrics import EVALS
from flaggate.models import Clock, EvaluationContext, utcnow
from flaggate.providers import (
    DeviceInfoProvider,
    IdentityProvider,
    KeyValueStore,
    LocaleSource,
    PushProvider,
    system_locale_tag,
)
from flaggate.schemas import EvaluationResult, RemoteConfigSchema
from flaggate.services.conditions import ConditionEvaluator
from flaggate.services.rollout import RolloutBucketAssigner
from flaggate.services.rules import resolve_rules

logger = structlog.get_logger(__name__)


class FeatureFlagEngine:
    """Decides whether a named feature is active for this client.

    ``enabled=False`` on a feature is a kill switch and rules are never read.
    An enabled feature without rules is open to everyone. Once a feature has
    rules only a matching ``enable`` rule grants access; when nothing matches
    the answer is ``False``.

    The engine owns its rollout bucket, so concurrent evaluations on one
    engine share the same bucket and generate it at most once.
    """

    def __init__(
        self,
        platform: str,
        device: DeviceInfoProvider,
        storage: KeyValueStore,
        push: PushProvider,
        identity: IdentityProvider,
        locale_source: LocaleSource = system_locale_tag,
        clock: Clock = utcnow,
        evaluator: Optional[ConditionEvaluator] = None,
        rollout: Optional[RolloutBucketAssigner] = None,
    ):
        self.platform = platform
        self.device = device
        self.storage = storage
        self.push = push
        self.identity = identity
        self.locale_source = locale_source
        self.clock = clock
        self.evaluator = evaluator or ConditionEvaluator()
        self.rollout = rollout or RolloutBucketAssigner(storage)

    def new_context(self) -> EvaluationContext:
        return EvaluationContext(
            platform=self.platform,
            device=self.device,
            storage=self.storage,
            push=self.push,
            identity=self.identity,
            locale_source=self.locale_source,
            rollout=self.rollout,
            clock=self.clock,
        )

    async def _decide(self, feature_name: str, config: Optional[RemoteConfigSchema], default_value: bool) -> Tuple[EvaluationResult, List[str]]:
        if config is None:
            return EvaluationResult(feature=feature_name, enabled=default_value, reason="missing-config"), []
        feature = config.find(feature_name)
        if feature is None:
            return EvaluationResult(feature=feature_name, enabled=default_value, reason="not-found"), []
        if not feature.enabled:
            return EvaluationResult(feature=feature_name, enabled=False, reason="disabled"), []
        if not feature.rules:
            return EvaluationResult(feature=feature_name, enabled=True, reason="open"), []

        resolution = await resolve_rules(feature.rules, self.new_context(), self.evaluator)
        if resolution.outcome == "no-match":
            return EvaluationResult(feature=feature_name, enabled=False, reason="no-match"), resolution.unmet
        enabled = resolution.outcome == "enable"
        return EvaluationResult(feature=feature_name, enabled=enabled, reason=f"rule-{resolution.outcome}"), resolution.unmet

    async def explain(self, feature_name: str, config: Optional[RemoteConfigSchema], default_value: bool = False) -> EvaluationResult:
        try:
            result, unmet = await self._decide(feature_name, config, default_value)
        except Exception:
            logger.exception("feature_evaluation_failed", feature=feature_name)
            result, unmet = EvaluationResult(feature=feature_name, enabled=False, reason="error"), []

        EVALS.labels(feature_name, str(result.enabled)).inc()
        if not result.enabled:
            logger.info("feature_denied", feature=feature_name, reason=result.reason, fields=unmet)
        return result

    async def evaluate(self, feature_name: str, config: Optional[RemoteConfigSchema], default_value: bool = False) -> bool:
        result = await self.explain(feature_name, config, default_value)
        return result.enabled

    async def evaluate_many(self, feature_names: Iterable[str], config: Optional[RemoteConfigSchema], default_value: bool = False) -> Dict[str, bool]:
        names = list(feature_names)
        results = await asyncio.gather(*(self.evaluate(name, config, default_value) for name in names))
        return dict(zip(names, results))
