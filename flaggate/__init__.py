from flaggate.schemas import (
    CurrentUser,
    EvaluationResult,
    FeatureCondition,
    FeatureDefinition,
    FeatureRule,
    RemoteConfigSchema,
    load_remote_config,
)
from flaggate.services.engine import FeatureFlagEngine
from flaggate.services.locale import language_and_country
from flaggate.services.rollout import RolloutBucketAssigner
from flaggate.services.version import is_at_least

__all__ = [
    "CurrentUser",
    "EvaluationResult",
    "FeatureCondition",
    "FeatureDefinition",
    "FeatureFlagEngine",
    "FeatureRule",
    "RemoteConfigSchema",
    "RolloutBucketAssigner",
    "is_at_least",
    "language_and_country",
    "load_remote_config",
]
