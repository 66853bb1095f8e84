import json
from datetime import datetime
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

logger = structlog.get_logger(__name__)

Platform = Literal["android", "ios"]
PlanType = Literal["free", "premium"]
RuleAction = Literal["enable", "disable"]


class _RemoteModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class FeatureCondition(_RemoteModel):
    """Sparse predicate bag; every populated field must hold for a match."""

    model_config = ConfigDict(extra="forbid")

    platform: Optional[Platform] = None
    min_build: Optional[int] = None
    max_build: Optional[int] = None
    min_version: Optional[str] = None
    models: Optional[List[str]] = Field(None, description="case-insensitive substrings of 'brand model'")
    user_ids: Optional[List[str]] = None
    fcm_tokens: Optional[List[str]] = None
    notifications_enabled: Optional[bool] = None
    rollout_percentage: Optional[int] = None
    emails: Optional[List[str]] = None
    auth_providers: Optional[List[str]] = None
    plan_types: Optional[List[PlanType]] = None
    country_codes: Optional[List[str]] = None
    device_languages: Optional[List[str]] = None
    min_days_since_install: Optional[int] = None
    max_days_since_install: Optional[int] = None
    is_first_time_user: Optional[bool] = None
    # YYYY-MM-DD, parsed at evaluation time
    min_registration_date: Optional[str] = None
    max_registration_date: Optional[str] = None


class FeatureRule(_RemoteModel):
    action: RuleAction
    priority: float = 0
    conditions: Optional[FeatureCondition] = None
    # set when the remote rule failed validation; such a rule never matches
    malformed: bool = Field(False, exclude=True)


def _rule_or_malformed(raw: Any, feature: Optional[str]) -> FeatureRule:
    if isinstance(raw, FeatureRule):
        return raw
    try:
        return FeatureRule.model_validate(raw)
    except ValidationError as exc:
        logger.warning("feature_rule_invalid", feature=feature, error=str(exc))
        return FeatureRule(action="disable", malformed=True)


class FeatureDefinition(_RemoteModel):
    name: str
    enabled: bool
    rules: Optional[List[FeatureRule]] = None

    @field_validator("rules", mode="before")
    @classmethod
    def _isolate_rules(cls, rules: Any, info: ValidationInfo) -> Any:
        if not isinstance(rules, list):
            return rules
        return [_rule_or_malformed(raw, info.data.get("name")) for raw in rules]


def _feature_or_killed(raw: Any) -> Optional[FeatureDefinition]:
    if isinstance(raw, FeatureDefinition):
        return raw
    try:
        return FeatureDefinition.model_validate(raw)
    except ValidationError as exc:
        name = raw.get("name") if isinstance(raw, Mapping) else None
        logger.warning("feature_definition_invalid", feature=name, error=str(exc))
        if isinstance(name, str):
            return FeatureDefinition(name=name, enabled=False)
        return None


class RemoteConfigSchema(_RemoteModel):
    """A bad feature or rule is contained: an unreadable feature is switched off
    and an unreadable rule never matches, the rest of the document still applies."""

    features: List[FeatureDefinition] = []

    @field_validator("features", mode="before")
    @classmethod
    def _isolate_features(cls, features: Any) -> Any:
        if not isinstance(features, list):
            return features
        return [feature for feature in map(_feature_or_killed, features) if feature is not None]

    def find(self, name: str) -> Optional[FeatureDefinition]:
        for feature in self.features:
            if feature.name == name:
                return feature
        return None


class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None
    providers: List[str] = []
    registered_at: Optional[datetime] = None


class DeviceSnapshot(BaseModel):
    installation_id: str = Field(..., min_length=1)
    platform: Platform
    build_number: str = ""
    version: str = ""
    brand: str = ""
    model: str = ""
    locale: Optional[str] = None
    first_install_time: Optional[datetime] = None
    push_token: Optional[str] = None
    notifications_enabled: bool = False
    user: Optional[CurrentUser] = None
    storage: Dict[str, Union[bool, str]] = Field(default_factory=dict, description="key-value overlay, e.g. user_plan_type")


class EvaluationRequest(BaseModel):
    feature: str
    default: bool = False
    config: Optional[RemoteConfigSchema] = None
    device: DeviceSnapshot


class EvaluationResult(BaseModel):
    feature: str
    enabled: bool
    reason: str


def load_remote_config(raw: Union[str, bytes, Mapping[str, Any], None]) -> Optional[RemoteConfigSchema]:
    """Parse a remote config document; returns None when it is missing or invalid."""
    if raw is None:
        return None
    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        return RemoteConfigSchema.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.warning("remote_config_invalid", error=str(exc))
        return None
