"""Per-field predicates for ``FeatureCondition`` and the evaluator that folds them.

Each check covers one field (or a min/max pair) and is skipped when that field
is not populated. Checks run in ``CONDITION_CHECKS`` order and the first unmet
one stops evaluation, so later providers are never queried.
"""

from datetime import date, datetime, timezone
from typing import Awaitable, Callable, NamedTuple, Optional, Sequence, Tuple

import structlog

from flaggate.models import EvaluationContext
from flaggate.schemas import FeatureCondition
from flaggate.services.version import is_at_least

logger = structlog.get_logger(__name__)

CheckFunc = Callable[[FeatureCondition, EvaluationContext], Awaitable[bool]]


class ConditionCheck(NamedTuple):
    field: str
    attrs: Tuple[str, ...]
    func: CheckFunc

    def applies(self, conditions: FeatureCondition) -> bool:
        return any(is_populated(getattr(conditions, attr)) for attr in self.attrs)


def is_populated(value) -> bool:
    # empty lists mean "don't care", same as an absent field
    if value is None:
        return False
    if isinstance(value, list) and not value:
        return False
    return True


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _within(value, low, high) -> bool:
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True


async def check_platform(cond: FeatureCondition, ctx: EvaluationContext) -> bool:
    return ctx.platform == cond.platform


async def check_build(cond: FeatureCondition, ctx: EvaluationContext) -> bool:
    build = ctx.build_number()
    if build is None:
        return False
    return _within(build, cond.min_build, cond.max_build)


async def check_min_version(cond: FeatureCondition, ctx: EvaluationContext) -> bool:
    return is_at_least(ctx.app_version(), cond.min_version)


async def check_models(cond: FeatureCondition, ctx: EvaluationContext) -> bool:
    name = ctx.device_name().lower()
    return any(model.lower() in name for model in cond.models)


async def check_user_ids(cond: FeatureCondition, ctx: EvaluationContext) -> bool:
    user = await ctx.current_user()
    return user is not None and user.id in cond.user_ids


async def check_fcm_tokens(cond: FeatureCondition, ctx: EvaluationContext) -> bool:
    token = await ctx.push_token()
    return bool(token) and token in cond.fcm_tokens


async def check_notifications(cond: FeatureCondition, ctx: EvaluationContext) -> bool:
    return await ctx.notifications_enabled() == cond.notifications_enabled


async def check_rollout(cond: FeatureCondition, ctx: EvaluationContext) -> bool:
    return ctx.rollout_bucket() < cond.rollout_percentage


async def check_emails(cond: FeatureCondition, ctx: EvaluationContext) -> bool:
    user = await ctx.current_user()
    if user is None or not user.email:
        return False
    return user.email.lower() in {email.lower() for email in cond.emails}


async def check_auth_providers(cond: FeatureCondition, ctx: EvaluationContext) -> bool:
    user = await ctx.current_user()
    if user is None:
        return False
    return bool(set(user.providers) & set(cond.auth_providers))


async def check_plan_types(cond: FeatureCondition, ctx: EvaluationContext) -> bool:
    return ctx.plan_type() in cond.plan_types


async def check_country_codes(cond: FeatureCondition, ctx: EvaluationContext) -> bool:
    _, country = ctx.language_and_country()
    return country in {code.upper() for code in cond.country_codes}


async def check_device_languages(cond: FeatureCondition, ctx: EvaluationContext) -> bool:
    language, _ = ctx.language_and_country()
    return language in {lang.lower() for lang in cond.device_languages}


async def check_days_since_install(cond: FeatureCondition, ctx: EvaluationContext) -> bool:
    installed = await ctx.first_install_time()
    if installed is None:
        return False
    days = (_as_utc(ctx.now()) - _as_utc(installed)).days
    return _within(days, cond.min_days_since_install, cond.max_days_since_install)


async def check_first_time_user(cond: FeatureCondition, ctx: EvaluationContext) -> bool:
    return ctx.is_first_time_user() == cond.is_first_time_user


def _parse_day(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    return date.fromisoformat(value.strip())


async def check_registration_date(cond: FeatureCondition, ctx: EvaluationContext) -> bool:
    try:
        low = _parse_day(cond.min_registration_date)
        high = _parse_day(cond.max_registration_date)
    except ValueError:
        logger.warning(
            "registration_date_invalid",
            min_registration_date=cond.min_registration_date,
            max_registration_date=cond.max_registration_date,
        )
        return False
    user = await ctx.current_user()
    if user is None or user.registered_at is None:
        return False
    return _within(_as_utc(user.registered_at).date(), low, high)


CONDITION_CHECKS: Tuple[ConditionCheck, ...] = (
    ConditionCheck("platform", ("platform",), check_platform),
    ConditionCheck("build", ("min_build", "max_build"), check_build),
    ConditionCheck("minVersion", ("min_version",), check_min_version),
    ConditionCheck("models", ("models",), check_models),
    ConditionCheck("userIds", ("user_ids",), check_user_ids),
    ConditionCheck("fcmTokens", ("fcm_tokens",), check_fcm_tokens),
    ConditionCheck("notificationsEnabled", ("notifications_enabled",), check_notifications),
    ConditionCheck("rolloutPercentage", ("rollout_percentage",), check_rollout),
    ConditionCheck("emails", ("emails",), check_emails),
    ConditionCheck("authProviders", ("auth_providers",), check_auth_providers),
    ConditionCheck("planTypes", ("plan_types",), check_plan_types),
    ConditionCheck("countryCodes", ("country_codes",), check_country_codes),
    ConditionCheck("deviceLanguages", ("device_languages",), check_device_languages),
    ConditionCheck("daysSinceInstall", ("min_days_since_install", "max_days_since_install"), check_days_since_install),
    ConditionCheck("isFirstTimeUser", ("is_first_time_user",), check_first_time_user),
    ConditionCheck("registrationDate", ("min_registration_date", "max_registration_date"), check_registration_date),
)


class ConditionEvaluator:
    def __init__(self, checks: Sequence[ConditionCheck] = CONDITION_CHECKS):
        self.checks = checks

    async def first_unmet(self, conditions: FeatureCondition, context: EvaluationContext) -> Optional[str]:
        """Name of the first populated field that does not hold, or None on a match.

        A check whose provider raises counts as unmet.
        """
        for check in self.checks:
            if not check.applies(conditions):
                continue
            try:
                met = await check.func(conditions, context)
            except Exception:
                logger.warning("condition_check_failed", field=check.field, exc_info=True)
                met = False
            if not met:
                return check.field
        return None

    async def matches(self, conditions: FeatureCondition, context: EvaluationContext) -> bool:
        return await self.first_unmet(conditions, context) is None
