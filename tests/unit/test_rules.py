from flaggate.schemas import FeatureRule
from flaggate.services.conditions import ConditionEvaluator
from flaggate.services.rules import by_priority, resolve_rules


def rule(action, priority=None, **conditions) -> FeatureRule:
    data = {"action": action}
    if priority is not None:
        data["priority"] = priority
    if conditions:
        data["conditions"] = conditions
    return FeatureRule.model_validate(data)


def test_sort_is_descending_and_stable():
    rules = [rule("enable", 1, platform="ios"), rule("disable"), rule("enable", 5), rule("disable", 1)]
    ordered = by_priority(rules)
    assert ordered == [rules[2], rules[0], rules[3], rules[1]]


async def test_higher_priority_catch_all_beats_conditioned_rule(client):
    rules = [rule("enable", 1, platform="android"), rule("disable", 2)]
    resolution = await resolve_rules(rules, client.context(), ConditionEvaluator())
    assert resolution.outcome == "disable"
    assert resolution.rule is rules[1]


async def test_first_match_wins_on_ties(client):
    rules = [rule("disable", platform="android"), rule("enable", platform="android")]
    resolution = await resolve_rules(rules, client.context(), ConditionEvaluator())
    assert resolution.outcome == "disable"


async def test_low_priority_catch_all_is_shadowed(client):
    rules = [rule("disable", 0), rule("enable", 3, models=["pixel"])]
    resolution = await resolve_rules(rules, client.context(), ConditionEvaluator())
    assert resolution.outcome == "enable"


async def test_no_match_collects_unmet_fields(client):
    rules = [rule("enable", platform="ios"), rule("enable", 2, user_ids=["someone-else"])]
    resolution = await resolve_rules(rules, client.context(), ConditionEvaluator())
    assert resolution.outcome == "no-match"
    assert resolution.rule is None
    assert resolution.unmet == ["userIds", "platform"]


async def test_stops_after_first_match(client):
    rules = [rule("enable", 2, platform="android"), rule("disable", 1, fcm_tokens=["token-123"])]
    resolution = await resolve_rules(rules, client.context(), ConditionEvaluator())
    assert resolution.outcome == "enable"
    client.push.get_token.assert_not_awaited()


async def test_empty_rule_list(client):
    resolution = await resolve_rules([], client.context(), ConditionEvaluator())
    assert resolution.outcome == "no-match"
