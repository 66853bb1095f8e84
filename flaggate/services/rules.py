from dataclasses import dataclass, field
from typing import List, Literal, Optional, Sequence

from flaggate.models import EvaluationContext
from flaggate.schemas import FeatureRule
from flaggate.services.conditions import ConditionEvaluator

Outcome = Literal["enable", "disable", "no-match"]


@dataclass
class Resolution:
    outcome: Outcome
    rule: Optional[FeatureRule] = None
    # first unmet field of every rule examined before the match (or all of them)
    unmet: List[str] = field(default_factory=list)


def by_priority(rules: Sequence[FeatureRule]) -> List[FeatureRule]:
    # sorted() is stable with reverse=True, ties keep their input order
    return sorted(rules, key=lambda rule: rule.priority, reverse=True)


async def resolve_rules(rules: Sequence[FeatureRule], context: EvaluationContext, evaluator: ConditionEvaluator) -> Resolution:
    """First matching rule in descending priority wins.

    A rule without conditions always matches, a malformed one never does.
    """
    unmet: List[str] = []
    for rule in by_priority(rules):
        if rule.malformed:
            unmet.append("malformed")
            continue
        if rule.conditions is None:
            return Resolution(rule.action, rule, unmet)
        failed = await evaluator.first_unmet(rule.conditions, context)
        if failed is None:
            return Resolution(rule.action, rule, unmet)
        unmet.append(failed)
    return Resolution("no-match", None, unmet)
