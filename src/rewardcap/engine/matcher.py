from loguru import logger

from rewardcap.domain.models import RewardRule, Transaction


def is_eligible(rule: RewardRule, txn: Transaction) -> bool:
    if not rule.enabled or rule.catch_all:
        return False
    return all(predicate.matches(txn) for predicate in rule.predicates)


def specificity_key(rule: RewardRule, declared_at: int) -> tuple[int, float, int]:
    constraining = sum(1 for predicate in rule.predicates if predicate.constrains)

    breadth: float = float("inf")
    for predicate in rule.predicates:
        if predicate.breadth is not None:
            breadth = min(breadth, predicate.breadth)

    return (-constraining, breadth, declared_at)


def rank_rules(txn: Transaction, candidate_rules: list[RewardRule]) -> list[RewardRule]:
    eligible = [
        (specificity_key(rule, index), rule)
        for index, rule in enumerate(candidate_rules)
        if is_eligible(rule, txn)
    ]
    eligible.sort(key=lambda item: item[0])

    logger.debug(
        "Eligible rules for {} transaction (mcc={}): {}",
        txn.transaction_type.value,
        txn.merchant.mcc,
        [rule.id for _, rule in eligible],
    )
    return [rule for _, rule in eligible]


def match_rule(txn: Transaction, candidate_rules: list[RewardRule]) -> RewardRule | None:
    ranked = rank_rules(txn, candidate_rules)
    return ranked[0] if ranked else None


def catch_all_rule(candidate_rules: list[RewardRule]) -> RewardRule | None:
    for rule in candidate_rules:
        if rule.enabled and rule.catch_all:
            return rule
    return None
