import json
from pathlib import Path
from typing import Protocol

from loguru import logger
from pydantic import ValidationError

from rewardcap.domain.models import RewardRule
from rewardcap.exceptions import RuleConfigError


class RuleStore(Protocol):
    async def get_rules(self, card_type_id: str) -> list[RewardRule]:
        ...


def order_rules(rules: list[RewardRule]) -> list[RewardRule]:
    """Authoring precedence: higher priority first, file order within a priority."""
    return sorted(rules, key=lambda rule: -rule.priority)


class InMemoryRuleStore:
    def __init__(self, rules: list[RewardRule] | None = None):
        self.rules = list(rules or [])

    async def get_rules(self, card_type_id: str) -> list[RewardRule]:
        return order_rules([rule for rule in self.rules if rule.card_type_id == card_type_id])


class JsonRuleStore:
    def __init__(self, rule_file: str | Path):
        self.rule_file = Path(rule_file)

    def load_rules(self) -> list[RewardRule]:
        if not self.rule_file.exists():
            raise FileNotFoundError(f"Rule file not found: {self.rule_file}")

        with self.rule_file.open("r", encoding="utf-8") as fh:
            try:
                data = json.load(fh)
            except json.JSONDecodeError as exc:
                raise RuleConfigError(f"Rule file {self.rule_file} is not valid JSON: {exc}") from exc

        if isinstance(data, dict):
            data = data.get("rules", [])

        try:
            return [RewardRule.model_validate(item) for item in data]
        except ValidationError as exc:
            raise RuleConfigError(f"Invalid reward rule in {self.rule_file}: {exc}") from exc

    async def get_rules(self, card_type_id: str) -> list[RewardRule]:
        rules = [rule for rule in self.load_rules() if rule.card_type_id == card_type_id]
        if not rules:
            logger.warning("No reward rules found for card type {}", card_type_id)
        return order_rules(rules)
