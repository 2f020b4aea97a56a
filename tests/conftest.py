from datetime import date
from pathlib import Path

import pytest

from rewardcap.domain.models import (
    CapSpec,
    EarnSpec,
    LedgerSlice,
    Merchant,
    PaymentMethod,
    RewardRule,
    Transaction,
)

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
CARD = "acme-bank-dining-plus"


def make_txn(
    amount,
    day: date = date(2025, 3, 20),
    mcc: str | None = None,
    online: bool = False,
    contactless: bool = False,
    payment_method_id: str = "pm-1",
    merchant_name: str | None = None,
    **extra,
) -> Transaction:
    return Transaction(
        payment_method_id=payment_method_id,
        amount=amount,
        date=day,
        merchant=Merchant(name=merchant_name, mcc=mcc, is_online=online),
        is_contactless=contactless,
        **extra,
    )


def make_ledger(transactions, start=date(2025, 1, 1), end=date(2025, 7, 1), payment_method_id="pm-1"):
    return LedgerSlice(
        payment_method_id=payment_method_id,
        start=start,
        end=end,
        transactions=list(transactions),
    )


@pytest.fixture
def card() -> PaymentMethod:
    return PaymentMethod(id="pm-1", name="Dining Plus", issuer="Acme Bank", statement_day=15)


@pytest.fixture
def online_rule() -> RewardRule:
    return RewardRule(
        id="online",
        card_type_id=CARD,
        predicates=[{"kind": "transaction_type", "types": ["online"]}],
        earn=EarnSpec(rounding_unit=5, base_rate=1, bonus_rate=9),
        cap=CapSpec(amount=4000, group_id="shared"),
    )


@pytest.fixture
def contactless_rule() -> RewardRule:
    return RewardRule(
        id="contactless",
        card_type_id=CARD,
        predicates=[{"kind": "transaction_type", "types": ["contactless"]}],
        earn=EarnSpec(rounding_unit=5, base_rate=1, bonus_rate=9),
        cap=CapSpec(amount=4000, group_id="shared"),
    )


@pytest.fixture
def dining_rule() -> RewardRule:
    return RewardRule(
        id="dining-online",
        card_type_id=CARD,
        predicates=[
            {"kind": "mcc", "codes": ["5812", "5814"]},
            {"kind": "transaction_type", "types": ["online"]},
        ],
        earn=EarnSpec(rounding_unit=5, base_rate=2, bonus_rate=10),
    )


@pytest.fixture
def base_rule() -> RewardRule:
    return RewardRule(
        id="base",
        card_type_id=CARD,
        catch_all=True,
        earn=EarnSpec(rounding_unit=5, base_rate=1),
    )


@pytest.fixture
def rules(base_rule, online_rule, contactless_rule, dining_rule) -> list[RewardRule]:
    return [base_rule, online_rule, contactless_rule, dining_rule]
