import asyncio
from datetime import date

import pytest

from rewardcap.domain.models import PaymentMethod, ReasonCode
from rewardcap.engine.cache import UsageCache
from rewardcap.exceptions import PaymentMethodNotFound
from rewardcap.repository.ledger import InMemoryLedger, JsonLedger
from rewardcap.repository.rule_store import InMemoryRuleStore, JsonRuleStore
from rewardcap.services.rewards import RewardService

from conftest import CARD, DATA_DIR, make_txn


def _service(rules, transactions=()):
    payment_method = PaymentMethod(id="pm-1", card_type_id=CARD, statement_day=15)
    cache = UsageCache()
    ledger = InMemoryLedger([payment_method], list(transactions), on_change=cache.invalidate)
    service = RewardService(InMemoryRuleStore(rules), ledger, ledger, cache=cache)
    return service, ledger


def test_calculate_reads_rules_and_ledger(rules) -> None:
    service, _ = _service(
        rules, [make_txn(100, day=date(2025, 3, 2), applied_rule_id="online", bonus_points=3900)]
    )

    result = asyncio.run(service.calculate(make_txn(100, online=True)))

    assert result.applied_rule_id == "online"
    assert result.bonus_points == 100
    assert result.remaining_bonus_quota == 0


def test_ledger_changes_invalidate_cached_usage(rules) -> None:
    service, ledger = _service(rules)

    first = asyncio.run(service.simulate("pm-1", "100", is_online=True, as_of=date(2025, 3, 20)))
    ledger.add(
        make_txn(
            100, day=date(2025, 3, 20), id="t-1", online=True,
            applied_rule_id=first.applied_rule_id, bonus_points=first.bonus_points,
        )
    )
    second = asyncio.run(service.simulate("pm-1", "100", is_online=True, as_of=date(2025, 3, 20)))
    ledger.remove("t-1")
    third = asyncio.run(service.simulate("pm-1", "100", is_online=True, as_of=date(2025, 3, 20)))

    assert first.remaining_bonus_quota == 3820
    assert second.remaining_bonus_quota == 3640
    assert third.remaining_bonus_quota == 3820


def test_stale_cache_without_notification_heals_after_transaction_changed(rules) -> None:
    service, ledger = _service(rules)
    asyncio.run(service.simulate("pm-1", "100", is_online=True, as_of=date(2025, 3, 20)))

    ledger.transactions.append(
        make_txn(100, day=date(2025, 3, 3), applied_rule_id="online", bonus_points=4000)
    )
    stale = asyncio.run(service.simulate("pm-1", "100", is_online=True, as_of=date(2025, 3, 20)))
    service.transaction_changed("pm-1")
    healed = asyncio.run(service.simulate("pm-1", "100", is_online=True, as_of=date(2025, 3, 20)))

    assert stale.bonus_points == 180
    assert healed.bonus_points == 0
    assert healed.reason_code is ReasonCode.CAP_REACHED


class LateWriteLedger(InMemoryLedger):
    """Lands one write, and its invalidation, while a read is in flight."""

    def __init__(self, *args, late_write=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.late_write = late_write

    async def list_transactions(self, payment_method_id, start, end):
        snapshot = await super().list_transactions(payment_method_id, start, end)
        if self.late_write is not None:
            txn, self.late_write = self.late_write, None
            self.add(txn)
        return snapshot


def test_invalidation_during_ledger_read_is_not_overwritten(rules) -> None:
    payment_method = PaymentMethod(id="pm-1", card_type_id=CARD, statement_day=15)
    cache = UsageCache()
    late = make_txn(
        100, day=date(2025, 3, 3), id="t-late", online=True,
        applied_rule_id="online", bonus_points=4000,
    )
    ledger = LateWriteLedger([payment_method], on_change=cache.invalidate, late_write=late)
    service = RewardService(InMemoryRuleStore(rules), ledger, ledger, cache=cache)

    in_flight = asyncio.run(service.simulate("pm-1", "100", is_online=True, as_of=date(2025, 3, 20)))
    stored_after_race = len(cache)
    after = asyncio.run(service.simulate("pm-1", "100", is_online=True, as_of=date(2025, 3, 20)))
    again = asyncio.run(service.simulate("pm-1", "100", is_online=True, as_of=date(2025, 3, 20)))

    assert in_flight.bonus_points == 180
    assert stored_after_race == 0
    assert after.bonus_points == 0
    assert after.reason_code is ReasonCode.CAP_REACHED
    assert after.remaining_bonus_quota == 0
    assert again.bonus_points == 0


def test_unknown_payment_method_raises(rules) -> None:
    service, _ = _service(rules)

    with pytest.raises(PaymentMethodNotFound):
        asyncio.run(service.simulate("pm-404", "10"))


def test_json_collaborators_end_to_end() -> None:
    ledger = JsonLedger(DATA_DIR / "ledger.json")
    service = RewardService(JsonRuleStore(DATA_DIR / "rules.json"), ledger, ledger)

    online = asyncio.run(
        service.simulate("pm-dining", "100", is_online=True, mcc="5999", as_of=date(2025, 3, 20))
    )
    groceries = asyncio.run(
        service.simulate("pm-grocery", "50", mcc="5411", as_of=date(2025, 4, 1))
    )
    cash = asyncio.run(service.simulate("pm-cash", "50", as_of=date(2025, 3, 20)))
    caps = asyncio.run(service.cap_usage("pm-dining", date(2025, 3, 20)))

    assert online.applied_rule_id == "dp-online"
    assert online.bonus_points == 180
    assert online.remaining_bonus_quota == 4000 - 2916 - 180
    assert online.points_currency == "ACME Points"
    assert groceries.applied_rule_id == "gs-groceries"
    assert groceries.reason_code is ReasonCode.CAP_REACHED
    assert cash.reason_code is ReasonCode.NON_EARNING
    assert [(cap.scope_id, cap.used, cap.remaining) for cap in caps] == [
        ("dp-online-contactless", 2916, 1084)
    ]
