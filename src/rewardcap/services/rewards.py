from datetime import date
from decimal import Decimal

from loguru import logger

from rewardcap.domain.models import (
    CapUsageReport,
    LedgerSlice,
    PaymentMethod,
    PeriodConvention,
    PeriodScope,
    PointsResult,
    RewardRule,
    Transaction,
)
from rewardcap.engine.cache import UsageCache
from rewardcap.engine.calculator import RewardCalculator, hypothetical_transaction
from rewardcap.engine.caps import CapUsageService
from rewardcap.exceptions import PaymentMethodNotFound
from rewardcap.repository.ledger import PaymentMethodDirectory, TransactionLedger
from rewardcap.repository.rule_store import RuleStore


class RewardService:
    """Reads rules and ledger history from collaborators and runs the calculator.

    One instance owns one usage cache; construct one per session or process
    and call ``transaction_changed`` whenever a payment method's transactions
    are inserted, updated or deleted.
    """

    def __init__(
        self,
        rule_store: RuleStore,
        ledger: TransactionLedger,
        payment_methods: PaymentMethodDirectory,
        cache: UsageCache | None = None,
        default_statement_day: int = 1,
        default_points_currency: str = "points",
    ):
        self.rule_store = rule_store
        self.ledger = ledger
        self.payment_methods = payment_methods
        self.cache = cache if cache is not None else UsageCache()
        self.cap_usage_service = CapUsageService(self.cache, default_statement_day)
        self.calculator = RewardCalculator(self.cap_usage_service, default_points_currency)

    async def _payment_method(self, payment_method_id: str) -> PaymentMethod:
        payment_method = await self.payment_methods.get_payment_method(payment_method_id)
        if payment_method is None:
            raise PaymentMethodNotFound(f"Unknown payment method: {payment_method_id}")
        return payment_method

    def _conventions(self, rules: list[RewardRule]) -> set[PeriodConvention]:
        conventions = set()
        for rule in rules:
            if rule.cap is not None:
                conventions.add(rule.cap.period)
            if rule.monthly_min_spend is not None or rule.earn.uses_period_spend:
                conventions.add(rule.min_spend_convention)
        return conventions or {PeriodConvention.CALENDAR_MONTH}

    async def _read_ledger(
        self,
        payment_method: PaymentMethod,
        rules: list[RewardRule],
        reference_date: date,
        scope: PeriodScope = PeriodScope.CURRENT,
    ) -> LedgerSlice:
        windows = [
            self.cap_usage_service.window_for(payment_method, convention, reference_date, scope)
            for convention in self._conventions(rules)
        ]
        start = min(window.start for window in windows)
        end = max(window.end for window in windows)
        return await self.ledger.list_transactions(payment_method.id, start, end)

    async def calculate(self, txn: Transaction) -> PointsResult:
        payment_method = await self._payment_method(txn.payment_method_id)
        if not payment_method.is_earning or txn.amount <= 0:
            empty = LedgerSlice(payment_method_id=payment_method.id, start=txn.date, end=txn.date)
            return self.calculator.calculate(txn, payment_method, [], empty)

        rules = await self.rule_store.get_rules(payment_method.resolved_card_type_id())
        # An invalidation landing during the read below must win over this snapshot.
        generation = self.cache.generation(payment_method.id)
        ledger = await self._read_ledger(payment_method, rules, txn.date)
        return self.calculator.calculate(txn, payment_method, rules, ledger, generation=generation)

    async def simulate(
        self,
        payment_method_id: str,
        amount: Decimal | float | str,
        currency: str = "USD",
        mcc: str | None = None,
        merchant_name: str | None = None,
        is_online: bool = False,
        is_contactless: bool = False,
        converted_amount: Decimal | float | str | None = None,
        as_of: date | None = None,
    ) -> PointsResult:
        txn = hypothetical_transaction(
            payment_method_id, amount, currency, mcc, merchant_name,
            is_online, is_contactless, converted_amount, as_of,
        )
        logger.debug("Simulating {} {} on {}", txn.amount, txn.currency, payment_method_id)
        return await self.calculate(txn)

    async def cap_usage(
        self,
        payment_method_id: str,
        reference_date: date | None = None,
        scope: PeriodScope = PeriodScope.CURRENT,
    ) -> list[CapUsageReport]:
        reference_date = reference_date or date.today()
        payment_method = await self._payment_method(payment_method_id)
        rules = await self.rule_store.get_rules(payment_method.resolved_card_type_id())
        ledger = await self._read_ledger(payment_method, rules, reference_date, scope)
        return self.cap_usage_service.summarize(payment_method, rules, ledger, reference_date, scope)

    def transaction_changed(self, payment_method_id: str) -> int:
        return self.cache.invalidate(payment_method_id)
