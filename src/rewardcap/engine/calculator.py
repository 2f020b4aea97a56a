from datetime import date
from decimal import ROUND_FLOOR, Decimal

from loguru import logger

from rewardcap.domain.models import (
    BonusTier,
    CalculationMethod,
    LedgerSlice,
    Merchant,
    PaymentMethod,
    PointsResult,
    ReasonCode,
    RewardRule,
    Transaction,
)
from rewardcap.engine.caps import CapUsageService, compute_period_spend
from rewardcap.engine.matcher import catch_all_rule, rank_rules

CAP_REACHED = "monthly bonus cap reached"
NOT_ELIGIBLE = "not eligible for bonus points"
NON_EARNING = "no points for this payment method or amount"


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def complete_blocks(amount: Decimal, rounding_unit: Decimal) -> int:
    return _floor(Decimal(amount) / Decimal(rounding_unit))


def points_for(blocks: int, rate: Decimal) -> int:
    return _floor(Decimal(blocks) * Decimal(rate))


def hypothetical_transaction(
    payment_method_id: str,
    amount: Decimal | float | str,
    currency: str,
    mcc: str | None = None,
    merchant_name: str | None = None,
    is_online: bool = False,
    is_contactless: bool = False,
    converted_amount: Decimal | float | str | None = None,
    as_of: date | None = None,
) -> Transaction:
    return Transaction(
        payment_method_id=payment_method_id,
        amount=amount,
        currency=currency,
        date=as_of or date.today(),
        merchant=Merchant(name=merchant_name, mcc=mcc, is_online=is_online),
        is_contactless=is_contactless,
        converted_amount=converted_amount,
    )


class RewardCalculator:
    def __init__(
        self,
        cap_usage: CapUsageService | None = None,
        default_points_currency: str = "points",
    ):
        self.cap_usage = cap_usage or CapUsageService()
        self.default_points_currency = default_points_currency

    def _points_currency(self, payment_method: PaymentMethod, rule: RewardRule | None) -> str:
        if rule is not None and rule.points_currency:
            return rule.points_currency
        return payment_method.points_currency or self.default_points_currency

    def _period_spend(
        self,
        rule: RewardRule,
        txn: Transaction,
        payment_method: PaymentMethod,
        ledger: LedgerSlice,
    ) -> Decimal:
        window = self.cap_usage.window_for(payment_method, rule.min_spend_convention, txn.date)
        return compute_period_spend(payment_method, ledger, window, exclude_id=txn.id)

    def _min_spend_met(
        self,
        rule: RewardRule,
        txn: Transaction,
        payment_method: PaymentMethod,
        ledger: LedgerSlice,
    ) -> bool:
        if rule.monthly_min_spend is None:
            return True
        return self._period_spend(rule, txn, payment_method, ledger) >= rule.monthly_min_spend

    def _tier_for(
        self,
        rule: RewardRule,
        txn: Transaction,
        payment_method: PaymentMethod,
        ledger: LedgerSlice,
    ) -> BonusTier | None:
        period_spend = None
        if rule.earn.uses_period_spend:
            period_spend = self._period_spend(rule, txn, payment_method, ledger)
        amount = txn.calculation_amount
        return next(
            (tier for tier in rule.earn.ordered_tiers if tier.applies(amount, period_spend)),
            None,
        )

    def _earn(
        self,
        rule: RewardRule,
        txn: Transaction,
        payment_method: PaymentMethod,
        ledger: LedgerSlice,
    ) -> tuple[int, int, BonusTier | None]:
        earn = rule.earn
        amount = txn.calculation_amount
        blocks = complete_blocks(amount, earn.rounding_unit)
        tier = None

        if earn.method is CalculationMethod.TIERED:
            base_points = 0
            tier = self._tier_for(rule, txn, payment_method, ledger)
            tier_points = points_for(blocks, tier.multiplier) if tier is not None else 0
        elif earn.method is CalculationMethod.FLAT_RATE:
            base_points, tier_points = _floor(earn.base_rate), 0
        elif earn.method is CalculationMethod.DIRECT:
            base_points, tier_points = _floor(amount), 0
        else:
            base_points, tier_points = points_for(blocks, earn.base_rate), 0

        return base_points, tier_points + points_for(blocks, earn.bonus_rate), tier

    def _select_rule(
        self,
        txn: Transaction,
        payment_method: PaymentMethod,
        candidate_rules: list[RewardRule],
        ledger: LedgerSlice,
    ) -> tuple[RewardRule | None, bool]:
        min_spend_met = True
        for rule in rank_rules(txn, candidate_rules):
            if self._min_spend_met(rule, txn, payment_method, ledger):
                return rule, min_spend_met
            logger.debug("Rule {} skipped, monthly minimum spend not met", rule.id)
            min_spend_met = False
        return catch_all_rule(candidate_rules), min_spend_met

    def calculate(
        self,
        txn: Transaction,
        payment_method: PaymentMethod,
        candidate_rules: list[RewardRule],
        ledger: LedgerSlice,
        generation: int | None = None,
    ) -> PointsResult:
        if not payment_method.is_earning or txn.amount <= 0:
            return PointsResult(
                points_currency=self._points_currency(payment_method, None),
                reason_code=ReasonCode.NON_EARNING,
                reason=NON_EARNING,
            )

        try:
            return self._calculate(txn, payment_method, candidate_rules, ledger, generation)
        except Exception:
            logger.error(
                "Reward calculation failed for payment method {} (amount={} {}, mcc={}, date={})",
                payment_method.id, txn.amount, txn.currency, txn.merchant.mcc, txn.date,
            )
            raise

    def _calculate(
        self,
        txn: Transaction,
        payment_method: PaymentMethod,
        candidate_rules: list[RewardRule],
        ledger: LedgerSlice,
        generation: int | None = None,
    ) -> PointsResult:
        rule, min_spend_met = self._select_rule(txn, payment_method, candidate_rules, ledger)
        if rule is None:
            logger.info("No reward rule applies to transaction on {}", payment_method.id)
            return PointsResult(
                points_currency=self._points_currency(payment_method, None),
                reason_code=ReasonCode.NOT_ELIGIBLE,
                reason=NOT_ELIGIBLE,
                min_spend_met=min_spend_met,
            )

        base_points, potential_bonus, tier = self._earn(rule, txn, payment_method, ledger)

        bonus_points = potential_bonus
        remaining = None
        if rule.cap is not None:
            usage = self.cap_usage.usage_for(
                payment_method, rule, candidate_rules, ledger, txn.date,
                exclude=txn, generation=generation,
            )
            bonus_points = min(potential_bonus, usage.remaining)
            remaining = usage.remaining - bonus_points

        if potential_bonus == 0:
            reason_code, reason = ReasonCode.NOT_ELIGIBLE, NOT_ELIGIBLE
        elif bonus_points == 0:
            reason_code, reason = ReasonCode.CAP_REACHED, CAP_REACHED
        elif bonus_points < potential_bonus:
            reason_code = ReasonCode.BONUS_CAPPED
            reason = f"+{bonus_points} bonus points (capped by monthly limit)"
        else:
            reason_code, reason = ReasonCode.BONUS_EARNED, f"+{bonus_points} bonus points"

        result = PointsResult(
            base_points=base_points,
            bonus_points=bonus_points,
            total_points=base_points + bonus_points,
            remaining_bonus_quota=remaining,
            points_currency=self._points_currency(payment_method, rule),
            reason_code=reason_code,
            reason=reason,
            applied_rule_id=rule.id,
            applied_tier=(tier.name or None) if tier is not None else None,
            cap_scope_id=rule.cap_scope_id,
            min_spend_met=min_spend_met,
        )
        logger.info(
            "Applied rule {} on {}: base={} bonus={} total={} remaining={}",
            rule.id, payment_method.id, base_points, bonus_points,
            result.total_points, remaining,
        )
        return result

    def simulate(
        self,
        amount: Decimal | float | str,
        currency: str,
        payment_method: PaymentMethod,
        candidate_rules: list[RewardRule],
        ledger: LedgerSlice,
        mcc: str | None = None,
        merchant_name: str | None = None,
        is_online: bool = False,
        is_contactless: bool = False,
        converted_amount: Decimal | float | str | None = None,
        as_of: date | None = None,
    ) -> PointsResult:
        txn = hypothetical_transaction(
            payment_method.id, amount, currency, mcc, merchant_name,
            is_online, is_contactless, converted_amount, as_of,
        )
        return self.calculate(txn, payment_method, candidate_rules, ledger)
