from datetime import date
from decimal import Decimal

from loguru import logger

from rewardcap.domain.models import (
    CapUsage,
    CapUsageReport,
    LedgerSlice,
    PaymentMethod,
    PeriodConvention,
    PeriodScope,
    PeriodWindow,
    RewardRule,
    Transaction,
)
from rewardcap.engine.cache import UsageCache, UsageKey
from rewardcap.engine.periods import compute_window
from rewardcap.exceptions import IncompleteLedgerWindow, InvalidPeriodConfig


def scope_rules(rule: RewardRule, rules: list[RewardRule]) -> list[RewardRule]:
    if rule.cap is None or not rule.cap.group_id:
        return [rule]

    group = [
        other
        for other in rules
        if other.cap is not None
        and other.cap.group_id == rule.cap.group_id
        and other.card_type_id == rule.card_type_id
    ]
    if all(other.id != rule.id for other in group):
        group.append(rule)
    return group


def scope_cap(group: list[RewardRule]) -> tuple[int, PeriodConvention]:
    conventions = {rule.cap.period for rule in group}
    if len(conventions) > 1:
        raise InvalidPeriodConfig(
            f"Cap group {group[0].cap.group_id!r} mixes period conventions: "
            f"{sorted(c.value for c in conventions)}"
        )
    return min(rule.cap.amount for rule in group), conventions.pop()


def anchor_day(payment_method: PaymentMethod, default_statement_day: int = 1) -> int:
    if payment_method.statement_day is not None:
        return payment_method.statement_day
    return default_statement_day


def ensure_covered(ledger: LedgerSlice, payment_method_id: str, window: PeriodWindow) -> None:
    if ledger.payment_method_id != payment_method_id:
        raise IncompleteLedgerWindow(
            f"Ledger belongs to {ledger.payment_method_id!r}, not {payment_method_id!r}"
        )
    if ledger.truncated:
        raise IncompleteLedgerWindow(
            f"Ledger read for {payment_method_id!r} was truncated; refusing to under-count usage"
        )
    if not ledger.window.covers(window):
        raise IncompleteLedgerWindow(
            f"Ledger covers [{ledger.start}, {ledger.end}) but the active period is "
            f"[{window.start}, {window.end})"
        )


def counts_toward(
    txn: Transaction,
    payment_method_id: str,
    window: PeriodWindow,
    rule_ids: set[str],
) -> bool:
    return (
        txn.payment_method_id == payment_method_id
        and window.contains(txn.date)
        and txn.applied_rule_id in rule_ids
        and txn.amount > 0
    )


def fold_bonus_points(
    transactions: list[Transaction],
    payment_method_id: str,
    window: PeriodWindow,
    rule_ids: set[str],
) -> int:
    return sum(
        txn.bonus_points or 0
        for txn in transactions
        if counts_toward(txn, payment_method_id, window, rule_ids)
    )


def compute_usage(
    payment_method: PaymentMethod,
    rule: RewardRule,
    rules: list[RewardRule],
    ledger: LedgerSlice,
    reference_date: date,
    scope: PeriodScope = PeriodScope.CURRENT,
    default_statement_day: int = 1,
) -> CapUsage:
    group = scope_rules(rule, rules)
    if rule.cap is None:
        cap_amount, convention = None, PeriodConvention.CALENDAR_MONTH
    else:
        cap_amount, convention = scope_cap(group)

    window = compute_window(
        reference_date, convention, anchor_day(payment_method, default_statement_day), scope
    )
    ensure_covered(ledger, payment_method.id, window)

    rule_ids = {member.id for member in group}
    used = fold_bonus_points(ledger.transactions, payment_method.id, window, rule_ids)
    remaining = None if cap_amount is None else max(0, cap_amount - used)

    return CapUsage(
        scope_id=rule.cap_scope_id or rule.id,
        rule_ids=sorted(rule_ids),
        used=used,
        cap_amount=cap_amount,
        remaining=remaining,
        window=window,
    )


def compute_period_spend(
    payment_method: PaymentMethod,
    ledger: LedgerSlice,
    window: PeriodWindow,
    exclude_id: str | None = None,
) -> Decimal:
    ensure_covered(ledger, payment_method.id, window)
    return sum(
        (
            txn.amount
            for txn in ledger.transactions
            if txn.payment_method_id == payment_method.id
            and window.contains(txn.date)
            and txn.amount > 0
            and (exclude_id is None or txn.id != exclude_id)
        ),
        Decimal("0"),
    )


class CapUsageService:
    def __init__(self, cache: UsageCache | None = None, default_statement_day: int = 1):
        self.cache = cache
        self.default_statement_day = default_statement_day

    def window_for(
        self,
        payment_method: PaymentMethod,
        convention: PeriodConvention,
        reference_date: date,
        scope: PeriodScope = PeriodScope.CURRENT,
    ) -> PeriodWindow:
        return compute_window(
            reference_date,
            convention,
            anchor_day(payment_method, self.default_statement_day),
            scope,
        )

    def usage_for(
        self,
        payment_method: PaymentMethod,
        rule: RewardRule,
        rules: list[RewardRule],
        ledger: LedgerSlice,
        reference_date: date,
        exclude: Transaction | None = None,
        generation: int | None = None,
    ) -> CapUsage:
        # generation must be read before the ledger slice was fetched
        if rule.cap is None:
            return compute_usage(
                payment_method, rule, rules, ledger, reference_date,
                default_statement_day=self.default_statement_day,
            )

        _, convention = scope_cap(scope_rules(rule, rules))
        window = self.window_for(payment_method, convention, reference_date)
        ensure_covered(ledger, payment_method.id, window)

        usage = None
        key = UsageKey(payment_method.id, rule.cap_scope_id, window.start)
        if self.cache is not None:
            if generation is None:
                generation = self.cache.generation(payment_method.id)
            usage = self.cache.get(key)

        if usage is None:
            usage = compute_usage(
                payment_method, rule, rules, ledger, reference_date,
                default_statement_day=self.default_statement_day,
            )
            if self.cache is not None:
                self.cache.put(key, usage, generation)

        if exclude is not None and exclude.id:
            usage = self._without(usage, exclude.id, payment_method.id, ledger)

        logger.debug(
            "Cap scope {} for {}: used={} cap={} remaining={}",
            usage.scope_id, payment_method.id, usage.used, usage.cap_amount, usage.remaining,
        )
        return usage

    def _without(
        self,
        usage: CapUsage,
        transaction_id: str,
        payment_method_id: str,
        ledger: LedgerSlice,
    ) -> CapUsage:
        recorded = next((txn for txn in ledger.transactions if txn.id == transaction_id), None)
        if recorded is None or not counts_toward(
            recorded, payment_method_id, usage.window, set(usage.rule_ids)
        ):
            return usage

        used = usage.used - (recorded.bonus_points or 0)
        return usage.model_copy(
            update={"used": used, "remaining": max(0, usage.cap_amount - used)}
        )

    def summarize(
        self,
        payment_method: PaymentMethod,
        rules: list[RewardRule],
        ledger: LedgerSlice,
        reference_date: date,
        scope: PeriodScope = PeriodScope.CURRENT,
    ) -> list[CapUsageReport]:
        reports: list[CapUsageReport] = []
        seen: set[str] = set()

        for rule in rules:
            if rule.cap is None or rule.cap_scope_id in seen:
                continue
            seen.add(rule.cap_scope_id)

            group = scope_rules(rule, rules)
            usage = compute_usage(
                payment_method, rule, rules, ledger, reference_date, scope,
                default_statement_day=self.default_statement_day,
            )
            label = rule.name or rule.id
            if len(group) > 1:
                label = f"{len(group)} rules shared cap"

            if usage.cap_amount:
                percentage = min(100.0, usage.used / usage.cap_amount * 100)
            else:
                percentage = 100.0

            reports.append(
                CapUsageReport(
                    scope_id=usage.scope_id,
                    label=label,
                    used=usage.used,
                    cap_amount=usage.cap_amount,
                    remaining=usage.remaining,
                    percentage=round(percentage, 2),
                    period=rule.cap.period,
                    window=usage.window,
                )
            )

        return reports
