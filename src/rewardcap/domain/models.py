import re
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from rewardcap.domain.predicates import (
    Predicate,
    TransactionType,
    normalize_legacy_predicate,
)
from rewardcap.exceptions import InvalidPeriodConfig


class PeriodConvention(str, Enum):
    CALENDAR_MONTH = "calendar_month"
    STATEMENT_MONTH = "statement_month"

    @classmethod
    def parse(cls, value: Any) -> "PeriodConvention":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        aliases = {
            "calendar": cls.CALENDAR_MONTH,
            "calendar_month": cls.CALENDAR_MONTH,
            "statement": cls.STATEMENT_MONTH,
            "statement_month": cls.STATEMENT_MONTH,
        }
        if key not in aliases:
            raise InvalidPeriodConfig(f"Unrecognized period convention: {value!r}")
        return aliases[key]


class PeriodScope(str, Enum):
    CURRENT = "current"
    PREVIOUS = "previous"

    @classmethod
    def parse(cls, value: Any) -> "PeriodScope":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidPeriodConfig(f"Unrecognized period scope: {value!r}") from None


class PeriodWindow(BaseModel):
    """Half-open date interval ``[start, end)``."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end

    def covers(self, other: "PeriodWindow") -> bool:
        return self.start <= other.start and other.end <= self.end


class InstrumentType(str, Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PREPAID_CARD = "prepaid_card"
    CASH = "cash"


NON_EARNING_INSTRUMENTS = frozenset({InstrumentType.CASH})


def card_type_id(issuer: str, name: str) -> str:
    if not issuer or not issuer.strip() or not name or not name.strip():
        raise ValueError("Both issuer and name are required to build a card type id.")
    normalized_issuer = re.sub(r"\s+", "-", issuer.strip().lower())
    normalized_name = re.sub(r"\s+", "-", name.strip().lower())
    return f"{normalized_issuer}-{normalized_name}"


class PaymentMethod(BaseModel):
    id: str
    name: str = ""
    issuer: str = ""
    type: InstrumentType = InstrumentType.CREDIT_CARD
    card_type_id: str | None = None
    statement_day: int | None = None
    points_currency: str | None = None

    @property
    def is_earning(self) -> bool:
        return self.type not in NON_EARNING_INSTRUMENTS

    def resolved_card_type_id(self) -> str:
        if self.card_type_id:
            return self.card_type_id
        return card_type_id(self.issuer, self.name)


class Merchant(BaseModel):
    name: str | None = None
    mcc: str | None = None
    is_online: bool = False


class Transaction(BaseModel):
    id: str | None = None
    payment_method_id: str
    amount: Decimal
    currency: str = "USD"
    date: date
    merchant: Merchant = Field(default_factory=Merchant)
    is_contactless: bool = False
    converted_amount: Decimal | None = None

    applied_rule_id: str | None = None
    base_points: int | None = None
    bonus_points: int | None = None

    @property
    def transaction_type(self) -> TransactionType:
        # Online outranks contactless.
        if self.merchant.is_online:
            return TransactionType.ONLINE
        if self.is_contactless:
            return TransactionType.CONTACTLESS
        return TransactionType.IN_STORE

    @property
    def calculation_amount(self) -> Decimal:
        if self.converted_amount is not None:
            return self.converted_amount
        return self.amount


class LedgerSlice(BaseModel):
    """Transactions of one payment method read over ``[start, end)``."""

    payment_method_id: str
    start: date
    end: date
    transactions: list[Transaction] = Field(default_factory=list)
    truncated: bool = False

    @property
    def window(self) -> PeriodWindow:
        return PeriodWindow(start=self.start, end=self.end)


class CalculationMethod(str, Enum):
    STANDARD = "standard"
    TIERED = "tiered"
    FLAT_RATE = "flat_rate"
    DIRECT = "direct"


class BonusTier(BaseModel):
    name: str = ""
    multiplier: Decimal = Field(ge=0)
    priority: int = 0
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    min_spend: Decimal | None = None
    max_spend: Decimal | None = None

    @property
    def uses_period_spend(self) -> bool:
        return self.min_spend is not None or self.max_spend is not None

    def applies(self, amount: Decimal, period_spend: Decimal | None = None) -> bool:
        if self.min_amount is not None and amount < self.min_amount:
            return False
        if self.max_amount is not None and amount > self.max_amount:
            return False
        if period_spend is None:
            return True
        if self.min_spend is not None and period_spend < self.min_spend:
            return False
        if self.max_spend is not None and period_spend > self.max_spend:
            return False
        return True


class EarnSpec(BaseModel):
    """How a rule turns an amount into points; bonus_rate stacks on every method."""

    method: CalculationMethod = CalculationMethod.STANDARD
    rounding_unit: Decimal = Field(default=Decimal("1"), gt=0)
    base_rate: Decimal = Field(default=Decimal("1"), ge=0)
    bonus_rate: Decimal = Field(default=Decimal("0"), ge=0)
    tiers: list[BonusTier] = Field(default_factory=list)

    @model_validator(mode="after")
    def _tiers_for_tiered(self) -> "EarnSpec":
        if self.method is CalculationMethod.TIERED and not self.tiers:
            raise ValueError("tiered earn spec needs at least one tier")
        return self

    @property
    def ordered_tiers(self) -> list[BonusTier]:
        return sorted(self.tiers, key=lambda tier: tier.priority)

    @property
    def uses_period_spend(self) -> bool:
        return self.method is CalculationMethod.TIERED and any(
            tier.uses_period_spend for tier in self.tiers
        )


class CapSpec(BaseModel):
    amount: int = Field(ge=0)
    period: PeriodConvention = PeriodConvention.CALENDAR_MONTH
    group_id: str | None = None

    @field_validator("period", mode="before")
    @classmethod
    def _parse_period(cls, value: Any) -> PeriodConvention:
        return PeriodConvention.parse(value)


class RewardRule(BaseModel):
    id: str
    card_type_id: str
    name: str = ""
    enabled: bool = True
    catch_all: bool = False
    priority: int = 0
    predicates: list[Predicate] = Field(default_factory=list)
    earn: EarnSpec = Field(default_factory=EarnSpec)
    cap: CapSpec | None = None
    monthly_min_spend: Decimal | None = Field(default=None, gt=0)
    min_spend_period: PeriodConvention | None = None
    points_currency: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_predicates(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("predicates"), list):
            data = dict(data)
            data["predicates"] = [normalize_legacy_predicate(item) for item in data["predicates"]]
        return data

    @field_validator("min_spend_period", mode="before")
    @classmethod
    def _parse_min_spend_period(cls, value: Any) -> PeriodConvention | None:
        if value is None:
            return None
        return PeriodConvention.parse(value)

    @property
    def cap_scope_id(self) -> str | None:
        if self.cap is None:
            return None
        return self.cap.group_id or self.id

    @property
    def min_spend_convention(self) -> PeriodConvention:
        if self.min_spend_period is not None:
            return self.min_spend_period
        if self.cap is not None:
            return self.cap.period
        return PeriodConvention.CALENDAR_MONTH


class ReasonCode(str, Enum):
    BONUS_EARNED = "bonus_earned"
    BONUS_CAPPED = "bonus_capped"
    CAP_REACHED = "cap_reached"
    NOT_ELIGIBLE = "not_eligible"
    NON_EARNING = "non_earning"


class PointsResult(BaseModel):
    base_points: int = 0
    bonus_points: int = 0
    total_points: int = 0
    remaining_bonus_quota: int | None = None
    points_currency: str = "points"
    reason_code: ReasonCode
    reason: str
    applied_rule_id: str | None = None
    applied_tier: str | None = None
    cap_scope_id: str | None = None
    min_spend_met: bool = True


class CapUsage(BaseModel):
    scope_id: str
    rule_ids: list[str]
    used: int
    cap_amount: int | None
    remaining: int | None
    window: PeriodWindow

    @property
    def is_capped(self) -> bool:
        return self.cap_amount is not None


class CapUsageReport(BaseModel):
    scope_id: str
    label: str
    used: int
    cap_amount: int
    remaining: int
    percentage: float
    period: PeriodConvention
    window: PeriodWindow
