from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

if TYPE_CHECKING:
    from rewardcap.domain.models import Transaction


class TransactionType(str, Enum):
    IN_STORE = "in_store"
    CONTACTLESS = "contactless"
    ONLINE = "online"


ALL_TRANSACTION_TYPES = frozenset(TransactionType)


def _normalized_set(value: Any, transform) -> Any:
    if isinstance(value, (list, tuple, set, frozenset)):
        return frozenset(transform(str(item).strip()) for item in value)
    return value


class _Predicate(BaseModel):
    model_config = ConfigDict(frozen=True)

    @property
    def constrains(self) -> bool:
        return True

    # number of merchant categories admitted, None when unbounded
    @property
    def breadth(self) -> int | None:
        return None


class TransactionTypePredicate(_Predicate):
    kind: Literal["transaction_type"] = "transaction_type"
    types: frozenset[TransactionType] = Field(min_length=1)

    @property
    def constrains(self) -> bool:
        return self.types != ALL_TRANSACTION_TYPES

    def matches(self, txn: "Transaction") -> bool:
        return txn.transaction_type in self.types


class MerchantCategoryPredicate(_Predicate):
    kind: Literal["mcc"] = "mcc"
    codes: frozenset[str] = Field(min_length=1)
    exclude: bool = False

    @field_validator("codes", mode="before")
    @classmethod
    def _codes_as_strings(cls, value: Any) -> Any:
        return _normalized_set(value, str)

    @property
    def breadth(self) -> int | None:
        return None if self.exclude else len(self.codes)

    def matches(self, txn: "Transaction") -> bool:
        mcc = txn.merchant.mcc
        if not mcc:
            return self.exclude
        return (mcc in self.codes) != self.exclude


class CurrencyPredicate(_Predicate):
    kind: Literal["currency"] = "currency"
    currencies: frozenset[str] = Field(min_length=1)
    exclude: bool = False

    @field_validator("currencies", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        return _normalized_set(value, str.upper)

    def matches(self, txn: "Transaction") -> bool:
        return (txn.currency.upper() in self.currencies) != self.exclude


class MinimumAmountPredicate(_Predicate):
    kind: Literal["min_amount"] = "min_amount"
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    max_amount: Decimal | None = None

    @model_validator(mode="after")
    def _ordered_bounds(self) -> "MinimumAmountPredicate":
        if self.max_amount is not None and self.max_amount < self.amount:
            raise ValueError(f"max_amount {self.max_amount} is below amount {self.amount}")
        return self

    def matches(self, txn: "Transaction") -> bool:
        if txn.amount < self.amount:
            return False
        return self.max_amount is None or txn.amount <= self.max_amount


class MerchantNamePredicate(_Predicate):
    kind: Literal["merchant"] = "merchant"
    patterns: frozenset[str] = Field(min_length=1)
    exclude: bool = False

    @field_validator("patterns", mode="before")
    @classmethod
    def _lower(cls, value: Any) -> Any:
        return _normalized_set(value, str.lower)

    def matches(self, txn: "Transaction") -> bool:
        name = (txn.merchant.name or "").lower()
        if not name:
            return self.exclude
        return any(pattern in name for pattern in self.patterns) != self.exclude


class _CompoundPredicate(_Predicate):
    predicates: list["Predicate"] = Field(min_length=1)

    @field_validator("predicates", mode="before")
    @classmethod
    def _normalize_nested(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [normalize_legacy_predicate(item) for item in value]
        return value

    @property
    def constrains(self) -> bool:
        return any(predicate.constrains for predicate in self.predicates)


class AnyOfPredicate(_CompoundPredicate):
    kind: Literal["any"] = "any"

    @property
    def breadth(self) -> int | None:
        breadths = [predicate.breadth for predicate in self.predicates]
        if None in breadths:
            return None
        return sum(breadths)

    def matches(self, txn: "Transaction") -> bool:
        return any(predicate.matches(txn) for predicate in self.predicates)


class AllOfPredicate(_CompoundPredicate):
    kind: Literal["all"] = "all"

    @property
    def breadth(self) -> int | None:
        breadths = [predicate.breadth for predicate in self.predicates if predicate.breadth is not None]
        return min(breadths) if breadths else None

    def matches(self, txn: "Transaction") -> bool:
        return all(predicate.matches(txn) for predicate in self.predicates)


Predicate = Annotated[
    Union[
        TransactionTypePredicate,
        MerchantCategoryPredicate,
        CurrencyPredicate,
        MinimumAmountPredicate,
        MerchantNamePredicate,
        AnyOfPredicate,
        AllOfPredicate,
    ],
    Field(discriminator="kind"),
]

AnyOfPredicate.model_rebuild()
AllOfPredicate.model_rebuild()


def normalize_legacy_predicate(raw: Any) -> Any:
    # old shape: {"kind": "online", "value": bool}
    if not isinstance(raw, dict) or raw.get("kind") != "online":
        return raw

    value = raw.get("value", True)
    if str(value).lower() in ("true", "1"):
        types = [TransactionType.ONLINE.value]
    else:
        types = [TransactionType.IN_STORE.value, TransactionType.CONTACTLESS.value]
    return {"kind": "transaction_type", "types": types}
