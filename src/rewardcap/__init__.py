from rewardcap.domain.models import (
    BonusTier,
    CalculationMethod,
    CapSpec,
    CapUsage,
    CapUsageReport,
    EarnSpec,
    LedgerSlice,
    Merchant,
    PaymentMethod,
    PeriodConvention,
    PeriodScope,
    PeriodWindow,
    PointsResult,
    ReasonCode,
    RewardRule,
    Transaction,
    card_type_id,
)
from rewardcap.engine.cache import UsageCache
from rewardcap.engine.calculator import RewardCalculator
from rewardcap.engine.caps import CapUsageService, compute_usage
from rewardcap.engine.matcher import match_rule
from rewardcap.engine.periods import compute_window
from rewardcap.exceptions import (
    IncompleteLedgerWindow,
    InvalidPeriodConfig,
    PaymentMethodNotFound,
    RewardEngineError,
    RuleConfigError,
)
from rewardcap.services.rewards import RewardService

__all__ = [
    "BonusTier",
    "CalculationMethod",
    "CapSpec",
    "CapUsage",
    "CapUsageReport",
    "CapUsageService",
    "EarnSpec",
    "IncompleteLedgerWindow",
    "InvalidPeriodConfig",
    "LedgerSlice",
    "Merchant",
    "PaymentMethod",
    "PaymentMethodNotFound",
    "PeriodConvention",
    "PeriodScope",
    "PeriodWindow",
    "PointsResult",
    "ReasonCode",
    "RewardCalculator",
    "RewardEngineError",
    "RewardRule",
    "RewardService",
    "RuleConfigError",
    "Transaction",
    "UsageCache",
    "card_type_id",
    "compute_usage",
    "compute_window",
    "match_rule",
]
