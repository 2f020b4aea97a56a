"""
Exceptions raised by the reward engine
"""


class RewardEngineError(Exception):
    """Base exception for all reward engine errors"""
    pass


class InvalidPeriodConfig(RewardEngineError):
    """Raised for an unknown period convention or an anchor day outside 1-31"""
    pass


class IncompleteLedgerWindow(RewardEngineError):
    """Raised when the supplied ledger does not cover the whole active period"""
    pass


class RuleConfigError(RewardEngineError):
    """Raised when a rule store payload cannot be turned into reward rules"""
    pass


class PaymentMethodNotFound(RewardEngineError, LookupError):
    """Raised when a payment method id is unknown to the directory"""
    pass
