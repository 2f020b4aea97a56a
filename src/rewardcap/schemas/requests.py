from datetime import date
from decimal import Decimal

from pydantic import BaseModel

from rewardcap.domain.models import Transaction


class CalculateRequest(BaseModel):
    transaction: Transaction


class SimulateRequest(BaseModel):
    payment_method_id: str
    amount: Decimal
    currency: str = "USD"
    mcc: str | None = None
    merchant_name: str | None = None
    is_online: bool = False
    is_contactless: bool = False
    converted_amount: Decimal | None = None
    as_of: date | None = None
