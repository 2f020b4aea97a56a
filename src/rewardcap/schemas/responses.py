from datetime import date

from pydantic import BaseModel

from rewardcap.domain.models import CapUsageReport


class CapUsageResponse(BaseModel):
    payment_method_id: str
    reference_date: date
    caps: list[CapUsageReport]


class LedgerChangedResponse(BaseModel):
    payment_method_id: str
    invalidated_entries: int
