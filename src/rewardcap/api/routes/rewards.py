from datetime import date
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException

from rewardcap.config import settings
from rewardcap.domain.models import PeriodScope, PointsResult
from rewardcap.exceptions import PaymentMethodNotFound, RewardEngineError
from rewardcap.repository.ledger import JsonLedger
from rewardcap.repository.rule_store import JsonRuleStore
from rewardcap.schemas.requests import CalculateRequest, SimulateRequest
from rewardcap.schemas.responses import CapUsageResponse, LedgerChangedResponse
from rewardcap.services.rewards import RewardService

router = APIRouter(prefix="/rewards", tags=["rewards"])


@lru_cache
def get_reward_service() -> RewardService:
    ledger = JsonLedger(settings.ledger_file)
    return RewardService(
        rule_store=JsonRuleStore(settings.rule_file),
        ledger=ledger,
        payment_methods=ledger,
        default_statement_day=settings.default_statement_day,
        default_points_currency=settings.default_points_currency,
    )


def _http_error(exc: RewardEngineError) -> HTTPException:
    if isinstance(exc, PaymentMethodNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=422, detail=str(exc))


@router.post("/calculate", response_model=PointsResult)
async def calculate(
    request: CalculateRequest,
    service: RewardService = Depends(get_reward_service),
) -> PointsResult:
    try:
        return await service.calculate(request.transaction)
    except RewardEngineError as exc:
        raise _http_error(exc) from exc


@router.post("/simulate", response_model=PointsResult)
async def simulate(
    request: SimulateRequest,
    service: RewardService = Depends(get_reward_service),
) -> PointsResult:
    try:
        return await service.simulate(**request.model_dump())
    except RewardEngineError as exc:
        raise _http_error(exc) from exc


@router.get("/caps/{payment_method_id}", response_model=CapUsageResponse)
async def cap_usage(
    payment_method_id: str,
    reference_date: date | None = None,
    scope: PeriodScope = PeriodScope.CURRENT,
    service: RewardService = Depends(get_reward_service),
) -> CapUsageResponse:
    reference_date = reference_date or date.today()
    try:
        caps = await service.cap_usage(payment_method_id, reference_date, scope)
    except RewardEngineError as exc:
        raise _http_error(exc) from exc
    return CapUsageResponse(
        payment_method_id=payment_method_id,
        reference_date=reference_date,
        caps=caps,
    )


@router.post("/ledger/{payment_method_id}/changed", response_model=LedgerChangedResponse)
def ledger_changed(
    payment_method_id: str,
    service: RewardService = Depends(get_reward_service),
) -> LedgerChangedResponse:
    return LedgerChangedResponse(
        payment_method_id=payment_method_id,
        invalidated_entries=service.transaction_changed(payment_method_id),
    )
