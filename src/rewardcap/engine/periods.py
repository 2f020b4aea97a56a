import calendar
from datetime import date

from rewardcap.domain.models import PeriodConvention, PeriodScope, PeriodWindow
from rewardcap.exceptions import InvalidPeriodConfig


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _anchored(year: int, month: int, anchor_day: int) -> date:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor_day, last_day))


def compute_window(
    reference_date: date,
    convention: PeriodConvention | str,
    anchor_day: int | None = None,
    scope: PeriodScope | str = PeriodScope.CURRENT,
) -> PeriodWindow:
    convention = PeriodConvention.parse(convention)
    scope = PeriodScope.parse(scope)
    shift = -1 if scope is PeriodScope.PREVIOUS else 0

    if convention is PeriodConvention.CALENDAR_MONTH:
        year, month = _shift_month(reference_date.year, reference_date.month, shift)
        next_year, next_month = _shift_month(year, month, 1)
        return PeriodWindow(start=date(year, month, 1), end=date(next_year, next_month, 1))

    if anchor_day is None or not 1 <= anchor_day <= 31:
        raise InvalidPeriodConfig(f"Statement anchor day must be within 1-31, got {anchor_day!r}")

    year, month = reference_date.year, reference_date.month
    if reference_date < _anchored(year, month, anchor_day):
        year, month = _shift_month(year, month, -1)
    year, month = _shift_month(year, month, shift)
    next_year, next_month = _shift_month(year, month, 1)

    return PeriodWindow(
        start=_anchored(year, month, anchor_day),
        end=_anchored(next_year, next_month, anchor_day),
    )
