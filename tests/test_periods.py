from datetime import date

import pytest

from rewardcap.domain.models import PeriodConvention, PeriodScope
from rewardcap.engine.periods import compute_window
from rewardcap.exceptions import InvalidPeriodConfig


def test_calendar_month_window() -> None:
    window = compute_window(date(2025, 3, 20), PeriodConvention.CALENDAR_MONTH)

    assert window.start == date(2025, 3, 1)
    assert window.end == date(2025, 4, 1)


def test_calendar_month_previous_scope_crosses_year() -> None:
    window = compute_window(date(2025, 1, 10), "calendar_month", scope=PeriodScope.PREVIOUS)

    assert window.start == date(2024, 12, 1)
    assert window.end == date(2025, 1, 1)


def test_statement_month_before_anchor_starts_previous_month() -> None:
    window = compute_window(date(2025, 3, 10), PeriodConvention.STATEMENT_MONTH, anchor_day=15)

    assert window.start == date(2025, 2, 15)
    assert window.end == date(2025, 3, 15)


def test_statement_month_after_anchor_starts_current_month() -> None:
    window = compute_window(date(2025, 3, 20), PeriodConvention.STATEMENT_MONTH, anchor_day=15)

    assert window.start == date(2025, 3, 15)
    assert window.end == date(2025, 4, 15)


def test_statement_month_on_anchor_day_starts_new_period() -> None:
    window = compute_window(date(2025, 3, 15), "statement", anchor_day=15)

    assert window.start == date(2025, 3, 15)


def test_statement_month_previous_scope() -> None:
    window = compute_window(date(2025, 3, 20), "statement_month", anchor_day=15, scope="previous")

    assert window.start == date(2025, 2, 15)
    assert window.end == date(2025, 3, 15)


def test_statement_anchor_is_clamped_to_short_months() -> None:
    february = compute_window(date(2025, 2, 28), "statement_month", anchor_day=31)
    march = compute_window(date(2025, 3, 30), "statement_month", anchor_day=31)

    assert february.start == date(2025, 2, 28)
    assert february.end == date(2025, 3, 31)
    assert march == february


def test_end_is_exclusive() -> None:
    window = compute_window(date(2025, 3, 20), "statement_month", anchor_day=15)

    assert window.contains(date(2025, 3, 15))
    assert window.contains(date(2025, 4, 14))
    assert not window.contains(window.end)
    assert compute_window(window.end, "statement_month", anchor_day=15).start == window.end


@pytest.mark.parametrize("anchor_day", [0, 32, None])
def test_statement_month_rejects_bad_anchor(anchor_day) -> None:
    with pytest.raises(InvalidPeriodConfig):
        compute_window(date(2025, 3, 20), "statement_month", anchor_day=anchor_day)


def test_unknown_convention_is_rejected() -> None:
    with pytest.raises(InvalidPeriodConfig):
        compute_window(date(2025, 3, 20), "fortnightly")


def test_unknown_scope_is_rejected() -> None:
    with pytest.raises(InvalidPeriodConfig):
        compute_window(date(2025, 3, 20), "calendar_month", scope="last_year")


def test_scope_accepts_plain_strings() -> None:
    window = compute_window(date(2025, 3, 20), "calendar_month", scope="Previous")

    assert window.start == date(2025, 2, 1)
