"""Calendar arithmetic for referral discount windows.

Month arithmetic follows the host platform's overflow rule: when the
source day does not exist in the target month, the surplus days roll
into the following month (2024-02-29 + 12 months = 2025-03-01) instead of
being clamped to the month's last day.
"""

import calendar
from datetime import date, timedelta

from .models import DISCOUNT_PERIOD_MONTHS, MARGIN_DAYS

DISPLAY_FORMAT = "%d-%m-%Y"


def add_months(start: date, months: int) -> date:
    """Add calendar months to a date, rolling overflow days forward."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    if start.day <= last_day:
        return date(year, month, start.day)
    return date(year, month, last_day) + timedelta(days=start.day - last_day)


def compute_discount_window(
    start: date,
    months: int = DISCOUNT_PERIOD_MONTHS,
    margin_days: int = MARGIN_DAYS,
) -> tuple[date, date]:
    """Return (start, end) where end = start + months + margin_days."""
    return start, add_months(start, months) + timedelta(days=margin_days)


def format_display_date(value: date) -> str:
    """Render as DD-MM-YYYY."""
    return value.strftime(DISPLAY_FORMAT)


def parse_stored_date(value: str) -> date:
    """Parse a stored YYYY-MM-DD value.

    Raises:
        ValueError: If the value is not an ISO calendar date.
    """
    return date.fromisoformat(value.strip())
