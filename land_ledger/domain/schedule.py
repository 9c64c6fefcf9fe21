"""Schedule generator - next occurrence of a recurring cadence"""

from datetime import date, timedelta
from typing import Optional
from land_ledger.domain.models import Cadence
from land_ledger.domain.exceptions import InvalidCadenceConfig
from land_ledger.utils.date_utils import add_months, add_years

ANCHOR_RANGES = {
    Cadence.WEEKLY: (1, 7),
    Cadence.MONTHLY: (1, 31),
}


def validate_anchor(cadence: Cadence, anchor: Optional[int]) -> None:
    """
    Check the anchor is within range for its cadence.

    Weekly anchors are ISO weekdays (1=Monday ... 7=Sunday), monthly anchors are
    days of month. Daily and yearly templates ignore the anchor.

    Raises:
        InvalidCadenceConfig: On a missing or out-of-range anchor
    """
    if cadence not in ANCHOR_RANGES:
        return

    low, high = ANCHOR_RANGES[cadence]
    if anchor is None or not low <= anchor <= high:
        raise InvalidCadenceConfig(
            f"{cadence.value} anchor must be between {low} and {high}, got {anchor}"
        )


def next_occurrence(cadence: Cadence, anchor: Optional[int], reference_date: date) -> date:
    """
    Compute the occurrence following reference_date.

    Always returns a date strictly after reference_date, one cadence step
    per call:
    - Daily:   next day
    - Weekly:  next date falling on the anchor weekday; same weekday -> +7 days
    - Monthly: anchor day of the following month, clamped to month end
               (anchor 31 after Jan 31 -> Feb 28/29 -> Mar 31)
    - Yearly:  same month/day next year, Feb 29 -> Feb 28 in non-leap years
    """
    if cadence == Cadence.DAILY:
        return reference_date + timedelta(days=1)

    if cadence == Cadence.WEEKLY:
        delta = anchor - reference_date.isoweekday()
        if delta <= 0:
            delta += 7
        return reference_date + timedelta(days=delta)

    if cadence == Cadence.MONTHLY:
        return add_months(reference_date, 1, day=anchor)

    if cadence == Cadence.YEARLY:
        return add_years(reference_date, 1)

    raise InvalidCadenceConfig(f"Unsupported cadence: {cadence}")


def first_occurrence(cadence: Cadence, anchor: Optional[int], start: date) -> date:
    """First occurrence on or after start (used when a template is created without one)"""
    if cadence == Cadence.WEEKLY:
        if start.isoweekday() == anchor:
            return start
        return next_occurrence(cadence, anchor, start)

    if cadence == Cadence.MONTHLY:
        this_month = add_months(start, 0, day=anchor)
        if this_month >= start:
            return this_month
        return add_months(start, 1, day=anchor)

    return start
