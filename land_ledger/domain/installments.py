"""Installment planning for financed land sales"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List
from land_ledger.domain.models import FinancingTerms, PlannedInstallment, ScheduleTarget
from land_ledger.domain.exceptions import InvalidPlanTerms, RoundingReconciliationFailure
from land_ledger.utils.date_utils import add_months


def _to_minor_units(value: Decimal) -> int:
    """Round a fractional minor-unit amount half up"""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _percent_of(amount_cents: int, percent: Decimal | float | int) -> int:
    """Percentage of an amount, rounded half up to the minor unit"""
    return _to_minor_units(Decimal(amount_cents) * Decimal(str(percent)) / Decimal(100))


def price_for_surface(price_per_m2_cents: int, surface_m2: Decimal | float | int) -> int:
    """Base price of a land piece priced per square metre"""
    return _to_minor_units(Decimal(price_per_m2_cents) * Decimal(str(surface_m2)))


def resolve_financing(
    total_price_cents: int,
    advance_value: Decimal | float | int,
    advance_is_percent: bool = False,
    deposit_cents: int = 0,
    company_fee_percent: Decimal | float | int = 0,
) -> FinancingTerms:
    """
    Break a sale price down into advance, deposit and the financed remainder.

    Payment flow:
    - Deposit is paid when the sale is registered
    - Advance minus deposit is paid at confirmation
    - Only what remains after the larger of advance and deposit is scheduled

    Args:
        total_price_cents: Base price of the sold land
        advance_value: Fixed advance in cents (fractions round half up), or a
            percentage of the base price
        advance_is_percent: Interpret advance_value as a percentage
        deposit_cents: Deposit already collected
        company_fee_percent: Flat commission on the base price (not financed)

    Raises:
        InvalidPlanTerms: When nothing would be left to finance

    Example:
        100000 total, 20% advance, 5000 deposit
        advance 20000, due at confirmation 15000, financed 80000
    """
    if total_price_cents <= 0:
        raise InvalidPlanTerms("Total price must be positive")
    if advance_value < 0 or deposit_cents < 0:
        raise InvalidPlanTerms("Advance and deposit cannot be negative")

    if advance_is_percent:
        advance_cents = _percent_of(total_price_cents, advance_value)
    else:
        advance_cents = _to_minor_units(Decimal(str(advance_value)))

    financed_cents = total_price_cents - max(advance_cents, deposit_cents)
    if financed_cents <= 0:
        raise InvalidPlanTerms(
            f"Advance {advance_cents} and deposit {deposit_cents} leave nothing to finance"
        )

    return FinancingTerms(
        base_price_cents=total_price_cents,
        advance_cents=advance_cents,
        deposit_cents=deposit_cents,
        advance_after_deposit_cents=max(0, advance_cents - deposit_cents),
        financed_cents=financed_cents,
        company_fee_cents=_percent_of(total_price_cents, company_fee_percent),
    )


def _split_amounts(financed_cents: int, target: ScheduleTarget) -> List[int]:
    monthly = target.monthly_amount_cents
    months = target.months

    if monthly is None and months is None:
        raise InvalidPlanTerms("Schedule target needs a monthly amount or a number of months")
    if monthly is not None and monthly <= 0:
        raise InvalidPlanTerms("Monthly amount must be positive")
    if months is not None and months <= 0:
        raise InvalidPlanTerms("Number of months must be positive")

    if months is None:
        count = -(-financed_cents // monthly)
        return [monthly] * (count - 1) + [financed_cents - monthly * (count - 1)]

    if months > financed_cents:
        raise InvalidPlanTerms(f"Cannot split {financed_cents} into {months} installments")

    if monthly is not None and monthly * months <= financed_cents:
        # Fixed monthly amount over fixed months: last installment takes what is left
        return [monthly] * (months - 1) + [financed_cents - monthly * (months - 1)]

    # Nearest minor unit, half up
    monthly = (2 * financed_cents + months) // (2 * months)
    if monthly * (months - 1) >= financed_cents:
        monthly = financed_cents // months
    return [monthly] * (months - 1) + [financed_cents - monthly * (months - 1)]


def plan_installments(
    financed_cents: int,
    target: ScheduleTarget,
    start_date: date,
) -> List[PlannedInstallment]:
    """
    Split a financed amount into dated monthly installments.

    Requirements:
    - Installment i (1..N) falls due start_date + i months, clamped to month end
    - Only the last installment absorbs rounding; earlier ones are never adjusted
    - The amounts sum to financed_cents exactly

    Args:
        financed_cents: Amount to schedule (total minus advances)
        target: Monthly amount (count derived), months (amount derived), or both
        start_date: Schedule start; the first installment is due one month later

    Returns:
        Ordered list of PlannedInstallment

    Raises:
        InvalidPlanTerms: On non-positive amounts or an empty target
        RoundingReconciliationFailure: If the split does not reconcile

    Example:
        100000 over 3 months -> [33333, 33333, 33334]
    """
    if financed_cents <= 0:
        raise InvalidPlanTerms("Financed amount must be positive")

    amounts = _split_amounts(financed_cents, target)

    total = sum(amounts)
    if total != financed_cents or any(amount <= 0 for amount in amounts):
        raise RoundingReconciliationFailure(financed_cents, total)

    return [
        PlannedInstallment(
            sequence=i,
            due_date=add_months(start_date, i),
            amount_due_cents=amount,
        )
        for i, amount in enumerate(amounts, start=1)
    ]
