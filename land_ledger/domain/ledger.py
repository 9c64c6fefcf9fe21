"""Payment ledger - applies a payment to one sale's installments"""

import uuid
from dataclasses import replace
from datetime import date
from typing import List, Optional
from land_ledger.domain.models import (
    Installment,
    InstallmentChange,
    InstallmentStatus,
    PaymentOutcome,
)
from land_ledger.domain.exceptions import (
    CrossSaleViolation,
    InstallmentNotFound,
    InvalidPaymentAmount,
)
from land_ledger.domain.obligations import derive_status


def _application_order(ordered: List[Installment], start_index: int) -> List[Installment]:
    """Start installment first, then later ones, then earlier outstanding ones"""
    rotated = ordered[start_index:] + ordered[:start_index]
    return [inst for inst in rotated if inst.outstanding_cents > 0]


def apply_payment(
    sale_id: uuid.UUID,
    installments: List[Installment],
    amount_cents: int,
    target_installment_id: Optional[uuid.UUID] = None,
    today: Optional[date] = None,
) -> PaymentOutcome:
    """
    Apply a payment to a sale's schedule with carry-forward.

    Algorithm:
    1. Order installments by sequence; start at the target, or at the
       earliest installment that still owes money
    2. Pay the current installment up to what it still owes
    3. Carry any excess to the next outstanding installment of the same sale
    4. Whatever is left once every installment is settled is returned as
       credit_cents, never applied elsewhere

    Inputs are never mutated: the outcome carries updated copies, so callers
    persist all of them or none.

    Args:
        sale_id: Sale receiving the payment
        installments: Every installment of that sale
        amount_cents: Payment amount
        target_installment_id: Installment the payer designated, if any
        today: Reference date for statuses and paid dates (default: today)

    Raises:
        InvalidPaymentAmount: amount_cents <= 0
        CrossSaleViolation: An installment (or the target) belongs to another sale
        InstallmentNotFound: Target is not part of the schedule

    Example:
        [100, 100, 100] paid 150 -> Paid(100), Partial(50), Unpaid(0)
    """
    if amount_cents <= 0:
        raise InvalidPaymentAmount(f"Payment amount must be positive, got {amount_cents}")

    today = today or date.today()

    for inst in installments:
        if inst.sale_id != sale_id:
            raise CrossSaleViolation(sale_id, inst.id)

    ordered = sorted(installments, key=lambda i: i.sequence)

    if target_installment_id is not None:
        positions = [i for i, inst in enumerate(ordered) if inst.id == target_installment_id]
        if not positions:
            raise InstallmentNotFound(f"Installment {target_installment_id} not in sale {sale_id}")
        start_index = positions[0]
    else:
        start_index = 0

    remaining = amount_cents
    updated = {}
    changes = []

    for inst in _application_order(ordered, start_index):
        if remaining == 0:
            break

        applied = min(remaining, inst.outstanding_cents)
        remaining -= applied

        paid = inst.amount_paid_cents + applied
        status = derive_status(inst.amount_due_cents, paid, inst.due_date, today)
        paid_date = today if status == InstallmentStatus.PAID else inst.paid_date

        updated[inst.id] = replace(inst, amount_paid_cents=paid, status=status, paid_date=paid_date)
        changes.append(
            InstallmentChange(
                installment_id=inst.id,
                sequence=inst.sequence,
                previous_status=inst.status,
                new_status=status,
                applied_cents=applied,
                amount_paid_cents=paid,
            )
        )

    return PaymentOutcome(
        sale_id=sale_id,
        amount_cents=amount_cents,
        applied_cents=amount_cents - remaining,
        credit_cents=remaining,
        changes=changes,
        installments=[updated.get(inst.id, inst) for inst in ordered],
    )
