"""Obligation state machine and balance summaries for installment schedules"""

from dataclasses import replace
from datetime import date
from typing import List
from land_ledger.domain.models import BalanceSummary, Installment, InstallmentStatus


def derive_status(
    amount_due_cents: int,
    amount_paid_cents: int,
    due_date: date,
    today: date,
) -> InstallmentStatus:
    """
    Status of an installment from its amounts and due date.

    Paid wins over everything; Late overlays Unpaid/Partial once the due date
    has passed and is recomputed on every read.
    """
    if amount_paid_cents >= amount_due_cents:
        return InstallmentStatus.PAID
    if due_date < today:
        return InstallmentStatus.LATE
    if amount_paid_cents > 0:
        return InstallmentStatus.PARTIAL
    return InstallmentStatus.UNPAID


def with_current_status(installment: Installment, today: date) -> Installment:
    """Copy of the installment with its status re-derived for today"""
    status = derive_status(
        installment.amount_due_cents,
        installment.amount_paid_cents,
        installment.due_date,
        today,
    )
    if status == installment.status:
        return installment
    return replace(installment, status=status)


def summarize(installments: List[Installment], today: date) -> BalanceSummary:
    """
    Aggregate payment progress for one sale's schedule.

    Arrears are the outstanding amounts of installments already past due,
    i.e. the balance stacked on top of the next installment.
    """
    current = [with_current_status(inst, today) for inst in sorted(installments, key=lambda i: i.sequence)]

    financed = sum(inst.amount_due_cents for inst in current)
    paid = sum(min(inst.amount_paid_cents, inst.amount_due_cents) for inst in current)
    late = [inst for inst in current if inst.status == InstallmentStatus.LATE]
    outstanding = [inst for inst in current if inst.status != InstallmentStatus.PAID]

    progress = round(paid / financed * 100, 2) if financed > 0 else 0.0

    return BalanceSummary(
        financed_cents=financed,
        paid_cents=paid,
        remaining_cents=financed - paid,
        progress_percent=progress,
        paid_count=sum(1 for inst in current if inst.status == InstallmentStatus.PAID),
        late_count=len(late),
        arrears_cents=sum(inst.outstanding_cents for inst in late),
        next_due=outstanding[0] if outstanding else None,
    )
