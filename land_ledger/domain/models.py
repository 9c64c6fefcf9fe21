"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import List, Optional


class Cadence(str, Enum):
    """Recurrence family of a template"""

    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"


class InstallmentStatus(str, Enum):
    """Obligation state; LATE is derived from the due date"""

    UNPAID = "Unpaid"
    PARTIAL = "Partial"
    PAID = "Paid"
    LATE = "Late"


@dataclass
class RecurringTemplate:
    """Standing instruction to produce a dated financial record on a cadence"""

    id: uuid.UUID
    name: str
    cadence: Cadence
    anchor: Optional[int]  # weekday 1-7 (Weekly) or day of month 1-31 (Monthly)
    anchor_time: time
    amount_cents: int
    is_revenue: bool
    next_occurrence: date
    active: bool = True
    last_generated: Optional[date] = None
    description: Optional[str] = None


@dataclass
class GeneratedRecord:
    """Financial entry materialized from one template occurrence"""

    template_id: Optional[uuid.UUID]
    amount_cents: int
    effective_date: date
    is_revenue: bool
    description: Optional[str] = None


@dataclass
class ScheduleTarget:
    """How a financed amount is split: by monthly amount, by months, or both"""

    monthly_amount_cents: Optional[int] = None
    months: Optional[int] = None


@dataclass
class FinancingTerms:
    """Resolved price breakdown of a sale"""

    base_price_cents: int
    advance_cents: int
    deposit_cents: int
    advance_after_deposit_cents: int  # due at confirmation
    financed_cents: int  # scheduled across installments
    company_fee_cents: int


@dataclass
class PlannedInstallment:
    """Single obligation in a freshly planned schedule"""

    sequence: int
    due_date: date
    amount_due_cents: int


@dataclass
class Installment:
    """Scheduled obligation within a sale, with payment progress"""

    id: uuid.UUID
    sale_id: uuid.UUID
    sequence: int
    due_date: date
    amount_due_cents: int
    amount_paid_cents: int = 0
    status: InstallmentStatus = InstallmentStatus.UNPAID
    paid_date: Optional[date] = None

    @property
    def outstanding_cents(self) -> int:
        return max(self.amount_due_cents - self.amount_paid_cents, 0)


@dataclass
class InstallmentChange:
    """Effect of one payment application on one installment"""

    installment_id: uuid.UUID
    sequence: int
    previous_status: InstallmentStatus
    new_status: InstallmentStatus
    applied_cents: int
    amount_paid_cents: int


@dataclass
class PaymentOutcome:
    """Result of applying a payment to a sale"""

    sale_id: uuid.UUID
    amount_cents: int
    applied_cents: int
    credit_cents: int  # overpayment residual returned to the caller
    changes: List[InstallmentChange] = field(default_factory=list)
    installments: List[Installment] = field(default_factory=list)

    @property
    def has_credit(self) -> bool:
        return self.credit_cents > 0


@dataclass
class BalanceSummary:
    """Payment progress of a sale's schedule"""

    financed_cents: int
    paid_cents: int
    remaining_cents: int
    progress_percent: float
    paid_count: int
    late_count: int
    arrears_cents: int
    next_due: Optional[Installment] = None


@dataclass
class GenerationResult:
    """One record produced by a driver run"""

    template_id: uuid.UUID
    record_id: uuid.UUID
    effective_date: date


@dataclass
class DriverRun:
    """Outcome of a Template Driver invocation"""

    now: datetime
    generated: List[GenerationResult] = field(default_factory=list)
    conflicts: List[uuid.UUID] = field(default_factory=list)
    failures: List[uuid.UUID] = field(default_factory=list)
