"""Sale scheduling and payment application with per-sale serialization"""

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Tuple
from sqlalchemy.orm import Session
from land_ledger.domain.exceptions import CrossSaleViolation, InstallmentNotFound, SaleNotFound
from land_ledger.domain.installments import plan_installments, resolve_financing
from land_ledger.domain.ledger import apply_payment
from land_ledger.domain.models import (
    BalanceSummary,
    FinancingTerms,
    Installment,
    InstallmentStatus,
    PaymentOutcome,
    ScheduleTarget,
)
from land_ledger.domain.obligations import summarize, with_current_status
from land_ledger.infrastructure.database import models as orm
from land_ledger.infrastructure.database.repositories import PaymentRepository, SaleRepository
from land_ledger.infrastructure.observability.metrics import installments_marked_late_counter, record_payment

logger = logging.getLogger(__name__)


class SaleLocks:
    """Process-local mutexes keyed by sale id, dropped once nobody holds or waits on them"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[uuid.UUID, Tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, sale_id: uuid.UUID) -> Iterator[None]:
        with self._guard:
            lock, users = self._locks.get(sale_id) or (threading.Lock(), 0)
            self._locks[sale_id] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._guard:
                lock, users = self._locks[sale_id]
                if users == 1:
                    del self._locks[sale_id]
                else:
                    self._locks[sale_id] = (lock, users - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


sale_locks = SaleLocks()


class SaleService:
    """Creates sales with their installment schedule and reports their balance"""

    def __init__(self, db: Session):
        self.db = db
        self.sales = SaleRepository(db)

    def create_sale(
        self,
        client_ref: str,
        total_price_cents: int,
        advance_value: Decimal | int,
        advance_is_percent: bool,
        target: ScheduleTarget,
        start_date: date,
        deposit_cents: int = 0,
        company_fee_percent: Decimal = Decimal("0"),
    ) -> Tuple[orm.Sale, FinancingTerms]:
        """Resolve financing terms, plan the schedule and persist both"""
        terms = resolve_financing(
            total_price_cents,
            advance_value,
            advance_is_percent=advance_is_percent,
            deposit_cents=deposit_cents,
            company_fee_percent=company_fee_percent,
        )
        planned = plan_installments(terms.financed_cents, target, start_date)

        try:
            db_sale = self.sales.create_sale(
                client_ref=client_ref,
                terms=terms,
                target=target,
                start_date=start_date,
                company_fee_percent=company_fee_percent,
                planned=planned,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Sale scheduled",
            extra={
                "sale_id": str(db_sale.id),
                "financed_cents": terms.financed_cents,
                "installment_count": len(planned),
            },
        )
        return db_sale, terms

    def get_schedule(
        self, sale_id: uuid.UUID, today: Optional[date] = None
    ) -> Tuple[orm.Sale, List[Installment], BalanceSummary]:
        """Sale with installments whose Late overlay is recomputed for today"""
        today = today or date.today()
        db_sale = self.sales.get_sale(sale_id)
        if db_sale is None:
            raise SaleNotFound(f"Sale {sale_id} not found")

        installments = [with_current_status(inst, today) for inst in self.sales.list_installments(sale_id)]
        return db_sale, installments, summarize(installments, today)

    def refresh_late_statuses(self, today: Optional[date] = None) -> int:
        """
        Persist the Late overlay for every overdue, unsettled installment.

        Returns:
            Number of installments whose stored status changed
        """
        today = today or date.today()
        changed = []
        for stored in self.sales.list_unsettled_due_before(today):
            current = with_current_status(stored, today)
            if current.status != stored.status:
                changed.append(current)

        try:
            self.sales.save_installments(changed)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        installments_marked_late_counter.inc(len(changed))
        logger.info("Late sweep completed", extra={"today": today.isoformat(), "marked_late": len(changed)})
        return len(changed)


class PaymentService:
    """Applies payments to one sale at a time"""

    def __init__(self, db: Session, locks: SaleLocks = sale_locks):
        self.db = db
        self.locks = locks
        self.sales = SaleRepository(db)
        self.payments = PaymentRepository(db)

    def apply_payment(
        self,
        sale_id: uuid.UUID,
        amount_cents: int,
        target_installment_id: Optional[uuid.UUID] = None,
        today: Optional[date] = None,
    ) -> Tuple[PaymentOutcome, orm.Payment]:
        """
        Apply a payment inside the sale's critical section.

        The sale row is locked (SELECT ... FOR UPDATE) and a process-local lock
        keyed on the sale id is held until commit, so two payments to the same
        sale never interleave. Any error rolls the whole application back.

        Raises:
            SaleNotFound: Unknown sale
            InstallmentNotFound: Unknown target installment
            CrossSaleViolation: Target installment belongs to another sale
            InvalidPaymentAmount: amount_cents <= 0
        """
        today = today or date.today()

        with self.locks.hold(sale_id):
            try:
                if self.sales.lock_sale(sale_id) is None:
                    raise SaleNotFound(f"Sale {sale_id} not found")

                if target_installment_id is not None:
                    target = self.sales.get_installment(target_installment_id)
                    if target is None:
                        raise InstallmentNotFound(f"Installment {target_installment_id} not found")
                    if target.sale_id != sale_id:
                        raise CrossSaleViolation(sale_id, target_installment_id)

                installments = self.sales.list_installments(sale_id)
                outcome = apply_payment(
                    sale_id,
                    installments,
                    amount_cents,
                    target_installment_id=target_installment_id,
                    today=today,
                )

                touched = {change.installment_id for change in outcome.changes}
                self.sales.save_installments([inst for inst in outcome.installments if inst.id in touched])

                first_touched = outcome.changes[0].installment_id if outcome.changes else None
                db_payment = self.payments.record_payment(
                    outcome,
                    installment_id=target_installment_id or first_touched,
                    payment_date=today,
                )
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        settled = all(inst.status == InstallmentStatus.PAID for inst in outcome.installments)
        record_payment(outcome.credit_cents, settled)

        if outcome.has_credit:
            logger.warning(
                "Payment exceeds remaining obligations",
                extra={"sale_id": str(sale_id), "credit_cents": outcome.credit_cents},
            )

        return outcome, db_payment
