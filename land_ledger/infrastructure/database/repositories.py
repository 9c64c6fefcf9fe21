"""Data access layer for ledger entities"""

import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.orm import Session
from land_ledger.infrastructure.database import models as orm
from land_ledger.domain.models import (
    Cadence,
    FinancingTerms,
    GeneratedRecord,
    Installment,
    InstallmentStatus,
    PaymentOutcome,
    PlannedInstallment,
    RecurringTemplate,
    ScheduleTarget,
)


def installment_to_domain(row: orm.Installment) -> Installment:
    return Installment(
        id=row.id,
        sale_id=row.sale_id,
        sequence=row.sequence,
        due_date=row.due_date,
        amount_due_cents=row.amount_due_cents,
        amount_paid_cents=row.amount_paid_cents,
        status=InstallmentStatus(row.status),
        paid_date=row.paid_date,
    )


def template_to_domain(row: orm.RecurringTemplate) -> RecurringTemplate:
    return RecurringTemplate(
        id=row.id,
        name=row.name,
        cadence=Cadence(row.cadence),
        anchor=row.anchor,
        anchor_time=row.anchor_time,
        amount_cents=row.amount_cents,
        is_revenue=row.is_revenue,
        next_occurrence=row.next_occurrence,
        active=row.active,
        last_generated=row.last_generated,
        description=row.description,
    )


class SaleRepository:
    """Repository for sales and their installment schedules"""

    def __init__(self, db: Session):
        self.db = db

    def create_sale(
        self,
        client_ref: str,
        terms: FinancingTerms,
        target: ScheduleTarget,
        start_date: date,
        company_fee_percent: Decimal,
        planned: List[PlannedInstallment],
    ) -> orm.Sale:
        """Create sale with its installment schedule"""
        db_sale = orm.Sale(
            client_ref=client_ref,
            total_price_cents=terms.base_price_cents,
            advance_cents=terms.advance_cents,
            deposit_cents=terms.deposit_cents,
            company_fee_percent=company_fee_percent,
            company_fee_cents=terms.company_fee_cents,
            financed_cents=terms.financed_cents,
            monthly_amount_cents=target.monthly_amount_cents,
            months=target.months,
            start_date=start_date,
        )
        self.db.add(db_sale)
        self.db.flush()

        for inst in planned:
            self.db.add(
                orm.Installment(
                    sale_id=db_sale.id,
                    sequence=inst.sequence,
                    due_date=inst.due_date,
                    amount_due_cents=inst.amount_due_cents,
                    amount_paid_cents=0,
                    status=InstallmentStatus.UNPAID.value,
                )
            )
        self.db.flush()

        return db_sale

    def get_sale(self, sale_id: uuid.UUID) -> Optional[orm.Sale]:
        """Fetch sale with installments"""
        return self.db.query(orm.Sale).filter(orm.Sale.id == sale_id).first()

    def lock_sale(self, sale_id: uuid.UUID) -> Optional[orm.Sale]:
        """Fetch sale row under SELECT ... FOR UPDATE for the rest of the transaction"""
        return (
            self.db.query(orm.Sale)
            .filter(orm.Sale.id == sale_id)
            .with_for_update()
            .first()
        )

    def list_installments(self, sale_id: uuid.UUID) -> List[Installment]:
        """Installments of one sale, ordered by sequence"""
        rows = (
            self.db.query(orm.Installment)
            .filter(orm.Installment.sale_id == sale_id)
            .order_by(orm.Installment.sequence)
            .all()
        )
        return [installment_to_domain(row) for row in rows]

    def get_installment(self, installment_id: uuid.UUID) -> Optional[orm.Installment]:
        return (
            self.db.query(orm.Installment)
            .filter(orm.Installment.id == installment_id)
            .first()
        )

    def save_installments(self, installments: List[Installment]) -> None:
        """Write paid amounts and statuses back, scoped to each installment's own sale"""
        for inst in installments:
            (
                self.db.query(orm.Installment)
                .filter(orm.Installment.id == inst.id, orm.Installment.sale_id == inst.sale_id)
                .update(
                    {
                        "amount_paid_cents": inst.amount_paid_cents,
                        "status": inst.status.value,
                        "paid_date": inst.paid_date,
                    },
                    synchronize_session="evaluate",
                )
            )

    def list_unsettled_due_before(self, today: date) -> List[Installment]:
        """Non-paid installments whose due date has passed, across all sales"""
        rows = (
            self.db.query(orm.Installment)
            .filter(
                orm.Installment.status != InstallmentStatus.PAID.value,
                orm.Installment.due_date < today,
            )
            .order_by(orm.Installment.sale_id, orm.Installment.sequence)
            .all()
        )
        return [installment_to_domain(row) for row in rows]


class PaymentRepository:
    """Repository for payments received"""

    def __init__(self, db: Session):
        self.db = db

    def record_payment(
        self,
        outcome: PaymentOutcome,
        installment_id: Optional[uuid.UUID],
        payment_date: date,
    ) -> orm.Payment:
        db_payment = orm.Payment(
            sale_id=outcome.sale_id,
            installment_id=installment_id,
            amount_cents=outcome.amount_cents,
            applied_cents=outcome.applied_cents,
            credit_cents=outcome.credit_cents,
            payment_date=payment_date,
        )
        self.db.add(db_payment)
        self.db.flush()
        return db_payment

    def list_payments(self, sale_id: uuid.UUID) -> List[orm.Payment]:
        return (
            self.db.query(orm.Payment)
            .filter(orm.Payment.sale_id == sale_id)
            .order_by(orm.Payment.created_at)
            .all()
        )


class TemplateRepository:
    """Repository for recurring templates"""

    def __init__(self, db: Session):
        self.db = db

    def create_template(self, template: RecurringTemplate) -> orm.RecurringTemplate:
        db_template = orm.RecurringTemplate(
            id=template.id,
            name=template.name,
            description=template.description,
            cadence=template.cadence.value,
            anchor=template.anchor,
            anchor_time=template.anchor_time,
            amount_cents=template.amount_cents,
            is_revenue=template.is_revenue,
            active=template.active,
            next_occurrence=template.next_occurrence,
            last_generated=template.last_generated,
        )
        self.db.add(db_template)
        self.db.flush()
        return db_template

    def get_template(self, template_id: uuid.UUID) -> Optional[RecurringTemplate]:
        row = (
            self.db.query(orm.RecurringTemplate)
            .filter(orm.RecurringTemplate.id == template_id)
            .first()
        )
        return template_to_domain(row) if row else None

    def list_templates(self, active_only: bool = True) -> List[RecurringTemplate]:
        query = self.db.query(orm.RecurringTemplate)
        if active_only:
            query = query.filter(orm.RecurringTemplate.active.is_(True))
        rows = query.order_by(orm.RecurringTemplate.next_occurrence).all()
        return [template_to_domain(row) for row in rows]

    def list_due_candidates(self, today: date) -> List[RecurringTemplate]:
        """Active templates whose next occurrence is today or earlier"""
        rows = (
            self.db.query(orm.RecurringTemplate)
            .filter(
                orm.RecurringTemplate.active.is_(True),
                orm.RecurringTemplate.next_occurrence <= today,
            )
            .order_by(orm.RecurringTemplate.next_occurrence)
            .all()
        )
        return [template_to_domain(row) for row in rows]

    def advance_pointer(self, template_id: uuid.UUID, expected_next: date, new_next: date) -> bool:
        """
        Compare-and-swap the template's next occurrence.

        Only succeeds while the row still points at expected_next and is active;
        returns False when another run already advanced (or deactivated) it.
        """
        updated = (
            self.db.query(orm.RecurringTemplate)
            .filter(
                orm.RecurringTemplate.id == template_id,
                orm.RecurringTemplate.next_occurrence == expected_next,
                orm.RecurringTemplate.active.is_(True),
            )
            .update(
                {"next_occurrence": new_next, "last_generated": expected_next},
                synchronize_session="evaluate",
            )
        )
        return updated == 1

    def deactivate(self, template_id: uuid.UUID) -> bool:
        updated = (
            self.db.query(orm.RecurringTemplate)
            .filter(orm.RecurringTemplate.id == template_id)
            .update({"active": False}, synchronize_session="evaluate")
        )
        return updated == 1


class GeneratedRecordRepository:
    """Repository for materialized expense/revenue entries"""

    def __init__(self, db: Session):
        self.db = db

    def create_record(self, record: GeneratedRecord) -> orm.GeneratedRecord:
        db_record = orm.GeneratedRecord(
            template_id=record.template_id,
            amount_cents=record.amount_cents,
            effective_date=record.effective_date,
            is_revenue=record.is_revenue,
            description=record.description,
        )
        self.db.add(db_record)
        self.db.flush()
        return db_record

    def find_occurrence(self, template_id: uuid.UUID, effective_date: date) -> Optional[orm.GeneratedRecord]:
        """Record already materialized for this template occurrence, if any"""
        return (
            self.db.query(orm.GeneratedRecord)
            .filter(
                orm.GeneratedRecord.template_id == template_id,
                orm.GeneratedRecord.effective_date == effective_date,
            )
            .first()
        )

    def list_by_template(self, template_id: uuid.UUID) -> List[orm.GeneratedRecord]:
        return (
            self.db.query(orm.GeneratedRecord)
            .filter(orm.GeneratedRecord.template_id == template_id)
            .order_by(orm.GeneratedRecord.effective_date)
            .all()
        )
