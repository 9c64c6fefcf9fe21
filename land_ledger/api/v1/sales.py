"""Sales endpoints - schedule creation, balance lookup and payment application"""

import time
import logging
from datetime import date
from typing import List
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from land_ledger.api.v1.schemas import (
    BalanceSchema,
    InstallmentChangeSchema,
    InstallmentSchema,
    PaymentRequest,
    PaymentResponse,
    SaleRequest,
    SaleResponse,
)
from land_ledger.api.dependencies import get_audit_client, get_request_id, parse_uuid
from land_ledger.domain.exceptions import (
    CrossSaleViolation,
    InstallmentNotFound,
    InvalidPaymentAmount,
    InvalidPlanTerms,
    RoundingReconciliationFailure,
    SaleNotFound,
)
from land_ledger.domain.installments import price_for_surface
from land_ledger.domain.models import BalanceSummary, Installment, ScheduleTarget
from land_ledger.infrastructure.clients.audit import AuditClient, payment_event
from land_ledger.infrastructure.database import models as orm
from land_ledger.infrastructure.database.session import get_db
from land_ledger.infrastructure.observability.logging import log_payment_applied
from land_ledger.services.payments import PaymentService, SaleService

router = APIRouter()


def _sale_response(db_sale: orm.Sale, installments: List[Installment], summary: BalanceSummary) -> SaleResponse:
    return SaleResponse(
        sale_id=str(db_sale.id),
        client_ref=db_sale.client_ref,
        total_price_cents=db_sale.total_price_cents,
        advance_cents=db_sale.advance_cents,
        deposit_cents=db_sale.deposit_cents,
        company_fee_cents=db_sale.company_fee_cents,
        financed_cents=db_sale.financed_cents,
        start_date=db_sale.start_date,
        installments=[
            InstallmentSchema(
                installment_id=str(inst.id),
                sequence=inst.sequence,
                due_date=inst.due_date,
                amount_due_cents=inst.amount_due_cents,
                amount_paid_cents=inst.amount_paid_cents,
                status=inst.status,
                paid_date=inst.paid_date,
            )
            for inst in installments
        ],
        balance=BalanceSchema(
            financed_cents=summary.financed_cents,
            paid_cents=summary.paid_cents,
            remaining_cents=summary.remaining_cents,
            progress_percent=summary.progress_percent,
            paid_count=summary.paid_count,
            late_count=summary.late_count,
            arrears_cents=summary.arrears_cents,
            next_due_date=summary.next_due.due_date if summary.next_due else None,
        ),
    )


@router.post("/sales", response_model=SaleResponse, status_code=201)
def create_sale(request_body: SaleRequest, request: Request, db: Session = Depends(get_db)):
    """
    Register a financed sale and generate its installment schedule.

    Flow:
    1. Resolve the base price (given, or per m² times surface), then advance,
       deposit and company fee against it
    2. Plan monthly installments over the financed remainder
    3. Persist sale + installments in one transaction
    """
    request_id = get_request_id(request)
    service = SaleService(db)
    total_price_cents = request_body.total_price_cents
    if total_price_cents is None:
        total_price_cents = price_for_surface(request_body.price_per_m2_cents, request_body.surface_m2)

    try:
        db_sale, _ = service.create_sale(
            client_ref=request_body.client_ref,
            total_price_cents=total_price_cents,
            advance_value=request_body.advance_value,
            advance_is_percent=request_body.advance_is_percent,
            target=ScheduleTarget(
                monthly_amount_cents=request_body.target.monthly_amount_cents,
                months=request_body.target.months,
            ),
            start_date=request_body.start_date,
            deposit_cents=request_body.deposit_cents,
            company_fee_percent=request_body.company_fee_percent,
        )
        _, installments, summary = service.get_schedule(db_sale.id, today=date.today())

    except InvalidPlanTerms as e:
        logging.warning(f"Invalid plan terms: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except RoundingReconciliationFailure as e:
        logging.error(f"Installment plan did not reconcile: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Installment plan did not reconcile")

    return _sale_response(db_sale, installments, summary)


@router.get("/sales/{sale_id}", response_model=SaleResponse)
def get_sale(sale_id: str, db: Session = Depends(get_db)):
    """
    Retrieve a sale's schedule with statuses recomputed for today.

    Returns:
        Sale terms, installments and balance summary (arrears, progress)
    """
    sale_uuid = parse_uuid(sale_id, "sale")

    try:
        db_sale, installments, summary = SaleService(db).get_schedule(sale_uuid)
    except SaleNotFound:
        raise HTTPException(status_code=404, detail="Sale not found")

    return _sale_response(db_sale, installments, summary)


@router.post("/sales/{sale_id}/payments", response_model=PaymentResponse)
def apply_payment(
    sale_id: str,
    request_body: PaymentRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """
    Apply a payment to a sale, carrying excess forward within the same sale.

    Flow:
    1. Lock the sale and apply the payment to its installments
    2. Persist changed installments and the payment row
    3. Send the audit event in the background
    4. Return changed installments and any overpayment credit
    """
    start_time = time.time()
    request_id = get_request_id(request)
    sale_uuid = parse_uuid(sale_id, "sale")
    target_uuid = parse_uuid(request_body.installment_id, "installment") if request_body.installment_id else None

    try:
        outcome, db_payment = PaymentService(db).apply_payment(
            sale_uuid,
            request_body.amount_cents,
            target_installment_id=target_uuid,
            today=request_body.payment_date,
        )

    except (SaleNotFound, InstallmentNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))

    except InvalidPaymentAmount as e:
        raise HTTPException(status_code=422, detail=str(e))

    except CrossSaleViolation as e:
        logging.warning(f"Cross-sale payment rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))

    except Exception as e:
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    background_tasks.add_task(audit_client.send_event, payment_event(outcome, str(db_payment.id)))

    log_payment_applied(request_id, outcome, (time.time() - start_time) * 1000)

    return PaymentResponse(
        payment_id=str(db_payment.id),
        sale_id=str(outcome.sale_id),
        amount_cents=outcome.amount_cents,
        applied_cents=outcome.applied_cents,
        credit_cents=outcome.credit_cents,
        changes=[
            InstallmentChangeSchema(
                installment_id=str(change.installment_id),
                sequence=change.sequence,
                previous_status=change.previous_status,
                new_status=change.new_status,
                applied_cents=change.applied_cents,
                amount_paid_cents=change.amount_paid_cents,
            )
            for change in outcome.changes
        ],
    )
