"""Scheduler-facing triggers: recurring generation and the late sweep"""

from datetime import date, datetime
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from land_ledger.api.v1.schemas import GeneratedItem, LateSweepResponse, RunDueRequest, RunDueResponse
from land_ledger.api.dependencies import get_audit_client
from land_ledger.infrastructure.clients.audit import AuditClient, generation_event
from land_ledger.infrastructure.database.session import get_db
from land_ledger.services.payments import SaleService
from land_ledger.services.recurrence import TemplateDriver

router = APIRouter()


@router.post("/recurrence/run", response_model=RunDueResponse)
def run_recurrence(
    background_tasks: BackgroundTasks,
    request_body: Optional[RunDueRequest] = None,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """
    Materialize every recurring occurrence due now.

    Safe to call repeatedly or concurrently: each occurrence is generated at
    most once.
    """
    now = request_body.now if request_body and request_body.now else datetime.now()
    run = TemplateDriver(db).run_due(now)

    if run.generated:
        background_tasks.add_task(audit_client.send_event, generation_event(run))

    return RunDueResponse(
        now=run.now,
        generated=[
            GeneratedItem(
                template_id=str(result.template_id),
                record_id=str(result.record_id),
                effective_date=result.effective_date,
            )
            for result in run.generated
        ],
        conflicts=[str(template_id) for template_id in run.conflicts],
        failures=[str(template_id) for template_id in run.failures],
    )


@router.post("/installments/refresh-late", response_model=LateSweepResponse)
def refresh_late(
    today: Optional[date] = Query(None, description="Reference date (default: today)"),
    db: Session = Depends(get_db),
):
    """Persist the Late status of overdue, unsettled installments"""
    today = today or date.today()
    marked = SaleService(db).refresh_late_statuses(today)
    return LateSweepResponse(today=today, marked_late=marked)
