"""Recurring template endpoints"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from land_ledger.api.v1.schemas import TemplateListResponse, TemplateRequest, TemplateResponse
from land_ledger.api.dependencies import get_request_id, parse_uuid
from land_ledger.domain.exceptions import InvalidCadenceConfig, TemplateNotFound
from land_ledger.domain.models import RecurringTemplate
from land_ledger.infrastructure.database.session import get_db
from land_ledger.services.recurrence import TemplateService

router = APIRouter()


def _template_response(template: RecurringTemplate) -> TemplateResponse:
    return TemplateResponse(
        template_id=str(template.id),
        name=template.name,
        cadence=template.cadence,
        anchor=template.anchor,
        anchor_time=template.anchor_time,
        amount_cents=template.amount_cents,
        is_revenue=template.is_revenue,
        active=template.active,
        next_occurrence=template.next_occurrence,
        last_generated=template.last_generated,
    )


@router.post("/templates", response_model=TemplateResponse, status_code=201)
def create_template(request_body: TemplateRequest, request: Request, db: Session = Depends(get_db)):
    """
    Create a recurring expense/revenue template.

    The anchor is validated against the cadence here; generation never
    re-validates it.
    """
    try:
        template = TemplateService(db).create_template(
            name=request_body.name,
            cadence=request_body.cadence,
            anchor=request_body.anchor,
            amount_cents=request_body.amount_cents,
            anchor_time=request_body.anchor_time,
            is_revenue=request_body.is_revenue,
            next_occurrence=request_body.next_occurrence,
            description=request_body.description,
        )
    except InvalidCadenceConfig as e:
        logging.warning(f"Invalid template: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=422, detail=str(e))

    return _template_response(template)


@router.get("/templates", response_model=TemplateListResponse)
def list_templates(
    include_inactive: bool = Query(False, description="Also list deactivated templates"),
    db: Session = Depends(get_db),
):
    templates = TemplateService(db).list_templates(active_only=not include_inactive)
    return TemplateListResponse(templates=[_template_response(t) for t in templates])


@router.get("/templates/{template_id}", response_model=TemplateResponse)
def get_template(template_id: str, db: Session = Depends(get_db)):
    try:
        template = TemplateService(db).get_template(parse_uuid(template_id, "template"))
    except TemplateNotFound:
        raise HTTPException(status_code=404, detail="Template not found")
    return _template_response(template)


@router.post("/templates/{template_id}/deactivate", response_model=TemplateResponse)
def deactivate_template(template_id: str, db: Session = Depends(get_db)):
    """Stop future generation; records already generated are kept"""
    try:
        template = TemplateService(db).deactivate(parse_uuid(template_id, "template"))
    except TemplateNotFound:
        raise HTTPException(status_code=404, detail="Template not found")
    return _template_response(template)
