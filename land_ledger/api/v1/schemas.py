"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field, model_validator
from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional
from land_ledger.domain.models import Cadence, InstallmentStatus


class ScheduleTargetSchema(BaseModel):
    """Monthly amount, number of months, or both"""

    monthly_amount_cents: Optional[int] = Field(None, gt=0)
    months: Optional[int] = Field(None, gt=0)

    @model_validator(mode="after")
    def require_one(self):
        if self.monthly_amount_cents is None and self.months is None:
            raise ValueError("monthly_amount_cents or months is required")
        return self


class SaleRequest(BaseModel):
    """Request body for POST /v1/sales"""

    client_ref: str = Field(..., min_length=1, description="Client identifier")
    total_price_cents: Optional[int] = Field(None, gt=0, description="Base price in minor units")
    price_per_m2_cents: Optional[int] = Field(None, gt=0, description="Price per square metre, with surface_m2")
    surface_m2: Optional[Decimal] = Field(None, gt=0, description="Surface of the land piece")
    advance_value: Decimal = Field(Decimal("0"), ge=0, description="Advance amount, or percent when advance_is_percent")
    advance_is_percent: bool = False
    deposit_cents: int = Field(0, ge=0)
    company_fee_percent: Decimal = Field(Decimal("0"), ge=0, le=100)
    target: ScheduleTargetSchema
    start_date: date

    @model_validator(mode="after")
    def require_price(self):
        if self.total_price_cents is None and (self.price_per_m2_cents is None or self.surface_m2 is None):
            raise ValueError("total_price_cents or price_per_m2_cents with surface_m2 is required")
        return self


class InstallmentSchema(BaseModel):
    """Single installment in a sale's schedule"""

    installment_id: str
    sequence: int
    due_date: date
    amount_due_cents: int
    amount_paid_cents: int
    status: InstallmentStatus
    paid_date: Optional[date] = None


class BalanceSchema(BaseModel):
    financed_cents: int
    paid_cents: int
    remaining_cents: int
    progress_percent: float
    paid_count: int
    late_count: int
    arrears_cents: int
    next_due_date: Optional[date] = None


class SaleResponse(BaseModel):
    """Response for POST /v1/sales and GET /v1/sales/{sale_id}"""

    sale_id: str
    client_ref: str
    total_price_cents: int
    advance_cents: int
    deposit_cents: int
    company_fee_cents: int
    financed_cents: int
    start_date: date
    installments: List[InstallmentSchema]
    balance: BalanceSchema


class PaymentRequest(BaseModel):
    """Request body for POST /v1/sales/{sale_id}/payments"""

    amount_cents: int = Field(..., description="Payment amount in minor units")
    installment_id: Optional[str] = Field(None, description="Installment the payer designated")
    payment_date: Optional[date] = None


class InstallmentChangeSchema(BaseModel):
    installment_id: str
    sequence: int
    previous_status: InstallmentStatus
    new_status: InstallmentStatus
    applied_cents: int
    amount_paid_cents: int


class PaymentResponse(BaseModel):
    payment_id: str
    sale_id: str
    amount_cents: int
    applied_cents: int
    credit_cents: int
    changes: List[InstallmentChangeSchema]


class TemplateRequest(BaseModel):
    """Request body for POST /v1/templates"""

    name: str = Field(..., min_length=1, max_length=255)
    cadence: Cadence
    anchor: Optional[int] = Field(None, description="Weekday 1-7 (Weekly) or day of month 1-31 (Monthly)")
    anchor_time: time = time(0, 0)
    amount_cents: int = Field(..., gt=0)
    is_revenue: bool = False
    next_occurrence: Optional[date] = None
    description: Optional[str] = None


class TemplateResponse(BaseModel):
    template_id: str
    name: str
    cadence: Cadence
    anchor: Optional[int]
    anchor_time: time
    amount_cents: int
    is_revenue: bool
    active: bool
    next_occurrence: date
    last_generated: Optional[date] = None


class TemplateListResponse(BaseModel):
    templates: List[TemplateResponse]


class RunDueRequest(BaseModel):
    """Optional body for POST /v1/recurrence/run"""

    now: Optional[datetime] = None


class GeneratedItem(BaseModel):
    template_id: str
    record_id: str
    effective_date: date


class RunDueResponse(BaseModel):
    now: datetime
    generated: List[GeneratedItem]
    conflicts: List[str]
    failures: List[str]


class LateSweepResponse(BaseModel):
    today: date
    marked_late: int
