"""SQLAlchemy ORM models for sales, installments, payments and recurring templates"""

import uuid
from sqlalchemy import (
    Column,
    String,
    BigInteger,
    Boolean,
    Numeric,
    DateTime,
    Date,
    Time,
    Integer,
    ForeignKey,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class Sale(Base):
    """Financed land sale"""

    __tablename__ = "sale"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    client_ref = Column(Text, nullable=False, index=True)
    total_price_cents = Column(BigInteger, nullable=False)
    advance_cents = Column(BigInteger, nullable=False, default=0)
    deposit_cents = Column(BigInteger, nullable=False, default=0)
    company_fee_percent = Column(Numeric(5, 2), nullable=False, default=0)
    company_fee_cents = Column(BigInteger, nullable=False, default=0)
    financed_cents = Column(BigInteger, nullable=False)
    monthly_amount_cents = Column(BigInteger, nullable=True)
    months = Column(Integer, nullable=True)
    start_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    installments = relationship(
        "Installment",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="Installment.sequence",
    )
    payments = relationship("Payment", back_populates="sale", cascade="all, delete-orphan")


class Installment(Base):
    """Scheduled obligation within a sale"""

    __tablename__ = "installment"
    __table_args__ = (UniqueConstraint("sale_id", "sequence", name="uq_installment_sale_sequence"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    sale_id = Column(Uuid, ForeignKey("sale.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    amount_due_cents = Column(BigInteger, nullable=False)
    amount_paid_cents = Column(BigInteger, nullable=False, default=0)
    paid_date = Column(Date, nullable=True)
    status = Column(String(16), nullable=False, default="Unpaid", index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    sale = relationship("Sale", back_populates="installments")


class Payment(Base):
    """Money received against a sale"""

    __tablename__ = "payment"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    sale_id = Column(Uuid, ForeignKey("sale.id", ondelete="CASCADE"), nullable=False, index=True)
    installment_id = Column(Uuid, ForeignKey("installment.id", ondelete="SET NULL"), nullable=True)
    amount_cents = Column(BigInteger, nullable=False)
    applied_cents = Column(BigInteger, nullable=False)
    credit_cents = Column(BigInteger, nullable=False, default=0)
    payment_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    sale = relationship("Sale", back_populates="payments")


class RecurringTemplate(Base):
    """Standing instruction to generate an expense or revenue entry"""

    __tablename__ = "recurring_template"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    cadence = Column(String(16), nullable=False)
    anchor = Column(Integer, nullable=True)
    anchor_time = Column(Time, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    is_revenue = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True, index=True)
    next_occurrence = Column(Date, nullable=False, index=True)
    last_generated = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    records = relationship("GeneratedRecord", back_populates="template")


class GeneratedRecord(Base):
    """Expense or revenue entry, one per template occurrence"""

    __tablename__ = "generated_record"
    __table_args__ = (
        UniqueConstraint("template_id", "effective_date", name="uq_generated_record_occurrence"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    template_id = Column(
        Uuid,
        ForeignKey("recurring_template.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    amount_cents = Column(BigInteger, nullable=False)
    effective_date = Column(Date, nullable=False)
    is_revenue = Column(Boolean, nullable=False, default=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    template = relationship("RecurringTemplate", back_populates="records")
