"""Integration tests for sale creation and payment application against the test database"""

import threading
import uuid
import pytest
from datetime import date
from land_ledger.domain.exceptions import CrossSaleViolation, InvalidPaymentAmount, SaleNotFound
from land_ledger.domain.models import InstallmentStatus, ScheduleTarget
from land_ledger.infrastructure.database.repositories import PaymentRepository, SaleRepository
from land_ledger.services.payments import PaymentService, SaleLocks, SaleService

TODAY = date(2024, 1, 10)


def create_sale(db, total_price_cents=300, months=3, start=date(2024, 1, 15)):
    db_sale, _ = SaleService(db).create_sale(
        client_ref="client-001",
        total_price_cents=total_price_cents,
        advance_value=0,
        advance_is_percent=False,
        target=ScheduleTarget(months=months),
        start_date=start,
    )
    return db_sale.id


def paid_amounts(db, sale_id):
    return [inst.amount_paid_cents for inst in SaleRepository(db).list_installments(sale_id)]


def test_create_sale_persists_schedule(db):
    sale_id = create_sale(db)

    installments = SaleRepository(db).list_installments(sale_id)
    assert [inst.amount_due_cents for inst in installments] == [100, 100, 100]
    assert [inst.due_date for inst in installments] == [date(2024, 2, 15), date(2024, 3, 15), date(2024, 4, 15)]
    assert all(inst.status == InstallmentStatus.UNPAID for inst in installments)


def test_get_schedule_recomputes_late(db):
    sale_id = create_sale(db)

    _, installments, summary = SaleService(db).get_schedule(sale_id, today=date(2024, 3, 1))

    assert [inst.status for inst in installments] == [
        InstallmentStatus.LATE,
        InstallmentStatus.UNPAID,
        InstallmentStatus.UNPAID,
    ]
    assert summary.arrears_cents == 100


def test_get_schedule_unknown_sale(db):
    with pytest.raises(SaleNotFound):
        SaleService(db).get_schedule(uuid.uuid4())


def test_apply_payment_persists_installments_and_payment(db):
    sale_id = create_sale(db)

    outcome, db_payment = PaymentService(db).apply_payment(sale_id, 150, today=TODAY)

    assert paid_amounts(db, sale_id) == [100, 50, 0]
    stored = SaleRepository(db).list_installments(sale_id)
    assert stored[0].status == InstallmentStatus.PAID
    assert stored[0].paid_date == TODAY
    assert stored[1].status == InstallmentStatus.PARTIAL

    payments = PaymentRepository(db).list_payments(sale_id)
    assert [p.id for p in payments] == [db_payment.id]
    assert payments[0].applied_cents == 150
    assert payments[0].installment_id == outcome.changes[0].installment_id


def test_overpayment_is_recorded_as_credit(db):
    sale_id = create_sale(db)

    outcome, db_payment = PaymentService(db).apply_payment(sale_id, 350, today=TODAY)

    assert outcome.credit_cents == 50
    assert db_payment.credit_cents == 50
    assert paid_amounts(db, sale_id) == [100, 100, 100]


def test_payment_never_touches_another_sale(db):
    sale_a = create_sale(db)
    sale_b = create_sale(db)

    PaymentService(db).apply_payment(sale_a, 1000, today=TODAY)

    assert paid_amounts(db, sale_a) == [100, 100, 100]
    assert paid_amounts(db, sale_b) == [0, 0, 0]
    assert PaymentRepository(db).list_payments(sale_b) == []


def test_target_from_another_sale_is_rejected(db):
    sale_a = create_sale(db)
    sale_b = create_sale(db)
    foreign = SaleRepository(db).list_installments(sale_b)[0]

    with pytest.raises(CrossSaleViolation):
        PaymentService(db).apply_payment(sale_a, 100, target_installment_id=foreign.id, today=TODAY)

    assert paid_amounts(db, sale_a) == [0, 0, 0]
    assert paid_amounts(db, sale_b) == [0, 0, 0]


def test_invalid_amount_leaves_sale_untouched(db):
    sale_id = create_sale(db)

    with pytest.raises(InvalidPaymentAmount):
        PaymentService(db).apply_payment(sale_id, 0, today=TODAY)

    assert PaymentRepository(db).list_payments(sale_id) == []


def test_failure_while_recording_rolls_back_installments(db, monkeypatch):
    sale_id = create_sale(db)

    def fail(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(PaymentRepository, "record_payment", fail)

    with pytest.raises(RuntimeError):
        PaymentService(db).apply_payment(sale_id, 150, today=TODAY)

    assert paid_amounts(db, sale_id) == [0, 0, 0]


def test_concurrent_payments_to_one_sale_are_serialized(db, session_factory):
    """Ten payments of 30 on [100, 100, 100] leave no lost updates"""
    sale_id = create_sale(db)
    errors = []

    def pay():
        session = session_factory()
        try:
            PaymentService(session).apply_payment(sale_id, 30, today=TODAY)
        except Exception as e:
            errors.append(e)
        finally:
            session.close()

    workers = [threading.Thread(target=pay) for _ in range(10)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join()

    db.expire_all()
    assert errors == []
    assert paid_amounts(db, sale_id) == [100, 100, 100]
    assert len(PaymentRepository(db).list_payments(sale_id)) == 10


def test_sale_lock_is_released_after_payments(db):
    first, second = create_sale(db), create_sale(db)
    locks = SaleLocks()

    PaymentService(db, locks=locks).apply_payment(first, 50, today=TODAY)
    PaymentService(db, locks=locks).apply_payment(second, 50, today=TODAY)
    with pytest.raises(InvalidPaymentAmount):
        PaymentService(db, locks=locks).apply_payment(first, 0, today=TODAY)

    assert len(locks) == 0


def test_sale_lock_is_kept_while_another_payment_waits():
    locks = SaleLocks()
    sale_id = uuid.uuid4()
    entered = threading.Event()

    def wait_for_lock():
        with locks.hold(sale_id):
            entered.set()

    with locks.hold(sale_id):
        waiter = threading.Thread(target=wait_for_lock)
        waiter.start()
        waiter.join(timeout=0.2)
        assert not entered.is_set()
        assert len(locks) == 1

    waiter.join()
    assert entered.is_set()
    assert len(locks) == 0


def test_refresh_late_statuses_persists_overlay(db):
    sale_id = create_sale(db)
    PaymentService(db).apply_payment(sale_id, 130, today=TODAY)

    marked = SaleService(db).refresh_late_statuses(date(2024, 3, 20))

    statuses = [inst.status for inst in SaleRepository(db).list_installments(sale_id)]
    assert marked == 1
    assert statuses == [InstallmentStatus.PAID, InstallmentStatus.LATE, InstallmentStatus.UNPAID]
