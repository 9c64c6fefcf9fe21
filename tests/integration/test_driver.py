"""Integration tests for the Template Driver against the test database"""

import uuid
import pytest
from datetime import date, datetime, time
from land_ledger.domain.exceptions import ConcurrentGenerationConflict, InvalidCadenceConfig, TemplateNotFound
from land_ledger.domain.models import Cadence, DriverRun, GeneratedRecord
from land_ledger.domain import recurrence
from land_ledger.infrastructure.database.repositories import GeneratedRecordRepository, TemplateRepository
from land_ledger.services.recurrence import TemplateDriver, TemplateService, run_due


@pytest.fixture
def templates(db):
    return TemplateService(db)


@pytest.fixture
def rent(templates):
    """Monthly expense on the 1st at 08:00, first occurrence 2024-01-01"""
    return templates.create_template(
        name="Office rent",
        cadence=Cadence.MONTHLY,
        anchor=1,
        amount_cents=50000,
        anchor_time=time(8, 0),
        next_occurrence=date(2024, 1, 1),
    )


def effective_dates(db, template_id):
    return [record.effective_date for record in GeneratedRecordRepository(db).list_by_template(template_id)]


def test_generates_due_occurrence_and_advances_pointer(db, rent):
    run = run_due(db, datetime(2024, 1, 5, 9, 0))

    assert [result.effective_date for result in run.generated] == [date(2024, 1, 1)]
    assert run.conflicts == [] and run.failures == []

    stored = TemplateRepository(db).get_template(rent.id)
    assert stored.next_occurrence == date(2024, 2, 1)
    assert stored.last_generated == date(2024, 1, 1)


def test_second_run_generates_nothing(db, rent):
    now = datetime(2024, 1, 5, 9, 0)
    run_due(db, now)

    rerun = run_due(db, now)

    assert rerun.generated == []
    assert effective_dates(db, rent.id) == [date(2024, 1, 1)]


def test_not_due_before_anchor_time(db, rent):
    run = run_due(db, datetime(2024, 1, 1, 7, 30))

    assert run.generated == []
    assert TemplateRepository(db).get_template(rent.id).next_occurrence == date(2024, 1, 1)


def test_catches_up_missed_occurrences(db, rent):
    run = run_due(db, datetime(2024, 4, 2, 9, 0))

    assert effective_dates(db, rent.id) == [date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1), date(2024, 4, 1)]
    assert len(run.generated) == 4
    assert TemplateRepository(db).get_template(rent.id).next_occurrence == date(2024, 5, 1)


def test_catch_up_is_bounded_per_run(db, rent):
    now = datetime(2024, 4, 2, 9, 0)

    first = TemplateDriver(db, max_catch_up=2).run_due(now)
    second = TemplateDriver(db, max_catch_up=2).run_due(now)

    assert len(first.generated) == 2
    assert len(second.generated) == 2
    assert effective_dates(db, rent.id) == [date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1), date(2024, 4, 1)]


def test_month_end_anchor_catch_up_does_not_drift(db, templates):
    template = templates.create_template(
        name="Month-end payroll",
        cadence=Cadence.MONTHLY,
        anchor=31,
        amount_cents=1000,
        next_occurrence=date(2024, 1, 31),
    )

    run_due(db, datetime(2024, 4, 30, 12, 0))

    assert effective_dates(db, template.id) == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]


def test_deactivated_template_is_skipped(db, rent, templates):
    templates.deactivate(rent.id)

    run = run_due(db, datetime(2024, 1, 5, 9, 0))

    assert run.generated == []
    assert effective_dates(db, rent.id) == []


def test_lost_compare_and_swap_is_reported_as_conflict(db, rent, monkeypatch):
    monkeypatch.setattr(TemplateRepository, "advance_pointer", lambda self, *args: False)

    run = run_due(db, datetime(2024, 1, 5, 9, 0))

    assert run.generated == []
    assert run.conflicts == [rent.id]
    assert effective_dates(db, rent.id) == []


def test_existing_record_for_occurrence_advances_pointer(db, rent):
    """A record already stored for the occurrence is kept; the pointer still moves on"""
    GeneratedRecordRepository(db).create_record(
        GeneratedRecord(template_id=rent.id, amount_cents=50000, effective_date=date(2024, 1, 1), is_revenue=False)
    )
    db.commit()

    run = run_due(db, datetime(2024, 1, 5, 9, 0))

    assert run.generated == []
    assert run.conflicts == [] and run.failures == []
    assert TemplateRepository(db).get_template(rent.id).next_occurrence == date(2024, 2, 1)
    assert effective_dates(db, rent.id) == [date(2024, 1, 1)]

    later = run_due(db, datetime(2024, 3, 5, 9, 0))

    assert [result.effective_date for result in later.generated] == [date(2024, 2, 1), date(2024, 3, 1)]
    assert effective_dates(db, rent.id) == [date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1)]


def test_record_inserted_after_lookup_is_a_conflict_then_resolves(db, rent, monkeypatch):
    """Unique (template, date) constraint catches a record the lookup missed"""
    GeneratedRecordRepository(db).create_record(
        GeneratedRecord(template_id=rent.id, amount_cents=50000, effective_date=date(2024, 1, 1), is_revenue=False)
    )
    db.commit()
    now = datetime(2024, 1, 5, 9, 0)

    with monkeypatch.context() as patched:
        patched.setattr(GeneratedRecordRepository, "find_occurrence", lambda self, *args: None)
        run = run_due(db, now)

    assert run.conflicts == [rent.id]
    assert TemplateRepository(db).get_template(rent.id).next_occurrence == date(2024, 1, 1)

    retry = run_due(db, now)

    assert retry.conflicts == []
    assert TemplateRepository(db).get_template(rent.id).next_occurrence == date(2024, 2, 1)


def test_zero_catch_up_limit_generates_nothing(db, rent):
    run = TemplateDriver(db, max_catch_up=0).run_due(datetime(2024, 1, 5, 9, 0))

    assert run.generated == []
    assert TemplateRepository(db).get_template(rent.id).next_occurrence == date(2024, 1, 1)


def test_stale_driver_loses_to_concurrent_run(db, rent, session_factory):
    """A driver holding an old pointer cannot generate the occurrence again"""
    stale = TemplateRepository(db).get_template(rent.id)
    now = datetime(2024, 1, 5, 9, 0)

    other = session_factory()
    try:
        assert len(run_due(other, now).generated) == 1
    finally:
        other.close()

    with pytest.raises(ConcurrentGenerationConflict):
        TemplateDriver(db)._catch_up(stale, now, DriverRun(now=now))
    db.rollback()

    assert effective_dates(db, rent.id) == [date(2024, 1, 1)]


def test_failing_template_does_not_stop_batch(db, rent, templates, monkeypatch):
    broken = templates.create_template(
        name="Broken",
        cadence=Cadence.DAILY,
        anchor=None,
        amount_cents=100,
        next_occurrence=date(2024, 1, 1),
    )
    original = recurrence.materialize

    def materialize(template):
        if template.id == broken.id:
            raise RuntimeError("boom")
        return original(template)

    monkeypatch.setattr("land_ledger.services.recurrence.materialize", materialize)

    run = run_due(db, datetime(2024, 1, 1, 9, 0))

    assert run.failures == [broken.id]
    assert [result.template_id for result in run.generated] == [rent.id]
    assert TemplateRepository(db).get_template(broken.id).next_occurrence == date(2024, 1, 1)


def test_revenue_template_generates_revenue_record(db, templates):
    template = templates.create_template(
        name="Parking lease",
        cadence=Cadence.WEEKLY,
        anchor=5,
        amount_cents=7500,
        is_revenue=True,
        next_occurrence=date(2024, 1, 5),
    )

    run_due(db, datetime(2024, 1, 12, 0, 0))

    records = GeneratedRecordRepository(db).list_by_template(template.id)
    assert [record.effective_date for record in records] == [date(2024, 1, 5), date(2024, 1, 12)]
    assert all(record.is_revenue for record in records)


def test_create_template_defaults_first_occurrence(templates):
    template = templates.create_template(
        name="Internet",
        cadence=Cadence.MONTHLY,
        anchor=5,
        amount_cents=3000,
        today=date(2024, 1, 10),
    )

    assert template.next_occurrence == date(2024, 2, 5)


def test_create_template_rejects_invalid_anchor(db, templates):
    with pytest.raises(InvalidCadenceConfig):
        templates.create_template(name="Bad", cadence=Cadence.WEEKLY, anchor=9, amount_cents=100)

    assert templates.list_templates(active_only=False) == []


def test_deactivate_unknown_template(templates):
    with pytest.raises(TemplateNotFound):
        templates.deactivate(uuid.uuid4())
