"""Recurring template management and the Template Driver"""

import logging
import time
import uuid
from dataclasses import replace
from datetime import date, datetime, time as time_of_day
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from land_ledger.config import settings
from land_ledger.domain.exceptions import ConcurrentGenerationConflict, TemplateNotFound
from land_ledger.domain.models import Cadence, DriverRun, GenerationResult, RecurringTemplate
from land_ledger.domain.recurrence import following_occurrence, is_due, materialize, validate_template
from land_ledger.domain.schedule import first_occurrence, validate_anchor
from land_ledger.infrastructure.database.repositories import GeneratedRecordRepository, TemplateRepository
from land_ledger.infrastructure.observability.logging import log_generation_run
from land_ledger.infrastructure.observability.metrics import (
    driver_run_histogram,
    generation_conflict_counter,
    generation_failure_counter,
    record_generated,
)

logger = logging.getLogger(__name__)


class TemplateService:
    """Operator-facing template lifecycle: create, list, deactivate"""

    def __init__(self, db: Session):
        self.db = db
        self.templates = TemplateRepository(db)

    def create_template(
        self,
        name: str,
        cadence: Cadence,
        anchor: Optional[int],
        amount_cents: int,
        anchor_time: time_of_day = time_of_day(0, 0),
        is_revenue: bool = False,
        next_occurrence: Optional[date] = None,
        description: Optional[str] = None,
        today: Optional[date] = None,
    ) -> RecurringTemplate:
        """
        Validate and persist a new template.

        When next_occurrence is omitted it defaults to the first occurrence on
        or after today for the cadence and anchor.

        Raises:
            InvalidCadenceConfig: Anchor out of range or non-positive amount
        """
        validate_anchor(cadence, anchor)
        if next_occurrence is None:
            next_occurrence = first_occurrence(cadence, anchor, today or date.today())

        template = RecurringTemplate(
            id=uuid.uuid4(),
            name=name,
            cadence=cadence,
            anchor=anchor,
            anchor_time=anchor_time,
            amount_cents=amount_cents,
            is_revenue=is_revenue,
            next_occurrence=next_occurrence,
            description=description,
        )
        validate_template(template)

        try:
            self.templates.create_template(template)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Recurring template created",
            extra={"template_id": str(template.id), "cadence": cadence.value, "next_occurrence": next_occurrence.isoformat()},
        )
        return template

    def get_template(self, template_id: uuid.UUID) -> RecurringTemplate:
        template = self.templates.get_template(template_id)
        if template is None:
            raise TemplateNotFound(f"Template {template_id} not found")
        return template

    def list_templates(self, active_only: bool = True) -> List[RecurringTemplate]:
        return self.templates.list_templates(active_only=active_only)

    def deactivate(self, template_id: uuid.UUID) -> RecurringTemplate:
        """Soft-deactivate; generated records keep referencing the template"""
        try:
            if not self.templates.deactivate(template_id):
                raise TemplateNotFound(f"Template {template_id} not found")
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return self.get_template(template_id)


class TemplateDriver:
    """
    Materializes due recurring templates, exactly once per occurrence.

    Every occurrence is its own short transaction: the template pointer is
    compare-and-swapped from the occurrence date to the following one and the
    record is inserted; both commit together or not at all. A failed swap means
    another invocation already produced that occurrence, so the template is
    skipped until the next run. An occurrence whose record already exists only
    advances the pointer. One template failing never stops the batch.
    """

    def __init__(self, db: Session, max_catch_up: Optional[int] = None):
        self.db = db
        self.templates = TemplateRepository(db)
        self.records = GeneratedRecordRepository(db)
        self.max_catch_up = settings.max_catch_up_occurrences if max_catch_up is None else max_catch_up

    def run_due(self, now: Optional[datetime] = None) -> DriverRun:
        """
        Generate every occurrence due at `now`.

        Templates that fell behind are caught up one occurrence at a time until
        their pointer moves past `now` (bounded by max_catch_up per run), so an
        immediate second call produces nothing.

        Returns:
            DriverRun with generated (template_id, record_id) pairs, conflicts and failures
        """
        now = now or datetime.now()
        run = DriverRun(now=now)
        start_time = time.time()

        with driver_run_histogram.time():
            for template in self.templates.list_due_candidates(now.date()):
                try:
                    self._catch_up(template, now, run)
                except ConcurrentGenerationConflict as e:
                    self.db.rollback()
                    run.conflicts.append(template.id)
                    generation_conflict_counter.inc()
                    logger.warning(f"Skipping template: {e}", extra={"template_id": str(template.id)})
                except Exception as e:
                    self.db.rollback()
                    run.failures.append(template.id)
                    generation_failure_counter.inc()
                    logger.error(
                        f"Recurring generation failed: {e}",
                        extra={"template_id": str(template.id)},
                        exc_info=True,
                    )

        log_generation_run(run, (time.time() - start_time) * 1000)
        return run

    def _catch_up(self, template: RecurringTemplate, now: datetime, run: DriverRun) -> None:
        steps = 0
        while is_due(template, now) and steps < self.max_catch_up:
            result = self._generate_occurrence(template)
            if result is not None:
                run.generated.append(result)
            template = replace(
                template,
                last_generated=template.next_occurrence,
                next_occurrence=following_occurrence(template),
            )
            steps += 1

        if steps == self.max_catch_up and is_due(template, now):
            logger.warning(
                "Template still behind after catch-up limit",
                extra={"template_id": str(template.id), "next_occurrence": template.next_occurrence.isoformat()},
            )

    def _generate_occurrence(self, template: RecurringTemplate) -> Optional[GenerationResult]:
        occurrence = template.next_occurrence
        new_next = following_occurrence(template)

        if not self.templates.advance_pointer(template.id, occurrence, new_next):
            raise ConcurrentGenerationConflict(template.id, occurrence)

        if self.records.find_occurrence(template.id, occurrence) is not None:
            # Materialized outside the driver (backfill, migration); only the pointer moves
            self.db.commit()
            logger.info(
                "Occurrence already materialized, advancing pointer",
                extra={"template_id": str(template.id), "effective_date": occurrence.isoformat()},
            )
            return None

        try:
            db_record = self.records.create_record(materialize(template))
        except IntegrityError as e:
            # Inserted between the lookup and the insert; the next run sees it and moves on
            raise ConcurrentGenerationConflict(template.id, occurrence) from e

        self.db.commit()
        record_generated(template.is_revenue)

        return GenerationResult(template_id=template.id, record_id=db_record.id, effective_date=occurrence)


def run_due(db: Session, now: Optional[datetime] = None) -> DriverRun:
    """Single idempotent entry point for external schedulers"""
    return TemplateDriver(db).run_due(now)
