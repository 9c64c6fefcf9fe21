"""Recurring template rules - creation checks and due detection"""

from datetime import date, datetime
from land_ledger.domain.models import GeneratedRecord, RecurringTemplate
from land_ledger.domain.exceptions import InvalidCadenceConfig
from land_ledger.domain.schedule import next_occurrence, validate_anchor


def validate_template(template: RecurringTemplate) -> None:
    """Creation-time checks; generation never re-validates"""
    validate_anchor(template.cadence, template.anchor)
    if template.amount_cents <= 0:
        raise InvalidCadenceConfig(f"Template amount must be positive, got {template.amount_cents}")
    if template.last_generated is not None and template.next_occurrence < template.last_generated:
        raise InvalidCadenceConfig("next_occurrence cannot precede last_generated")


def is_due(template: RecurringTemplate, now: datetime) -> bool:
    """
    Whether the template's next occurrence should be materialized at `now`.

    Past dates are always due; today's occurrence waits for the anchor time.
    """
    if not template.active:
        return False
    today = now.date()
    if template.next_occurrence < today:
        return True
    return template.next_occurrence == today and template.anchor_time <= now.time()


def materialize(template: RecurringTemplate) -> GeneratedRecord:
    """Record for the template's pending occurrence, dated on the occurrence"""
    return GeneratedRecord(
        template_id=template.id,
        amount_cents=template.amount_cents,
        effective_date=template.next_occurrence,
        is_revenue=template.is_revenue,
        description=template.description or template.name,
    )


def following_occurrence(template: RecurringTemplate) -> date:
    """Pointer value after the pending occurrence is generated"""
    return next_occurrence(template.cadence, template.anchor, template.next_occurrence)
