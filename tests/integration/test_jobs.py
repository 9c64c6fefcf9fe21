"""Tests for the scheduler command line"""

import pytest
from contextlib import contextmanager
from datetime import date, datetime, time
from land_ledger import jobs
from land_ledger.domain.models import Cadence, ScheduleTarget
from land_ledger.services.payments import SaleService
from land_ledger.services.recurrence import TemplateService


@pytest.fixture
def cli_db(db, monkeypatch):
    """Point the CLI's session scope at the test database"""

    @contextmanager
    def scope():
        yield db

    monkeypatch.setattr(jobs, "session_scope", scope)
    # JSON logs share stdout with the command output
    monkeypatch.setattr(jobs, "setup_logging", lambda level: None)
    return db


def test_parse_run_due_timestamp():
    args = jobs.parse_args(["run-due", "--now", "2024-01-05T09:00"])

    assert args.command == "run-due"
    assert args.now == datetime(2024, 1, 5, 9, 0)


def test_parse_requires_command():
    with pytest.raises(SystemExit):
        jobs.parse_args([])


def test_run_due_prints_generated_records(cli_db, capsys):
    template = TemplateService(cli_db).create_template(
        name="Office rent",
        cadence=Cadence.MONTHLY,
        anchor=1,
        amount_cents=50000,
        anchor_time=time(8, 0),
        next_occurrence=date(2024, 1, 1),
    )

    exit_code = jobs.main(["run-due", "--now", "2024-02-02T09:00"])

    lines = capsys.readouterr().out.splitlines()
    assert exit_code == 0
    assert [line.split()[0] for line in lines] == [str(template.id)] * 2
    assert [line.split()[2] for line in lines] == ["2024-01-01", "2024-02-01"]


def test_mark_late_reports_count(cli_db, capsys):
    SaleService(cli_db).create_sale(
        client_ref="client-001",
        total_price_cents=300,
        advance_value=0,
        advance_is_percent=False,
        target=ScheduleTarget(months=3),
        start_date=date(2024, 1, 15),
    )

    exit_code = jobs.main(["mark-late", "--today", "2024-03-20"])

    assert exit_code == 0
    assert "Marked 2 installments as late" in capsys.readouterr().out
