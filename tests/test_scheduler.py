from payfriends.app import Services, run_scheduled_reports
from payfriends.scheduler import REPORT_JOB_ID, start_report_scheduler

from .conftest import FakeMailer, FakeStore, expense, fake_verifier


def test_daily_job_is_registered(settings):
    settings.REPORT_CRON_HOUR = 7
    settings.REPORT_CRON_MINUTE = 30
    scheduler = start_report_scheduler(lambda: None, settings)
    try:
        job = scheduler.get_job(REPORT_JOB_ID)
        assert job is not None
        assert "hour='7'" in str(job.trigger)
        assert "minute='30'" in str(job.trigger)
    finally:
        scheduler.shutdown(wait=False)


def test_scheduled_run_sends_reports(settings):
    store = FakeStore(records=[expense("Alice", 20, ["Alice", "Bob"])], emails={"Bob": "bob@example.com"})
    mailer = FakeMailer()
    run_scheduled_reports(Services(settings, store, mailer, fake_verifier))
    assert mailer.recipients == ["bob@example.com"]


def test_scheduled_run_logs_storage_failures(settings, caplog):
    store = FakeStore()
    store.broken = True
    run_scheduled_reports(Services(settings, store, FakeMailer(), fake_verifier))
    assert "Error sending report emails" in caplog.text
