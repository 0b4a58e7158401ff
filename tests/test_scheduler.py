from datetime import datetime, timezone

import pytest

from jobfeed.scheduler import JOB_ID, ImportScheduler, build_trigger


class StubService:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def import_all(self, **kwargs):
        self.calls.append(kwargs)
        if self.fail:
            raise RuntimeError("database is down")
        return ["a", "b", "c"]


def test_hourly_trigger_fires_on_the_hour_utc():
    trigger = build_trigger("0 * * * *")
    now = datetime(2026, 1, 5, 12, 30, tzinfo=timezone.utc)
    fire = trigger.get_next_fire_time(None, now)
    assert fire == datetime(2026, 1, 5, 13, 0, tzinfo=timezone.utc)
    after = trigger.get_next_fire_time(fire, fire.replace(second=1))
    assert after == datetime(2026, 1, 5, 14, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("cron", ["", "0 * * *", "* * * * * *"])
def test_cron_needs_five_fields(cron):
    with pytest.raises(ValueError):
        build_trigger(cron)


def test_tick_queues_with_jitter():
    service = StubService()
    assert ImportScheduler(service).tick() == 3
    assert service.calls == [{"jitter": True}]


def test_tick_swallows_errors(caplog):
    sched = ImportScheduler(StubService(fail=True))
    assert sched.tick() == 0
    assert "Scheduled job import failed" in caplog.text


def test_trigger_now_has_no_jitter_and_passes_filters():
    service = StubService()
    ImportScheduler(service).trigger_now(source="jobicy")
    assert service.calls == [{"jitter": False, "source": "jobicy"}]


def test_trigger_now_propagates_errors():
    with pytest.raises(RuntimeError):
        ImportScheduler(StubService(fail=True)).trigger_now()


def test_status_and_lifecycle():
    sched = ImportScheduler(StubService(), cron="0 * * * *")
    [idle] = sched.status()
    assert idle == {"name": JOB_ID, "schedule": "0 * * * *", "running": False, "nextRunTime": None}

    sched.start()
    try:
        [live] = sched.status()
        assert live["running"] is True
        nrt = datetime.fromisoformat(live["nextRunTime"])
        assert nrt.minute == 0 and nrt.second == 0
        assert nrt.utcoffset().total_seconds() == 0
    finally:
        sched.stop()
    assert not sched.running
