from datetime import timedelta

from conftest import at
from day_planner.models import NotificationConfig
from notifications.timer_engine import NotificationTimerEngine


def _engine(fake_loop, clock):
    return NotificationTimerEngine(loop=fake_loop, clock=clock)


def test_start_notification_fires_five_minutes_early(fake_loop, clock):
    engine = _engine(fake_loop, clock)
    nid = engine.schedule_task_start_notification("essay", "Essay", at(10))

    assert nid == "start_essay"
    (handle,) = fake_loop.handles
    assert handle.delay == timedelta(hours=1, minutes=55).total_seconds()
    n = engine.get(nid)
    assert n.kind == "task_start"
    assert [a.id for a in n.actions] == ["snooze", "start"]


def test_end_notification_actions(fake_loop, clock):
    engine = _engine(fake_loop, clock)
    engine.schedule_task_end_notification("essay", "Essay", at(11))
    n = engine.get("end_essay")
    assert [a.payload["status"] for a in n.actions] == [
        "completed", "partially_completed", "not_completed",
    ]


def test_past_time_fires_immediately(fake_loop, clock):
    engine = _engine(fake_loop, clock)
    engine.schedule_task_end_notification("early", "Early", at(7))
    assert fake_loop.handles[0].delay == 0


def test_delivery_is_at_most_once(fake_loop, clock):
    engine = _engine(fake_loop, clock)
    seen = []
    engine.subscribe(seen.append)
    engine.schedule_task_end_notification("essay", "Essay", at(11))

    fake_loop.handles[0].fire()
    assert engine.deliver("end_essay") is False
    assert len(seen) == 1
    assert seen[0].delivered
    assert engine.get_pending_notifications() == []


def test_snooze_is_relative_to_now(fake_loop, clock):
    engine = _engine(fake_loop, clock)
    engine.schedule_task_start_notification("essay", "Essay", at(10))
    first = fake_loop.handles[0]

    clock.advance(minutes=5)
    n = engine.snooze("start_essay", 5)

    assert first.cancelled
    assert n.scheduled_time == at(8, 10)
    assert n.snooze_count == 1
    assert fake_loop.handles[-1].delay == 300
    assert engine.armed_count() == 1


def test_cancel_keeps_record_and_blocks_delivery(fake_loop, clock):
    engine = _engine(fake_loop, clock)
    seen = []
    engine.subscribe(seen.append)
    engine.schedule_task_start_notification("essay", "Essay", at(10))
    engine.schedule_task_end_notification("essay", "Essay", at(11))

    assert engine.cancel_task("essay") == 2
    fake_loop.handles[0].fire()
    assert engine.deliver("start_essay") is False
    assert seen == []
    assert engine.get("start_essay").status == "cancelled"
    assert len(engine.get_all_notifications()) == 2
    assert engine.snooze("start_essay") is None


def test_rescheduling_same_id_replaces_timer(fake_loop, clock):
    engine = _engine(fake_loop, clock)
    engine.schedule_task_start_notification("essay", "Essay", at(10))
    engine.schedule_task_start_notification("essay", "Essay", at(12))
    assert len(fake_loop.active()) == 1
    assert len(engine.get_all_notifications()) == 1


def test_unsubscribe_during_broadcast(fake_loop, clock):
    engine = _engine(fake_loop, clock)
    calls = []

    def once(n):
        calls.append("once")
        unsubscribe()

    unsubscribe = engine.subscribe(once)
    engine.subscribe(lambda n: calls.append("always"))

    engine.schedule_notification(
        NotificationConfig(id="n1", kind="reminder", title="t", message="m", scheduled_time=at(8))
    )
    engine.schedule_notification(
        NotificationConfig(id="n2", kind="reminder", title="t", message="m", scheduled_time=at(8))
    )
    for handle in list(fake_loop.handles):
        handle.fire()
    assert calls == ["once", "always", "always"]


def test_failing_subscriber_does_not_block_others(fake_loop, clock):
    engine = _engine(fake_loop, clock)
    seen = []

    def broken(n):
        raise RuntimeError("ui went away")

    engine.subscribe(broken)
    engine.subscribe(seen.append)
    engine.schedule_notification(
        NotificationConfig(id="n1", kind="system", title="t", message="m", scheduled_time=at(8)),
        delay_s=1.0,
    )
    assert fake_loop.handles[0].delay == 1.0
    fake_loop.handles[0].fire()
    assert len(seen) == 1


def test_snooze_action(fake_loop, clock):
    engine = _engine(fake_loop, clock)
    engine.schedule_task_start_notification("essay", "Essay", at(10))
    action = engine.handle_notification_action("start_essay", "snooze")
    assert action.type == "snooze"
    assert engine.get("start_essay").scheduled_time == at(8, 5)
    assert engine.handle_notification_action("start_essay", "nope") is None


def test_cleanup_cancels_everything(fake_loop, clock):
    engine = _engine(fake_loop, clock)
    engine.schedule_task_start_notification("essay", "Essay", at(10))
    engine.cleanup()
    assert fake_loop.active() == []
    assert engine.get_all_notifications() == []
