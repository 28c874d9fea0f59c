from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from day_planner.models import NotificationAction, NotificationConfig

logger = logging.getLogger(__name__)

START_REMINDER_LEAD = timedelta(minutes=5)
DEFAULT_SNOOZE_MINUTES = 5

Subscriber = Callable[[NotificationConfig], None]


def start_notification_id(task_id: str) -> str:
    return f"start_{task_id}"


def end_notification_id(task_id: str) -> str:
    return f"end_{task_id}"


class NotificationTimerEngine:
    """Registry of lifecycle notifications, each backed by one delayed trigger.

    Per notification: pending -> delivered, pending -> snoozed -> pending,
    or pending -> cancelled. Delivery happens at most once per arm cycle.
    All state is touched from the event loop thread only.
    """

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._loop = loop
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._notifications: Dict[str, NotificationConfig] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._subscribers: List[Subscriber] = []

    # --- subscription ---

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _broadcast(self, notification: NotificationConfig) -> None:
        # iterate over a snapshot so (un)subscribing mid-broadcast is safe
        for callback in list(self._subscribers):
            try:
                callback(notification)
            except Exception:
                logger.exception(f"Notification subscriber failed for {notification.id}")

    # --- arming ---

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def _cancel_timer(self, notification_id: str) -> None:
        handle = self._timers.pop(notification_id, None)
        if handle is not None:
            handle.cancel()

    def _arm(self, notification: NotificationConfig) -> None:
        self._cancel_timer(notification.id)
        delay = max(0.0, (notification.scheduled_time - self._clock()).total_seconds())
        handle = self._get_loop().call_later(delay, self.deliver, notification.id)
        self._timers[notification.id] = handle
        notification.status = "pending"
        logger.debug(f"Armed {notification.id} in {delay:.0f}s")

    def schedule_notification(
        self, notification: NotificationConfig, delay_s: Optional[float] = None
    ) -> str:
        """Register ``notification`` (replacing any with the same id) and arm it."""
        if delay_s is not None:
            notification.scheduled_time = self._clock() + timedelta(seconds=delay_s)
        notification.delivered = False
        self._notifications[notification.id] = notification
        self._arm(notification)
        return notification.id

    def schedule_task_start_notification(self, task_id: str, name: str, start_time: datetime) -> str:
        notification = NotificationConfig(
            id=start_notification_id(task_id),
            kind="task_start",
            title="Task Starting Soon",
            message=f'"{name}" starts in 5 minutes',
            task_id=task_id,
            scheduled_time=start_time - START_REMINDER_LEAD,
            actions=[
                NotificationAction(
                    id="snooze", label="Snooze 5min", type="snooze",
                    payload={"minutes": DEFAULT_SNOOZE_MINUTES},
                ),
                NotificationAction(
                    id="start", label="Start Now", type="complete", payload={"action": "start"}
                ),
            ],
        )
        return self.schedule_notification(notification)

    def schedule_task_end_notification(self, task_id: str, name: str, end_time: datetime) -> str:
        notification = NotificationConfig(
            id=end_notification_id(task_id),
            kind="task_end",
            title="Task Completed?",
            message=f'How did "{name}" go?',
            task_id=task_id,
            scheduled_time=end_time,
            actions=[
                NotificationAction(
                    id="completed", label="Completed", type="complete",
                    payload={"status": "completed"},
                ),
                NotificationAction(
                    id="partial", label="Partial", type="complete",
                    payload={"status": "partially_completed"},
                ),
                NotificationAction(
                    id="not_completed", label="Not Done", type="complete",
                    payload={"status": "not_completed"},
                ),
            ],
        )
        return self.schedule_notification(notification)

    # --- transitions ---

    def deliver(self, notification_id: str) -> bool:
        notification = self._notifications.get(notification_id)
        self._timers.pop(notification_id, None)
        if notification is None or notification.delivered or notification.status == "cancelled":
            return False

        notification.delivered = True
        notification.status = "delivered"
        logger.info(f"Delivering {notification.kind} notification {notification_id}")
        self._broadcast(notification)
        return True

    def snooze(
        self, notification_id: str, minutes: int = DEFAULT_SNOOZE_MINUTES
    ) -> Optional[NotificationConfig]:
        """Re-arm relative to *now*, not to the original scheduled time."""
        notification = self._notifications.get(notification_id)
        if notification is None or notification.status == "cancelled":
            return None

        self._cancel_timer(notification_id)
        notification.status = "snoozed"
        notification.delivered = False
        notification.snooze_count += 1
        notification.scheduled_time = self._clock() + timedelta(minutes=minutes)
        self._arm(notification)
        logger.info(f"Snoozed {notification_id} for {minutes} min")
        return notification

    def cancel(self, notification_id: str) -> bool:
        notification = self._notifications.get(notification_id)
        if notification is None or notification.delivered or notification.status == "cancelled":
            return False
        self._cancel_timer(notification_id)
        notification.status = "cancelled"
        logger.info(f"Cancelled {notification_id}")
        return True

    def cancel_task(self, task_id: str) -> int:
        """Cancel every outstanding notification pointing at ``task_id``."""
        ids = [n.id for n in self._notifications.values() if n.task_id == task_id]
        return sum(1 for nid in ids if self.cancel(nid))

    def handle_notification_action(
        self, notification_id: str, action_id: str
    ) -> Optional[NotificationAction]:
        """Run snooze/cancel in place; return the action so callers can route the rest."""
        notification = self._notifications.get(notification_id)
        if notification is None:
            return None
        action = notification.find_action(action_id)
        if action is None:
            logger.warning(f"Unknown action {action_id} for {notification_id}")
            return None

        if action.type == "snooze":
            self.snooze(notification_id, int(action.payload.get("minutes", DEFAULT_SNOOZE_MINUTES)))
        elif action.type == "cancel":
            self.cancel(notification_id)
        elif action.type == "reschedule":
            logger.info(f"Reschedule requested for task {notification.task_id}")
        return action

    # --- bulk / queries ---

    def cleanup(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._notifications.clear()
        self._subscribers.clear()

    def get(self, notification_id: str) -> Optional[NotificationConfig]:
        return self._notifications.get(notification_id)

    def get_all_notifications(self) -> List[NotificationConfig]:
        return list(self._notifications.values())

    def get_pending_notifications(self) -> List[NotificationConfig]:
        return [
            n for n in self._notifications.values()
            if n.status == "pending" and not n.delivered
        ]

    def armed_count(self) -> int:
        return len(self._timers)
