"""
Notification fan-out for downstream consumers (UI, persistence).

Mutating calls emit named events onto an EventBus owned by the player session.
Consumers either subscribe a callback or drain the queued events after a call,
so the core stays testable without a live subscriber.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

from config import CONFIG

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    COMPANY_CREATED = "company-created"
    COMPANY_UPGRADED = "company-upgraded"
    COMPANY_REMOVED = "company-removed"
    EMPLOYEE_HIRED = "employee-hired"
    EMPLOYEE_DISMISSED = "employee-dismissed"
    EMPLOYEE_TRAINED = "employee-trained"
    INCOME_SETTLED = "income-settled"
    SKILL_PURCHASED = "skill-purchased"
    DOWNLOAD_PROGRESS = "download-progress"
    DOWNLOAD_COMPLETED = "download-completed"
    DOWNLOAD_CANCELLED = "download-cancelled"
    MASTERY_UPDATED = "mastery-updated"
    JOB_STARTED = "job-started"
    JOB_RESIGNED = "job-resigned"
    SALARY_PAID = "salary-paid"
    JOB_SLOTS_UNLOCKED = "job-slots-unlocked"
    RESUME_PUBLISHED = "resume-published"
    RESUME_WITHDRAWN = "resume-withdrawn"
    RESUME_HIRED = "resume-hired"
    MOOD_BONUS_APPLIED = "mood-bonus-applied"
    STORAGE_FULL = "storage-full"
    LEVEL_UP = "level-up"
    CONNECTION_FEE_PAID = "connection-fee-paid"
    TICK_COMPLETED = "tick-completed"


@dataclass(slots=True)
class SimEvent:
    """One notification: the event name plus the entity ids and numeric deltas."""

    event_type: EventType
    payload: Dict[str, Any] = field(default_factory=dict)
    tick: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {"event": self.event_type.value, "tick": self.tick, **self.payload}


Subscriber = Callable[[SimEvent], None]


class EventBus:
    """
    Observer list plus a bounded pending queue.

    The queue keeps the newest `queue_limit` undrained events and counts the
    ones it drops; a limit of 0 turns queuing off for subscriber-only use.
    Subscribers are called synchronously in registration order. A subscriber
    that raises is logged and skipped; it never interrupts the emitting call.
    """

    def __init__(self, queue_limit: Optional[int] = None) -> None:
        if queue_limit is None:
            queue_limit = CONFIG.debug.event_queue_limit
        if queue_limit < 0:
            raise ValueError(f"queue_limit cannot be negative, got {queue_limit}")
        self._subscribers: List[Subscriber] = []
        self._pending: Deque[SimEvent] = deque(maxlen=queue_limit)
        self.queue_limit = queue_limit
        self.dropped = 0
        self.current_tick = 0

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def emit(self, event_type: EventType, **payload: Any) -> SimEvent:
        event = SimEvent(event_type, payload, self.current_tick)
        if self.queue_limit:
            if len(self._pending) == self.queue_limit:
                self.dropped += 1
            self._pending.append(event)
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Subscriber failed on %s", event_type.value)
        return event

    def drain(self) -> List[SimEvent]:
        """Return and clear the queued events."""
        events = list(self._pending)
        self._pending.clear()
        return events

    def peek(self) -> List[SimEvent]:
        return list(self._pending)

    def of_type(self, event_type: EventType) -> List[SimEvent]:
        return [event for event in self._pending if event.event_type is event_type]
