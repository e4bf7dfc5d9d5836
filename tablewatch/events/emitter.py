"""
Event system for tablewatch.

Components publish what they observe (new snapshots, failed polls, settlement
verdicts) through an `EventEmitter`; UI layers and recorders subscribe to the
events they care about. A process-wide instance is available from `EventBus`.
"""

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union
import logging
import threading

logger = logging.getLogger("tablewatch.events")

EventKey = Union[str, Enum]

# Subscriptions to every event are filed under this key
ANY_EVENT = "*"


class EventPriority(Enum):
    """Priority levels for event handlers."""

    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3


@dataclass(eq=False)
class Subscription:
    """
    One registered handler.

    Compared by identity, so the same callback can be registered twice and
    each registration removed on its own.
    """

    callback: Callable[[Any], None]
    priority: int
    once: bool = False


def _key(event_type: EventKey) -> str:
    return event_type.name if isinstance(event_type, Enum) else str(event_type)


class EventEmitter:
    """
    Synchronous event emitter.

    Handlers for an event run in priority order (highest first, then in
    subscription order), followed by the handlers subscribed to every event.
    A handler that raises is logged; the remaining handlers still run.
    """

    def __init__(self):
        self._subscriptions: Dict[str, List[Subscription]] = defaultdict(list)
        self._lock = threading.RLock()

    def _subscribe(self, key: str, callback: Callable, priority: EventPriority, once: bool) -> Callable[[], None]:
        subscription = Subscription(callback, priority.value, once)
        with self._lock:
            handlers = self._subscriptions[key]
            position = next(
                (i for i, s in enumerate(handlers) if s.priority < subscription.priority),
                len(handlers),
            )
            handlers.insert(position, subscription)

        def unsubscribe() -> None:
            self._discard(key, subscription)

        return unsubscribe

    def _discard(self, key: str, subscription: Subscription) -> None:
        with self._lock:
            handlers = self._subscriptions.get(key, [])
            if subscription in handlers:
                handlers.remove(subscription)

    def on(
        self,
        event_type: EventKey,
        callback: Callable[[Dict[str, Any]], None],
        priority: EventPriority = EventPriority.NORMAL,
    ) -> Callable[[], None]:
        """
        Subscribe to an event type.

        Args:
            event_type: Event name or enum member
            callback: Called with the event data
            priority: Priority level for this handler

        Returns:
            Function removing this subscription
        """
        return self._subscribe(_key(event_type), callback, priority, once=False)

    def once(
        self,
        event_type: EventKey,
        callback: Callable[[Dict[str, Any]], None],
        priority: EventPriority = EventPriority.NORMAL,
    ) -> Callable[[], None]:
        """Subscribe to the next occurrence of an event type only."""
        return self._subscribe(_key(event_type), callback, priority, once=True)

    def on_any(
        self, callback: Callable[[tuple], None], priority: EventPriority = EventPriority.NORMAL
    ) -> Callable[[], None]:
        """
        Subscribe to every event. The callback receives ``(event_name, data)``.
        """
        return self._subscribe(ANY_EVENT, callback, priority, once=False)

    def emit(self, event_type: EventKey, data: Dict[str, Any]) -> None:
        """
        Deliver an event to its handlers, then to the catch-all handlers.

        Args:
            event_type: Event name or enum member
            data: Event payload
        """
        key = _key(event_type)
        with self._lock:
            targeted = list(self._subscriptions.get(key, ()))
            catch_all = list(self._subscriptions.get(ANY_EVENT, ()))
            for subscription in targeted:
                if subscription.once:
                    self._discard(key, subscription)

        for subscription in targeted:
            self._dispatch(subscription, key, data)
        for subscription in catch_all:
            self._dispatch(subscription, key, (key, data))

    @staticmethod
    def _dispatch(subscription: Subscription, key: str, payload: Any) -> None:
        try:
            subscription.callback(payload)
        except Exception as e:
            logger.error(f"Error in event handler for {key}: {e}", exc_info=True)

    def listener_count(self, event_type: Optional[EventKey] = None) -> int:
        """Number of handlers for one event type, or for everything when None."""
        with self._lock:
            if event_type is None:
                return sum(len(handlers) for handlers in self._subscriptions.values())
            return len(self._subscriptions.get(_key(event_type), ()))

    def remove_all_listeners(self, event_type: Optional[EventKey] = None) -> None:
        """Drop the handlers of one event type, or every handler when None."""
        with self._lock:
            if event_type is None:
                self._subscriptions.clear()
            else:
                self._subscriptions.pop(_key(event_type), None)


class EventBus:
    """
    Process-wide event emitter.

    Tests reset it by setting ``EventBus._instance = None``.
    """

    _instance: Optional[EventEmitter] = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> EventEmitter:
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = EventEmitter()
        return cls._instance


class WatchEventType(Enum):
    """
    Event types published while watching a table.
    """

    # Poller lifecycle
    POLLER_STARTED = "poller_started"
    POLLER_STOPPED = "poller_stopped"
    POLL_FAILED = "poll_failed"

    # Snapshot flow
    SNAPSHOT_UPDATED = "snapshot_updated"
    TURN_CHANGED = "turn_changed"
    SCORE_MISMATCH = "score_mismatch"

    # Actions
    ACTION_SENT = "action_sent"
    ACTION_REJECTED = "action_rejected"
    AUTO_HOLD = "auto_hold"

    # Settlement
    SETTLEMENT_VERIFIED = "settlement_verified"
    SETTLEMENT_FAILED = "settlement_failed"
