"""
Pool lifecycle event hooks.

The connection manager and circuit breaker publish what happens to them
(connect, acquire, release, remove, error, query, state change, ...) to a
``PoolEventEmitter``. Subscribers decide what to do with it; the default
subscriber, ``StructlogEventSink``, writes one structured log record per
event carrying ``correlation_id``, ``duration_ms`` and ``outcome``.

Usage:
    emitter = PoolEventEmitter()
    emitter.subscribe(StructlogEventSink())
    unsubscribe = emitter.subscribe(my_metrics_hook, events={PoolEvent.QUERY})
    emitter.emit(PoolEvent.QUERY, outcome="success", duration_ms=3.2)
"""

from collections.abc import Callable, Iterable
from typing import Any

from powertick_db.core.config.constants import CircuitState, PoolEvent, Stage
from powertick_db.core.logging.logger import get_correlation_id, get_logger

logger = get_logger(__name__)

EventSubscriber = Callable[[PoolEvent, dict[str, Any]], None]


class PoolEventEmitter:
    """Explicit hook list for pool lifecycle events."""

    def __init__(self):
        self._subscribers: list[tuple[EventSubscriber, frozenset[PoolEvent] | None]] = []

    def subscribe(
        self, callback: EventSubscriber, events: Iterable[PoolEvent] | None = None
    ) -> Callable[[], None]:
        """
        Register a subscriber.

        Args:
            callback: Called as ``callback(event, payload)``
            events: Only deliver these events (all events when omitted)

        Returns:
            A function that removes the subscription
        """
        entry = (callback, frozenset(events) if events is not None else None)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def emit(self, event: PoolEvent, **payload: Any) -> None:
        """
        Deliver an event to every matching subscriber.

        The current correlation ID is attached when the payload has none.
        A failing subscriber is logged and does not stop delivery to the
        others or fail the database operation that emitted the event.
        """
        if "correlation_id" not in payload:
            correlation_id = get_correlation_id()
            if correlation_id:
                payload["correlation_id"] = correlation_id

        for callback, events in list(self._subscribers):
            if events is not None and event not in events:
                continue
            try:
                callback(event, payload)
            except Exception as e:
                logger.warning(
                    f"Pool event subscriber failed: {e}",
                    stage=Stage.POOL_EVENT,
                    pool_event=event.value,
                    subscriber=getattr(callback, "__name__", type(callback).__name__),
                    exc_info=True,
                )


_EVENT_STAGES = {
    PoolEvent.CONNECT: Stage.POOL_INIT,
    PoolEvent.POOL_CREATED: Stage.POOL_INIT,
    PoolEvent.ACQUIRE: Stage.ACQUIRE,
    PoolEvent.QUERY: Stage.QUERY,
    PoolEvent.RELEASE: Stage.RELEASE,
    PoolEvent.REMOVE: Stage.RELEASE,
    PoolEvent.HEALTH_CHECK: Stage.HEALTH_CHECK,
    PoolEvent.POOL_CLOSED: Stage.SHUTDOWN,
    PoolEvent.STATE_CHANGE: Stage.CIRCUIT_TRANSITION,
    PoolEvent.ERROR: Stage.POOL_EVENT,
}

_EVENT_MESSAGES = {
    PoolEvent.CONNECT: "New connection opened",
    PoolEvent.POOL_CREATED: "PostgreSQL connection pool initialized",
    PoolEvent.ACQUIRE: "Connection acquired from pool",
    PoolEvent.QUERY: "Query executed",
    PoolEvent.RELEASE: "Connection released back to pool",
    PoolEvent.REMOVE: "Connection removed from pool",
    PoolEvent.HEALTH_CHECK: "Health check completed",
    PoolEvent.POOL_CLOSED: "Connection pool closed",
    PoolEvent.STATE_CHANGE: "Circuit breaker state changed",
    PoolEvent.ERROR: "Pool error occurred",
}


class StructlogEventSink:
    """Default subscriber: one structured log record per pool event."""

    def __init__(self, bound_logger=None):
        self._logger = bound_logger or get_logger("powertick_db.pool")

    def __call__(self, event: PoolEvent, payload: dict[str, Any]) -> None:
        level = self._level_for(event, payload)
        message = _EVENT_MESSAGES.get(event, event.value)
        if payload.get("outcome") == "failure" and event is not PoolEvent.ERROR:
            message = f"{message} (failed)"
        getattr(self._logger, level)(
            message,
            stage=_EVENT_STAGES.get(event, Stage.POOL_EVENT),
            pool_event=event.value,
            **payload,
        )

    @staticmethod
    def _level_for(event: PoolEvent, payload: dict[str, Any]) -> str:
        if event is PoolEvent.ERROR:
            return "error"
        if event is PoolEvent.STATE_CHANGE:
            return "warning" if payload.get("to_state") == CircuitState.OPEN.value else "info"
        if payload.get("outcome") == "failure":
            return "warning" if event is PoolEvent.RELEASE else "error"
        if payload.get("slow"):
            return "warning"
        return "info"
