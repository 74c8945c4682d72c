# maritime_ledger/chain/events.py
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from maritime_ledger.core.types import Event
from maritime_ledger.storage import StorageBackend, atomic

logger = logging.getLogger(__name__)

Listener = Callable[[Event], None]


class EventLog:
    """
    Append-only change-log of registry and voyage notifications.

    Producers `record` an event inside the same storage transaction as their own
    write, then `publish` it once every lock is released. `emit` does both for
    callers without a write of their own.
    """

    def __init__(self, storage: Optional[StorageBackend] = None):
        self.storage = storage
        self._lock = threading.Lock()
        self._events: Tuple[Event, ...] = ()
        self._listeners: List[Listener] = []

        if self.storage is not None:
            self._events = tuple(self.storage.load_events())
            if self._events:
                logger.info("[maritime-ledger] Loaded %d events from storage", len(self._events))

    def __len__(self) -> int:
        return len(self._events)

    def record(self, name: str, payload: Dict[str, Any]) -> Event:
        # storage lock before log lock, same order as the registries and the ledger
        with atomic(self.storage):
            with self._lock:
                event = Event(seq=len(self._events) + 1, name=name, payload=payload)
                if self.storage is None:
                    self._events = self._events + (event,)
                    return event
                self.storage.save_event(event)
            # kept out of memory until the caller's outer transaction commits
            self.storage.on_commit(lambda: self._append(event))
        return event

    def _append(self, event: Event) -> None:
        with self._lock:
            self._events = self._events + (event,)

    def publish(self, event: Event) -> None:
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("[maritime-ledger] Listener %r failed on %s #%d", listener, event.name, event.seq)

    def emit(self, name: str, payload: Dict[str, Any]) -> Event:
        event = self.record(name, payload)
        self.publish(event)
        return event

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register `listener` for every future event. Returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def events(self, name: Optional[str] = None, since: int = 0) -> Tuple[Event, ...]:
        """Snapshot of events with seq > `since`, optionally filtered by event name."""
        snapshot = self._events
        return tuple(e for e in snapshot if e.seq > since and (name is None or e.name == name))
