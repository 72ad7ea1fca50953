"""Delivers events from the notification queue to observers."""

import logging
import queue
import threading
from typing import Any, Dict, Optional

from .models import Event
from .threaded import Threaded

logger = logging.getLogger(__name__)


class Notifier(Threaded):
    """
    Fans events out to every registered observer.

    Each observer is called once per event. An event equal to the one
    delivered immediately before it in the same pass is dropped. A
    failing observer is logged and skipped; it never stops delivery to
    the other observers or the loop itself.
    """

    def __init__(self, notification_queue: "queue.Queue[Event]"):
        """
        Initialize the notifier.

        Args:
            notification_queue: Queue of events produced by the collector
        """
        super().__init__("Notifier", interval=0.01)
        self.notification_queue = notification_queue
        self._observers: Dict[Any, str] = {}
        self._observers_lock = threading.Lock()

    def add_observer(self, observer: Any, func: str = "update") -> Any:
        """
        Register an observer.

        Args:
            observer: Object to notify; a plain callable is called directly
                when it has no method named ``func``
            func: Name of the method called with each event

        Returns:
            The registered observer, usable as a handle for delete_observer

        Raises:
            TypeError: If the observer has no such method and is not callable
        """
        if not callable(getattr(observer, func, None)):
            if func != "update" or not callable(observer):
                raise TypeError(f"observer does not respond to '{func}'")
            func = "__call__"

        with self._observers_lock:
            self._observers[observer] = func
        return observer

    def delete_observer(self, observer: Any) -> None:
        with self._observers_lock:
            self._observers.pop(observer, None)

    def delete_observers(self) -> None:
        with self._observers_lock:
            self._observers.clear()

    def count_observers(self) -> int:
        with self._observers_lock:
            return len(self._observers)

    @property
    def observers(self) -> Dict[Any, str]:
        """Snapshot of the observer to method-name mapping."""
        with self._observers_lock:
            return dict(self._observers)

    def run(self) -> None:
        """Deliver every event currently in the queue."""
        previous_event: Optional[Event] = None

        while True:
            try:
                event = self.notification_queue.get_nowait()
            except queue.Empty:
                return

            if event == previous_event:
                logger.debug(f"Dropping duplicate {event}")
                continue

            for observer, func in self.observers.items():
                self.deliver(observer, func, event)
            previous_event = event

    def deliver(self, observer: Any, func: str, event: Event) -> bool:
        """
        Call one observer with one event.

        Args:
            observer: The observer to call
            func: Name of the method to call on it
            event: The event to pass

        Returns:
            True if the observer returned normally, False if it raised
        """
        try:
            getattr(observer, func)(event)
            return True
        except Exception as e:
            logger.error(f"Observer {observer!r}.{func}({event}) failed: {e}", exc_info=True)
            return False
