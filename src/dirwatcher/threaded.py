"""Base class for the periodic worker loops."""

import logging
import threading
import time
from typing import Optional

logger = logging.getLogger(__name__)


class Threaded:
    """
    A long-lived loop that runs one unit of work every ``interval`` seconds.

    Subclasses implement ``run``. The loop runs on a daemon thread and
    supports cooperative shutdown: ``stop`` lets the current unit of work
    finish and then waits for the thread to exit. An exception escaping
    ``run`` is logged, stored on ``error`` and ends the loop.
    """

    def __init__(self, name: str, interval: float = 0.01):
        """
        Initialize the loop.

        Args:
            name: Thread name, also used in log messages
            interval: Seconds to wait between units of work
        """
        self.name = name
        self.interval = interval
        self.error: Optional[BaseException] = None

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._started_event = threading.Event()
        self._paused = False
        self._maximum_iterations: Optional[int] = None
        self._iterations = 0
        self._lock = threading.Lock()

    @property
    def interval(self) -> float:
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        value = float(value)
        if value <= 0:
            raise ValueError("interval must be greater than zero")
        self._interval = value

    @property
    def maximum_iterations(self) -> Optional[int]:
        return self._maximum_iterations

    @maximum_iterations.setter
    def maximum_iterations(self, value: Optional[int]) -> None:
        if value is not None:
            value = int(value)
            if value < 1:
                raise ValueError("maximum iterations must be >= 1")
        self._iterations = 0
        self._maximum_iterations = value

    @property
    def iterations(self) -> int:
        return self._iterations

    @property
    def finished_iterations(self) -> bool:
        return (
            self._maximum_iterations is not None
            and self._iterations >= self._maximum_iterations
        )

    @property
    def running(self) -> bool:
        """True while the loop thread is alive and no stop was requested."""
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop_event.is_set()

    @property
    def paused(self) -> bool:
        return self._paused

    def pause(self) -> None:
        """Skip units of work until resumed."""
        logger.debug(f"Pausing {self.name}")
        self._paused = True

    def resume(self) -> None:
        """Continue running units of work."""
        logger.debug(f"Resuming {self.name}")
        self._paused = False

    def start(self) -> None:
        """
        Start the loop on a background thread.

        Blocks until the loop has signalled that it is running. Does
        nothing if the loop is already running.
        """
        with self._lock:
            if self.running:
                return

            self.error = None
            self._stop_event.clear()
            self._started_event.clear()
            self._iterations = 0

            self._thread = threading.Thread(target=self._loop, name=self.name)
            self._thread.daemon = True
            self._thread.start()

        self._started_event.wait()

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop the loop after the current unit of work.

        When called from the loop thread itself the stop is only
        requested; otherwise this waits for the thread to exit.

        Args:
            timeout: Maximum seconds to wait for the thread
        """
        self._stop_event.set()

        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return
        thread.join(timeout=timeout)

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the loop thread to exit."""
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def interrupted(self) -> bool:
        """
        True when called on the loop thread after a stop was requested.

        Long units of work check this to finish early. Work driven from any
        other thread, such as a final drain after stop, is never interrupted.
        """
        return self._thread is threading.current_thread() and self._stop_event.is_set()

    def before_starting(self) -> None:
        """Hook called on the loop thread before the first unit of work."""
        pass

    def after_stopping(self) -> None:
        """Hook called on the loop thread after the last unit of work."""
        pass

    def run(self) -> None:
        """Perform one unit of work."""
        raise NotImplementedError

    def _loop(self) -> None:
        logger.debug(f"{self.name} loop started, interval={self.interval}s")
        try:
            self.before_starting()
            self._started_event.set()

            while not self._stop_event.is_set():
                started = time.monotonic()

                if not self._paused:
                    self.run()
                    if self._maximum_iterations is not None:
                        self._iterations += 1
                        if self.finished_iterations:
                            logger.debug(f"{self.name} finished {self._iterations} iterations")
                            break

                nap = self.interval - (time.monotonic() - started)
                self._stop_event.wait(timeout=max(nap, 0))
        except Exception as e:
            logger.exception(f"{self.name} loop aborted: {e}")
            self.error = e
        finally:
            self._stop_event.set()
            self._started_event.set()
            self.after_stopping()
            logger.debug(f"{self.name} loop stopped")
