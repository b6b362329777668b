"""Progress feed and cooperative cancellation for long-running conversions."""
import logging
import queue
import threading
import time
from typing import Callable, Iterator, List, Optional

logger = logging.getLogger(__name__)

_CLOSED = object()


class ProgressChannel:
    """Single-writer, multi-reader stream of completion ratios in [0, 1].

    Values only ever move forward: a published value lower than the last one
    is dropped. Readers can poll ``latest``, iterate a subscription, or
    register listeners that are called synchronously on the writer's thread.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._latest = 0.0
        self._closed = False
        self._subscribers: List[queue.Queue] = []
        self._listeners: List[Callable[[float], None]] = []

    @property
    def latest(self) -> float:
        return self._latest

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, value: float) -> bool:
        """Push a new value. Returns False when it was dropped."""
        value = min(max(float(value), 0.0), 1.0)
        with self._lock:
            if self._closed or value < self._latest:
                return False
            self._latest = value
            subscribers = list(self._subscribers)
            listeners = list(self._listeners)
        for subscriber in subscribers:
            subscriber.put(value)
        for listener in listeners:
            listener(value)
        return True

    def add_listener(self, listener: Callable[[float], None]) -> None:
        with self._lock:
            self._listeners.append(listener)

    def subscribe(self) -> "ProgressSubscription":
        subscriber = queue.Queue()
        with self._lock:
            if self._closed:
                subscriber.put(_CLOSED)
            else:
                self._subscribers.append(subscriber)
        return ProgressSubscription(subscriber)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            subscribers, self._subscribers = self._subscribers, []
        for subscriber in subscribers:
            subscriber.put(_CLOSED)

    def watch(self, interval: float = 0.1) -> Iterator[float]:
        """Yield the latest value every ``interval`` seconds until the channel closes."""
        while not self._closed:
            yield self._latest
            time.sleep(interval)
        yield self._latest


class ProgressSubscription:
    """Iterator over the values published after subscribing."""

    def __init__(self, source: queue.Queue):
        self._source = source
        self._done = False

    def __iter__(self):
        return self

    def __next__(self) -> float:
        value = self.get()
        if value is None:
            raise StopIteration
        return value

    def get(self, timeout: Optional[float] = None) -> Optional[float]:
        """Next value, or None once the channel has closed."""
        if self._done:
            return None
        value = self._source.get(timeout=timeout)
        if value is _CLOSED:
            self._done = True
            return None
        return value


class CancellationToken:
    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        logger.info("Cancellation requested")
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
