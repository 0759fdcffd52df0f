"""
Threaded proxy handler

Moves the work of a slow handler (such as RedisLogger, which makes a network
round-trip per destination) off the logging call path. emit() only enqueues;
one worker thread hands records to the wrapped handler in FIFO order.

States:
    IDLE           constructed with start=False, records are queued
    RUNNING        worker thread draining the queue
    SHUTTING_DOWN  stop() called, new records are rejected, queue draining
    STOPPED        worker exited after delivering every accepted record
"""
import copy
import logging
import queue
import threading
from enum import Enum
from typing import Optional, Union

from .errors import QueueClosedError, QueueFullError
from .registry import install

# Enqueued by stop() behind all accepted records
_STOP = object()


class ProxyState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class ThreadedProxyHandler(logging.Handler):
    """
    Forward records to a wrapped handler from a background thread.

    Usage:
        proxy = ThreadedProxyHandler(RedisLogger(config))
        logging.getLogger("app").addHandler(proxy)
        ...
        proxy.close()  # drains, also done by logging.shutdown() at exit

    Args:
        inner: Handler that does the actual work
        maxsize: Queue capacity, 0 for unbounded. When full, records are dropped.
        start: Start the worker immediately
    """

    def __init__(self, inner: logging.Handler, maxsize: int = 0, start: bool = True):
        super().__init__(inner.level)
        self.inner = inner
        self.queue: "queue.Queue" = queue.Queue(maxsize)
        self.state = ProxyState.IDLE
        self._state_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

        if start:
            self.start()

    @classmethod
    def init(
        cls,
        inner: logging.Handler,
        level: Optional[Union[int, str]] = None,
        maxsize: int = 0,
    ) -> "ThreadedProxyHandler":
        """Wrap inner and install the proxy as the global logger"""
        proxy = cls(inner, maxsize=maxsize)
        install(proxy, level)
        return proxy

    def start(self):
        with self._state_lock:
            if self.state is not ProxyState.IDLE:
                raise RuntimeError(f"Proxy worker cannot start from state {self.state.value}")
            self._spawn()

    def _spawn(self):
        self._thread = threading.Thread(
            target=self._run,
            name=f"{self.__class__.__name__}-{self.inner.__class__.__name__}",
            daemon=True,
        )
        self.state = ProxyState.RUNNING
        self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        """
        Stop accepting records and wait until the queue is drained.

        Safe to call more than once. With a timeout the call may return while
        the worker is still draining; state then stays SHUTTING_DOWN.
        """
        with self._state_lock:
            if self.state is ProxyState.IDLE:
                self._spawn()
            stopping = self.state is ProxyState.RUNNING
            if stopping:
                # No record is accepted after this, so the marker is queued last
                self.state = ProxyState.SHUTTING_DOWN
            thread = self._thread

        # Outside the lock, a full bounded queue blocks here until the worker makes room
        if stopping:
            self.queue.put(_STOP)

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def enabled(self, record: logging.LogRecord) -> bool:
        """Delegates to the wrapped handler"""
        enabled = getattr(self.inner, "enabled", None)
        if enabled is not None:
            return enabled(record)
        return record.levelno >= self.inner.level

    def handle(self, record: logging.LogRecord):
        # Skip disabled records before paying for the snapshot and the queue
        if not self.enabled(record):
            return False
        return super().handle(record)

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        """Snapshot the record so later changes to its args don't leak in"""
        record = copy.copy(record)
        record.msg = record.getMessage()
        record.args = None
        return record

    def emit(self, record: logging.LogRecord):
        try:
            with self._state_lock:
                if self.state not in (ProxyState.IDLE, ProxyState.RUNNING):
                    raise QueueClosedError(
                        f"Proxy is {self.state.value}, record dropped: {record.msg!r}"
                    )
                try:
                    self.queue.put_nowait(self.prepare(record))
                except queue.Full:
                    raise QueueFullError(
                        f"Proxy queue full ({self.queue.maxsize}), record dropped"
                    ) from None
        except Exception:
            self.handleError(record)

    def _run(self):
        q = self.queue
        while True:
            record = q.get()
            try:
                if record is _STOP:
                    break
                try:
                    self.inner.handle(record)
                except Exception:
                    self.handleError(record)
            finally:
                q.task_done()

        with self._state_lock:
            self.state = ProxyState.STOPPED

    def flush(self):
        """Wait until every queued record has been handed over, then flush inner"""
        worker = self._thread
        if (
            worker is not None
            and worker is not threading.current_thread()
            and self.state is not ProxyState.IDLE
        ):
            self.queue.join()
        self.inner.flush()

    def close(self):
        try:
            self.stop()
            self.inner.close()
        finally:
            super().close()

    def __repr__(self):
        return f"<{self.__class__.__name__} ({self.state.value}) -> {self.inner!r}>"
