import logging
import sys
import threading
import time

import pytest

from redis_logger import (
    ProxyState,
    QueueClosedError,
    QueueFullError,
    RedisLogger,
    RedisLoggerConfigBuilder,
    SetLoggerError,
    ThreadedProxyHandler,
    installed,
)


class ListHandler(logging.Handler):
    """Collects the records it receives"""

    def __init__(self, level=logging.NOTSET):
        super().__init__(level)
        self.records = []
        self.closed = False

    def emit(self, record):
        self.records.append(record)

    def close(self):
        self.closed = True
        super().close()

    @property
    def messages(self):
        return [r.getMessage() for r in self.records]


class BlockingHandler(ListHandler):
    """Waits on an event before accepting each record"""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()
        self.entered = threading.Event()

    def emit(self, record):
        self.entered.set()
        self.release.wait(timeout=5)
        super().emit(record)


@pytest.fixture()
def errors(monkeypatch):
    reported = []

    def handle_error(self, record):
        reported.append(sys.exc_info()[1])

    monkeypatch.setattr(ThreadedProxyHandler, "handleError", handle_error)
    return reported


def test_records_arrive_in_order_without_loss(make_record):
    inner = ListHandler()
    proxy = ThreadedProxyHandler(inner)

    for i in range(500):
        proxy.handle(make_record(f"record {i}"))
    proxy.stop()

    assert inner.messages == [f"record {i}" for i in range(500)]
    assert proxy.state is ProxyState.STOPPED


def test_records_from_many_threads_are_all_delivered(make_record):
    inner = ListHandler()
    proxy = ThreadedProxyHandler(inner)

    def produce(n):
        for i in range(100):
            proxy.handle(make_record(f"{n}-{i}"))

    threads = [threading.Thread(target=produce, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    proxy.stop()

    assert sorted(inner.messages) == sorted(f"{n}-{i}" for n in range(8) for i in range(100))
    # Each producer's own records keep their order
    for n in range(8):
        mine = [m for m in inner.messages if m.startswith(f"{n}-")]
        assert mine == [f"{n}-{i}" for i in range(100)]


def test_emit_does_not_wait_for_inner_handler(make_record):
    inner = BlockingHandler()
    proxy = ThreadedProxyHandler(inner)

    proxy.handle(make_record("first"))
    assert inner.entered.wait(timeout=5)

    started = time.monotonic()
    proxy.handle(make_record("second"))
    assert time.monotonic() - started < 1
    assert inner.records == []

    inner.release.set()
    proxy.stop()
    assert inner.messages == ["first", "second"]


def test_disabled_records_are_not_queued(make_record):
    inner = ListHandler(level=logging.WARNING)
    proxy = ThreadedProxyHandler(inner, start=False)

    assert not proxy.enabled(make_record(level=logging.INFO))
    assert not proxy.handle(make_record(level=logging.INFO))
    assert proxy.queue.empty()

    proxy.handle(make_record(level=logging.ERROR))
    assert proxy.queue.qsize() == 1
    proxy.stop()


def test_enabled_uses_inner_enabled(connection, make_record):
    config = RedisLoggerConfigBuilder().connection(connection).pubsub_default("a").level("ERROR").build()
    proxy = ThreadedProxyHandler(RedisLogger(config), start=False)

    assert not proxy.enabled(make_record(level=logging.WARNING))
    assert proxy.enabled(make_record(level=logging.ERROR))
    proxy.stop()


def test_records_after_stop_are_rejected(make_record, errors):
    inner = ListHandler()
    proxy = ThreadedProxyHandler(inner)
    proxy.stop()

    proxy.handle(make_record("late"))

    assert inner.records == []
    assert isinstance(errors[0], QueueClosedError)


def test_full_bounded_queue_drops_record(make_record, errors):
    inner = ListHandler()
    proxy = ThreadedProxyHandler(inner, maxsize=1, start=False)

    proxy.handle(make_record("kept"))
    proxy.handle(make_record("dropped"))
    proxy.stop()

    assert inner.messages == ["kept"]
    assert isinstance(errors[0], QueueFullError)


def test_state_transitions(make_record):
    inner = ListHandler()
    proxy = ThreadedProxyHandler(inner, start=False)
    assert proxy.state is ProxyState.IDLE

    # Records logged before start are kept
    proxy.handle(make_record("early"))

    proxy.start()
    assert proxy.state is ProxyState.RUNNING
    with pytest.raises(RuntimeError):
        proxy.start()

    proxy.stop()
    proxy.stop()
    assert proxy.state is ProxyState.STOPPED
    assert inner.messages == ["early"]


def test_record_is_snapshotted_at_emit(make_record):
    inner = ListHandler()
    proxy = ThreadedProxyHandler(inner, start=False)
    items = ["a"]

    proxy.handle(make_record("items: %s", args=(items,)))
    items.append("b")
    proxy.stop()

    assert inner.messages == ["items: ['a']"]


def test_worker_survives_inner_failure(make_record, errors):
    class FlakyHandler(ListHandler):
        def handle(self, record):
            if record.getMessage() == "boom":
                raise RuntimeError("inner failed")
            return super().handle(record)

    inner = FlakyHandler()
    proxy = ThreadedProxyHandler(inner)

    proxy.handle(make_record("boom"))
    proxy.handle(make_record("after"))
    proxy.stop()

    assert inner.messages == ["after"]
    assert isinstance(errors[0], RuntimeError)


def test_flush_waits_for_queue(make_record):
    inner = ListHandler()
    proxy = ThreadedProxyHandler(inner)

    for i in range(50):
        proxy.handle(make_record(str(i)))
    proxy.flush()

    assert len(inner.records) == 50
    assert proxy.state is ProxyState.RUNNING
    proxy.stop()


def test_close_drains_and_closes_inner(make_record):
    inner = ListHandler()
    proxy = ThreadedProxyHandler(inner)

    proxy.handle(make_record("last words"))
    proxy.close()

    assert inner.messages == ["last words"]
    assert inner.closed
    assert proxy.state is ProxyState.STOPPED


def test_proxy_in_front_of_redis_logger(connection):
    config = RedisLoggerConfigBuilder.with_pubsub_and_streams_default(
        connection, ["logging"], ["app:logs"]
    ).build()
    proxy = ThreadedProxyHandler(RedisLogger(config))

    logger = logging.getLogger("test.threaded.redis")
    logger.propagate = False
    logger.setLevel(logging.INFO)
    logger.addHandler(proxy)
    try:
        logger.info("queued")
    finally:
        logger.removeHandler(proxy)
        proxy.close()

    assert connection.publish.call_args.args[0] == "logging"
    assert connection.xadd.call_args.args[0] == "app:logs"
    assert connection.xadd.call_args.args[1]["message"] == "queued"


def test_init_installs_proxy_once():
    inner = ListHandler(level=logging.INFO)
    proxy = ThreadedProxyHandler.init(inner)

    assert installed() is proxy
    assert logging.getLogger().level == logging.INFO
    with pytest.raises(SetLoggerError):
        ThreadedProxyHandler.init(ListHandler())


def test_bad_format_args_never_reach_the_caller(errors):
    inner = ListHandler()
    proxy = ThreadedProxyHandler(inner)
    logger = logging.getLogger("test.threaded.format")
    logger.propagate = False
    logger.addHandler(proxy)
    try:
        logger.error("%d items", "many")
        logger.error("after")
    finally:
        logger.removeHandler(proxy)
        proxy.stop()

    assert inner.messages == ["after"]
    assert isinstance(errors[0], TypeError)


def test_emit_stays_non_blocking_while_stop_waits_for_room(make_record, errors):
    inner = BlockingHandler()
    proxy = ThreadedProxyHandler(inner, maxsize=1)

    proxy.handle(make_record("a"))
    assert inner.entered.wait(timeout=5)
    proxy.handle(make_record("b"))

    stopper = threading.Thread(target=proxy.stop)
    stopper.start()
    deadline = time.monotonic() + 5
    while proxy.state is not ProxyState.SHUTTING_DOWN and time.monotonic() < deadline:
        time.sleep(0.01)
    assert proxy.state is ProxyState.SHUTTING_DOWN

    started = time.monotonic()
    proxy.handle(make_record("c"))
    assert time.monotonic() - started < 1
    assert isinstance(errors[0], QueueClosedError)

    inner.release.set()
    stopper.join(timeout=5)
    assert inner.messages == ["a", "b"]
    assert proxy.state is ProxyState.STOPPED
