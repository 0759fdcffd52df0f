"""
RedisLogger: logging handler publishing records to Redis

For every record at or above the configured level:
1. each pub/sub channel, in configuration order: encode, PUBLISH
2. each stream, in configuration order: encode, XADD (trimmed if configured)

Every destination is a separate round-trip. A failing destination is reported
through handleError and the remaining destinations are still sent to.
"""
import logging
from typing import Optional, Union

from .config import PubSubTarget, RedisLoggerConfig, StreamTarget, coerce_level
from .errors import DispatchError
from .registry import install


class RedisLogger(logging.Handler):
    """
    Publish logs to Redis pub/sub channels and/or streams.

    Usage:
        config = RedisLoggerConfigBuilder.with_pubsub_default(
            "redis://localhost:6379/0", ["logging"]
        ).build()
        logging.getLogger("app").addHandler(RedisLogger(config))

    Calls on the shared connection are serialized by the handler lock, which
    logging.Handler.handle() holds around emit(). The connection belongs to
    the caller and is left open by close().
    """

    def __init__(
        self,
        config: RedisLoggerConfig,
        level: Optional[Union[int, str]] = None,
    ):
        super().__init__(config.level if level is None else coerce_level(level))
        self.config = config

    @classmethod
    def init(
        cls,
        config: RedisLoggerConfig,
        level: Optional[Union[int, str]] = None,
    ) -> "RedisLogger":
        """Create a RedisLogger and install it as the global logger"""
        handler = cls(config, level)
        install(handler)
        return handler

    def enabled(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self.level

    def emit(self, record: logging.LogRecord):
        """Send the record to every configured destination"""
        if not self.enabled(record):
            return

        for target in self.config.channels:
            try:
                self._publish(target, record)
            except DispatchError:
                self.handleError(record)

        for target in self.config.streams:
            try:
                self._append(target, record)
            except DispatchError:
                self.handleError(record)

    def flush(self):
        """Nothing is buffered: every record is sent synchronously"""

    def _publish(self, target: PubSubTarget, record: logging.LogRecord):
        try:
            message = target.encoder.encode(record)
            self.config.connection.publish(target.channel, message)
        except Exception as e:
            raise DispatchError(target, e) from e

    def _append(self, target: StreamTarget, record: logging.LogRecord):
        try:
            pairs = target.encoder.encode(record)
            # Duplicate field names collapse, last one wins
            fields = {}
            for name, value in pairs:
                if not name:
                    raise ValueError("Stream field names must not be empty")
                fields[name] = value

            if target.maxlen:
                self.config.connection.xadd(
                    target.key,
                    fields,
                    maxlen=target.maxlen,
                    approximate=target.approximate,
                )
            else:
                self.config.connection.xadd(target.key, fields)
        except Exception as e:
            raise DispatchError(target, e) from e

    def __repr__(self):
        level = logging.getLevelName(self.level)
        targets = ", ".join(str(t) for t in self.config.destinations)
        return f"<{self.__class__.__name__} ({level}) [{targets}]>"
