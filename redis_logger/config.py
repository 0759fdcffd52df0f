"""
Logger configuration

RedisLoggerConfig is built once with RedisLoggerConfigBuilder and frozen.
It holds the Redis connection (owned by the caller), the pub/sub channels
and streams to log to, each with its own encoder, and the minimum level.

Usage:
    config = (
        RedisLoggerConfigBuilder()
        .connection_url("redis://localhost:6379/0")
        .pubsub_default("logging")
        .stream_default("app:logs", maxlen=10000)
        .level("INFO")
        .build()
    )
"""
import logging
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import redis
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .encoders import (
    CallablePubSubEncoder,
    CallableStreamEncoder,
    DefaultPubSubEncoder,
    DefaultStreamEncoder,
    PubSubEncoder,
    StreamEncoder,
)
from .errors import ConfigError

logger = logging.getLogger(__name__)

# Socket timeouts for clients opened from a URL
SOCKET_CONNECT_TIMEOUT = 2
SOCKET_TIMEOUT = 2

Level = Union[int, str]


class PubSubTarget(BaseModel):
    """A pub/sub channel and the encoder for its messages"""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    channel: str
    encoder: PubSubEncoder

    def __str__(self) -> str:
        return f"channel '{self.channel}'"


class StreamTarget(BaseModel):
    """A stream key, the encoder for its entries and an optional trim length"""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: str
    encoder: StreamEncoder
    maxlen: Optional[int] = Field(default=None, gt=0)
    approximate: bool = True

    def __str__(self) -> str:
        return f"stream '{self.key}'"


class RedisLoggerConfig(BaseModel):
    """Frozen configuration of a RedisLogger"""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    connection: Any
    channels: Tuple[PubSubTarget, ...] = ()
    streams: Tuple[StreamTarget, ...] = ()
    level: int = logging.NOTSET

    @property
    def destinations(self) -> List[Union[PubSubTarget, StreamTarget]]:
        """All destinations in dispatch order: channels first, then streams"""
        return [*self.channels, *self.streams]


def coerce_level(level: Level) -> int:
    """Accepts a logging level number or name ("info", "WARNING", ...)"""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ConfigError(f"Unknown log level: {level!r}")
    return value


def open_connection(url: str) -> redis.Redis:
    """Open a client from a URL; the connection itself is made lazily by redis-py"""
    return redis.from_url(
        url,
        socket_connect_timeout=SOCKET_CONNECT_TIMEOUT,
        socket_timeout=SOCKET_TIMEOUT,
    )


def _as_pubsub_encoder(encoder) -> PubSubEncoder:
    if isinstance(encoder, PubSubEncoder):
        return encoder
    if callable(encoder):
        return CallablePubSubEncoder(encoder)
    raise ConfigError(f"Not a pub/sub encoder: {encoder!r}")


def _as_stream_encoder(encoder) -> StreamEncoder:
    if isinstance(encoder, StreamEncoder):
        return encoder
    if callable(encoder):
        return CallableStreamEncoder(encoder)
    raise ConfigError(f"Not a stream encoder: {encoder!r}")


class RedisLoggerConfigBuilder:
    """Fluent builder for RedisLoggerConfig"""

    def __init__(self):
        self._connection: Any = None
        self._channels: List[PubSubTarget] = []
        self._streams: List[StreamTarget] = []
        self._level: int = logging.NOTSET

    def connection(self, connection: Any) -> "RedisLoggerConfigBuilder":
        """Use an existing client. Anything with publish() and xadd() works."""
        self._connection = connection
        return self

    def connection_url(self, url: str) -> "RedisLoggerConfigBuilder":
        """Open a redis.Redis client for the given URL"""
        self._connection = open_connection(url)
        return self

    def pubsub(
        self,
        channel: str,
        encoder: Union[PubSubEncoder, Callable],
    ) -> "RedisLoggerConfigBuilder":
        """Add a pub/sub channel. A plain function is accepted as encoder."""
        self._channels.append(
            PubSubTarget(channel=channel, encoder=_as_pubsub_encoder(encoder))
        )
        return self

    def pubsub_default(self, channel: str) -> "RedisLoggerConfigBuilder":
        """Add a pub/sub channel using the JSON encoder"""
        return self.pubsub(channel, DefaultPubSubEncoder())

    def stream(
        self,
        key: str,
        encoder: Union[StreamEncoder, Callable],
        maxlen: Optional[int] = None,
        approximate: bool = True,
    ) -> "RedisLoggerConfigBuilder":
        """
        Add a stream.

        Args:
            key: Stream key
            encoder: StreamEncoder or plain function
            maxlen: Trim the stream to about this many entries (None: never trim)
            approximate: Use "MAXLEN ~" trimming, which is much cheaper for Redis
        """
        try:
            target = StreamTarget(
                key=key,
                encoder=_as_stream_encoder(encoder),
                maxlen=maxlen,
                approximate=approximate,
            )
        except ValidationError as e:
            raise ConfigError(f"Invalid stream '{key}': {e}") from e
        self._streams.append(target)
        return self

    def stream_default(
        self,
        key: str,
        maxlen: Optional[int] = None,
    ) -> "RedisLoggerConfigBuilder":
        """Add a stream using the default field encoder"""
        return self.stream(key, DefaultStreamEncoder(), maxlen=maxlen)

    def level(self, level: Level) -> "RedisLoggerConfigBuilder":
        """Minimum level a record needs to be sent"""
        self._level = coerce_level(level)
        return self

    def build(self) -> RedisLoggerConfig:
        """
        Freeze the configuration.

        Raises:
            ConfigError: no connection, or neither a channel nor a stream
        """
        if self._connection is None:
            raise ConfigError(ConfigError.CLIENT_NOT_SET)
        if not self._channels and not self._streams:
            raise ConfigError(ConfigError.CHANNEL_NOT_SET)

        config = RedisLoggerConfig(
            connection=self._connection,
            channels=tuple(self._channels),
            streams=tuple(self._streams),
            level=self._level,
        )
        logger.debug(
            "Redis logger configured: %d channel(s), %d stream(s)",
            len(config.channels),
            len(config.streams),
        )
        return config

    # ==================== Convenience constructors ====================

    @classmethod
    def _seeded(cls, connection: Any) -> "RedisLoggerConfigBuilder":
        builder = cls()
        if isinstance(connection, str):
            return builder.connection_url(connection)
        return builder.connection(connection)

    @classmethod
    def with_pubsub(
        cls,
        connection: Any,
        channels: Sequence[str],
        encoder: Union[PubSubEncoder, Callable],
    ) -> "RedisLoggerConfigBuilder":
        """Builder for channels sharing one encoder; connection is a client or URL"""
        builder = cls._seeded(connection)
        encoder = _as_pubsub_encoder(encoder)
        for channel in channels:
            builder.pubsub(channel, encoder)
        return builder

    @classmethod
    def with_pubsub_default(
        cls,
        connection: Any,
        channels: Sequence[str],
    ) -> "RedisLoggerConfigBuilder":
        return cls.with_pubsub(connection, channels, DefaultPubSubEncoder())

    @classmethod
    def with_streams(
        cls,
        connection: Any,
        streams: Sequence[str],
        encoder: Union[StreamEncoder, Callable],
        maxlen: Optional[int] = None,
    ) -> "RedisLoggerConfigBuilder":
        """Builder for streams sharing one encoder; connection is a client or URL"""
        builder = cls._seeded(connection)
        encoder = _as_stream_encoder(encoder)
        for key in streams:
            builder.stream(key, encoder, maxlen=maxlen)
        return builder

    @classmethod
    def with_streams_default(
        cls,
        connection: Any,
        streams: Sequence[str],
        maxlen: Optional[int] = None,
    ) -> "RedisLoggerConfigBuilder":
        return cls.with_streams(connection, streams, DefaultStreamEncoder(), maxlen)

    @classmethod
    def with_pubsub_and_streams(
        cls,
        connection: Any,
        channels: Sequence[str],
        pubsub_encoder: Union[PubSubEncoder, Callable],
        streams: Sequence[str],
        stream_encoder: Union[StreamEncoder, Callable],
        maxlen: Optional[int] = None,
    ) -> "RedisLoggerConfigBuilder":
        builder = cls.with_pubsub(connection, channels, pubsub_encoder)
        stream_encoder = _as_stream_encoder(stream_encoder)
        for key in streams:
            builder.stream(key, stream_encoder, maxlen=maxlen)
        return builder

    @classmethod
    def with_pubsub_and_streams_default(
        cls,
        connection: Any,
        channels: Sequence[str],
        streams: Sequence[str],
        maxlen: Optional[int] = None,
    ) -> "RedisLoggerConfigBuilder":
        return cls.with_pubsub_and_streams(
            connection,
            channels,
            DefaultPubSubEncoder(),
            streams,
            DefaultStreamEncoder(),
            maxlen,
        )
