"""
Environment configuration and one-call setup

Redis logging for an application in one line:

    setup_redis_logging()

reads REDIS_URL and the REDIS_LOGGER_* variables, builds a RedisLogger with
the default encoders, runs it behind a ThreadedProxyHandler and attaches it,
with a console handler, to the root logger (or the given logger).
"""
import logging
import os
from typing import List, Mapping, Optional, Union

from .config import RedisLoggerConfigBuilder
from .errors import ConfigError, SetLoggerError
from .handler import RedisLogger
from .registry import install, installed
from .threaded import ThreadedProxyHandler

# Redis configuration
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
REDIS_LOGGER_CHANNELS = os.getenv("REDIS_LOGGER_CHANNELS", "logging")
REDIS_LOGGER_STREAMS = os.getenv("REDIS_LOGGER_STREAMS", "")
REDIS_LOGGER_STREAM_MAXLEN = os.getenv("REDIS_LOGGER_STREAM_MAXLEN", "10000")
REDIS_LOGGER_LEVEL = os.getenv("REDIS_LOGGER_LEVEL", "INFO")

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
CONSOLE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _split(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def builder_from_env(
    environ: Optional[Mapping[str, str]] = None,
) -> RedisLoggerConfigBuilder:
    """
    Seed a builder from environment variables.

    Args:
        environ: Mapping to read instead of the values captured at import time

    Raises:
        ConfigError: REDIS_LOGGER_STREAM_MAXLEN is not an integer
    """
    if environ is None:
        url = REDIS_URL
        channels = REDIS_LOGGER_CHANNELS
        streams = REDIS_LOGGER_STREAMS
        maxlen = REDIS_LOGGER_STREAM_MAXLEN
        level = REDIS_LOGGER_LEVEL
    else:
        url = environ.get("REDIS_URL", "redis://localhost:6379/0")
        channels = environ.get("REDIS_LOGGER_CHANNELS", "logging")
        streams = environ.get("REDIS_LOGGER_STREAMS", "")
        maxlen = environ.get("REDIS_LOGGER_STREAM_MAXLEN", "10000")
        level = environ.get("REDIS_LOGGER_LEVEL", "INFO")

    try:
        stream_maxlen = int(maxlen)
    except ValueError:
        raise ConfigError(f"REDIS_LOGGER_STREAM_MAXLEN must be an integer, got {maxlen!r}") from None

    builder = RedisLoggerConfigBuilder().connection_url(url).level(level)
    for channel in _split(channels):
        builder.pubsub_default(channel)
    for key in _split(streams):
        # 0 disables trimming
        builder.stream_default(key, maxlen=stream_maxlen or None)
    return builder


def setup_redis_logging(
    level: Optional[Union[int, str]] = None,
    logger_name: Optional[str] = None,
    threaded: bool = True,
    console: bool = True,
    builder: Optional[RedisLoggerConfigBuilder] = None,
) -> logging.Handler:
    """
    Initialize Redis logging from the environment.

    Call this once at application startup. Existing handlers on the target
    logger are removed to avoid duplicates. Without logger_name the Redis
    handler becomes the global logger through registry.install().

    Args:
        level: Overrides REDIS_LOGGER_LEVEL
        logger_name: Logger to configure, the root logger by default
        threaded: Run the RedisLogger behind a ThreadedProxyHandler
        console: Also attach a human-readable console handler
        builder: Use this builder instead of builder_from_env()

    Returns:
        The handler attached for Redis (the proxy when threaded)

    Raises:
        SetLoggerError: logger_name is None and a global logger is installed
    """
    if logger_name is None and installed() is not None:
        raise SetLoggerError(
            f"A global logger is already installed: {installed()!r}"
        )

    builder = builder or builder_from_env()
    if level is not None:
        builder.level(level)
    config = builder.build()
    level = config.level

    target = logging.getLogger(logger_name)
    target.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for existing in list(target.handlers):
        target.removeHandler(existing)
        existing.close()

    # 1. Redis handler, off the calling thread when threaded
    handler: logging.Handler = RedisLogger(config)
    if threaded:
        handler = ThreadedProxyHandler(handler)
    if logger_name is None:
        install(handler, level, logger=target)
    else:
        target.addHandler(handler)

    # 2. Console handler for development (human-readable)
    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATEFMT))
        console_handler.setLevel(level)
        target.addHandler(console_handler)

    target.info("Redis logging initialized (%s)", logging.getLevelName(level))
    return handler
