"""
Error types raised by the Redis logger.

Only ConfigError and SetLoggerError reach the caller. The others are raised
inside handlers and reported through logging.Handler.handleError, because a
logging call has no way to hand an error back.
"""
from typing import Any


class RedisLoggerError(Exception):
    """Base class for all redis_logger errors"""


class ConfigError(RedisLoggerError):
    """Invalid or incomplete logger configuration"""

    CLIENT_NOT_SET = "Redis client not set"
    CHANNEL_NOT_SET = (
        "Channels not set. Set at least one pub/sub channel and/or one stream name."
    )


class DispatchError(RedisLoggerError):
    """Publishing or appending a record to one destination failed"""

    def __init__(self, destination: Any, cause: BaseException):
        self.destination = destination
        self.cause = cause
        super().__init__(f"Error logging to Redis {destination}: {cause}")


class QueueClosedError(RedisLoggerError):
    """A record reached the threaded proxy after shutdown began"""


class QueueFullError(RedisLoggerError):
    """A bounded proxy queue had no room for the record"""


class SetLoggerError(RedisLoggerError):
    """A global logger is already installed"""
