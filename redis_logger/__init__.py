"""
Redis Logger

logging handlers that publish records to Redis pub/sub channels and/or
append them to Redis streams, plus a threaded proxy that takes the network
round-trips off the logging call path.
"""
from .config import (
    PubSubTarget,
    RedisLoggerConfig,
    RedisLoggerConfigBuilder,
    StreamTarget,
)
from .encoders import (
    CallablePubSubEncoder,
    CallableStreamEncoder,
    DefaultPubSubEncoder,
    DefaultStreamEncoder,
    FormatterPubSubEncoder,
    PubSubEncoder,
    StreamEncoder,
)
from .errors import (
    ConfigError,
    DispatchError,
    QueueClosedError,
    QueueFullError,
    RedisLoggerError,
    SetLoggerError,
)
from .handler import RedisLogger
from .registry import install, installed, uninstall
from .settings import builder_from_env, setup_redis_logging
from .threaded import ProxyState, ThreadedProxyHandler

__all__ = [
    "RedisLogger",
    "RedisLoggerConfig",
    "RedisLoggerConfigBuilder",
    "PubSubTarget",
    "StreamTarget",
    "PubSubEncoder",
    "StreamEncoder",
    "DefaultPubSubEncoder",
    "DefaultStreamEncoder",
    "FormatterPubSubEncoder",
    "CallablePubSubEncoder",
    "CallableStreamEncoder",
    "ThreadedProxyHandler",
    "ProxyState",
    "install",
    "installed",
    "uninstall",
    "builder_from_env",
    "setup_redis_logging",
    "RedisLoggerError",
    "ConfigError",
    "DispatchError",
    "QueueClosedError",
    "QueueFullError",
    "SetLoggerError",
]
