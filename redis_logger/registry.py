"""
Process-wide logger registration

install() may be called once. Calling it again while a handler is installed
raises SetLoggerError instead of silently replacing the first handler.
"""
import logging
import threading
from typing import Optional, Union

from .errors import SetLoggerError

_lock = threading.Lock()
_installed: Optional[logging.Handler] = None
_target: Optional[logging.Logger] = None


def install(
    handler: logging.Handler,
    level: Optional[Union[int, str]] = None,
    logger: Optional[logging.Logger] = None,
) -> logging.Handler:
    """
    Attach handler to the root logger (or to logger) as the global sink.

    Args:
        handler: Handler to install
        level: Level for the logger, defaults to the handler's own level
        logger: Logger to attach to instead of the root logger

    Raises:
        SetLoggerError: a handler is already installed
    """
    global _installed, _target

    with _lock:
        if _installed is not None:
            raise SetLoggerError(
                f"A global logger is already installed: {_installed!r}"
            )

        target = logger or logging.getLogger()
        target.setLevel(handler.level if level is None else level)
        target.addHandler(handler)

        _installed = handler
        _target = target

    return handler


def installed() -> Optional[logging.Handler]:
    """The installed handler, if any"""
    return _installed


def uninstall() -> Optional[logging.Handler]:
    """Detach and close the installed handler. Returns it, or None."""
    global _installed, _target

    with _lock:
        handler, target = _installed, _target
        _installed = None
        _target = None

    if handler is not None:
        target.removeHandler(handler)
        handler.close()
    return handler
