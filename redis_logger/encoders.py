"""
Encoders turning log records into Redis payloads

- PubSubEncoder: record -> bytes, sent with PUBLISH
- StreamEncoder: record -> [(field, value), ...], sent with XADD

Encoders are shared between destinations and threads, so implementations
must not keep mutable state.
"""
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple, Union

FieldValue = Union[str, bytes]
StreamFields = List[Tuple[str, FieldValue]]

# Placeholders for record attributes that may be missing
NULL_FIELD = "null"
NULL_LINE = "0"

_exception_formatter = logging.Formatter()


class PubSubEncoder(ABC):
    """Encodes a record into the message published to a pub/sub channel"""

    @abstractmethod
    def encode(self, record: logging.LogRecord) -> bytes:
        ...


class StreamEncoder(ABC):
    """Encodes a record into the field/value pairs of a stream entry"""

    @abstractmethod
    def encode(self, record: logging.LogRecord) -> StreamFields:
        ...


def record_timestamp(record: logging.LogRecord) -> str:
    """ISO-8601 local time of the record"""
    dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
    return dt.astimezone().isoformat()


def record_fields(record: logging.LogRecord) -> dict:
    """
    Field set shared by the default encoders.

    Keys are ordered level, message, target, module_path, file, line,
    timestamp; "exception" is added only when the record carries exc_info.
    """
    fields = {
        "level": record.levelname,
        "message": record.getMessage(),
        "target": record.name,
        "module_path": getattr(record, "module", None),
        "file": getattr(record, "pathname", None),
        "line": getattr(record, "lineno", None),
        "timestamp": record_timestamp(record),
    }

    if record.exc_info:
        fields["exception"] = _exception_formatter.formatException(record.exc_info)
    elif record.exc_text:
        fields["exception"] = record.exc_text

    return fields


class DefaultPubSubEncoder(PubSubEncoder):
    """Encodes the record as a UTF-8 JSON object"""

    def encode(self, record: logging.LogRecord) -> bytes:
        return json.dumps(record_fields(record), ensure_ascii=False).encode("utf-8")


class DefaultStreamEncoder(StreamEncoder):
    """Encodes the record as string fields, with placeholders for missing values"""

    def encode(self, record: logging.LogRecord) -> StreamFields:
        fields = record_fields(record)
        encoded = []
        for name, value in fields.items():
            if value is None:
                value = NULL_LINE if name == "line" else NULL_FIELD
            encoded.append((name, str(value)))
        return encoded


class FormatterPubSubEncoder(PubSubEncoder):
    """
    Publishes whatever a logging.Formatter produces.

    Lets formatters written for other handlers drive a channel:

        encoder = FormatterPubSubEncoder(logging.Formatter("%(levelname)s %(message)s"))
    """

    def __init__(self, formatter: Optional[logging.Formatter] = None):
        self.formatter = formatter or logging.Formatter()

    def encode(self, record: logging.LogRecord) -> bytes:
        return self.formatter.format(record).encode("utf-8")


class CallablePubSubEncoder(PubSubEncoder):
    """Wraps a plain function as a pub/sub encoder"""

    def __init__(self, func: Callable[[logging.LogRecord], Union[str, bytes]]):
        self.func = func

    def encode(self, record: logging.LogRecord) -> bytes:
        payload = self.func(record)
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        return payload


class CallableStreamEncoder(StreamEncoder):
    """Wraps a plain function as a stream encoder; a returned dict is kept in order"""

    def __init__(self, func: Callable[[logging.LogRecord], Union[dict, StreamFields]]):
        self.func = func

    def encode(self, record: logging.LogRecord) -> StreamFields:
        fields = self.func(record)
        if isinstance(fields, dict):
            fields = list(fields.items())
        return list(fields)
