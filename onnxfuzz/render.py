"""Text rendering of tensor contents for diffing and crash triage.

Every labeled sequence renders as ``name = [v0, v1, ...]`` on one line.
The same renderer feeds both the operator console and the structured test
log; they differ only in the :class:`TextSink` they write to.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable, Iterable, Optional, Protocol, TextIO

import click
import numpy as np

from .errors import UnsupportedTypeError
from .types import ElementType

TEST_LOG_NAME = "onnxfuzz.testlog"

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


class TextSink(Protocol):
    def write(self, text: str) -> None: ...


class StreamSink:
    """Console-style sink writing through ``click.echo``."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream

    def write(self, text: str) -> None:
        click.echo(text, nl=False, file=self.stream if self.stream is not None else sys.stdout)


class LogSink:
    """Structured test-log sink: one log record per rendered line."""

    def __init__(
        self, logger: Optional[logging.Logger] = None, level: int = logging.INFO
    ) -> None:
        self.logger = logger or logging.getLogger(TEST_LOG_NAME)
        self.level = level

    def write(self, text: str) -> None:
        for line in text.splitlines():
            if line:
                self.logger.log(self.level, line)


def setup_test_log(
    log_file: Optional[str] = None, level: int = logging.INFO
) -> logging.Logger:
    """Attach console and optional file handlers to the test log.

    Safe to call repeatedly: handlers are only added once.
    """
    logger = logging.getLogger(TEST_LOG_NAME)
    logger.setLevel(level)
    logger.propagate = False

    if not logger.handlers:
        formatter = logging.Formatter(_LOG_FORMAT)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


# ---------------------------------------------------------------------------
# Element formatting
# ---------------------------------------------------------------------------


def _format_float(value: Any) -> str:
    # numpy scalars print the shortest repr for their own precision
    return str(value)


def _format_int(value: Any) -> str:
    return str(int(value))


def _format_bool(value: Any) -> str:
    return "true" if bool(value) else "false"


def _format_string(value: Any) -> str:
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return repr(str(value))


_FORMATTERS: dict[ElementType, Callable[[Any], str]] = {
    ElementType.FLOAT: _format_float,
    ElementType.FLOAT16: _format_float,
    ElementType.DOUBLE: _format_float,
    ElementType.INT8: _format_int,
    ElementType.INT16: _format_int,
    ElementType.INT32: _format_int,
    ElementType.INT64: _format_int,
    ElementType.UINT8: _format_int,
    ElementType.UINT16: _format_int,
    ElementType.UINT32: _format_int,
    ElementType.UINT64: _format_int,
    ElementType.BOOL: _format_bool,
    ElementType.STRING: _format_string,
}


class OutputRenderer:
    """Formats labeled tensor contents, dispatching on element type."""

    def __init__(
        self, formatters: Optional[dict[ElementType, Callable[[Any], str]]] = None
    ) -> None:
        self._formatters = dict(_FORMATTERS)
        if formatters:
            self._formatters.update(formatters)

    def format_values(self, element_type: ElementType, values: Iterable[Any]) -> str:
        formatter = self._formatters.get(element_type)
        if formatter is None:
            raise UnsupportedTypeError(
                f"No renderer for element type {element_type.type_string}"
            )
        return "[" + ", ".join(formatter(v) for v in values) + "]"

    def format_sequence(
        self, name: str, element_type: ElementType, values: Iterable[Any]
    ) -> str:
        return f"{name} = {self.format_values(element_type, values)}\n"

    def format_array(self, name: str, array: Any) -> str:
        """Render a numpy array flattened, typed by its dtype."""
        arr = np.asarray(array)
        return self.format_sequence(name, ElementType.from_dtype(arr.dtype), arr.reshape(-1))

    def write_sequence(
        self,
        sink: TextSink,
        name: str,
        element_type: ElementType,
        values: Iterable[Any],
    ) -> None:
        sink.write(self.format_sequence(name, element_type, values))
