"""Error reporting for the CSS sanitizer.

Sanitization never raises for hostile or malformed CSS: anything unsafe is
dropped, and the drop is reported as a `ParseError` to the active error sink
(see `collect_errors`). Only caller misuse raises `CssSanitizerError`.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


class CssSanitizerError(ValueError):
    """Raised when the sanitizer is called with an invalid configuration."""


class ParseError:
    """A dropped or rewritten construct, with optional location information."""

    __slots__ = ("code", "column", "line", "message")

    def __init__(self, code, line=None, column=None, message=None):
        self.code = code
        self.line = line
        self.column = column
        self.message = message or code

    def __repr__(self):
        if self.line is not None and self.column is not None:
            return f"ParseError({self.code!r}, line={self.line}, column={self.column})"
        return f"ParseError({self.code!r})"

    def __str__(self):
        if self.line is not None and self.column is not None:
            if self.message != self.code:
                return f"({self.line},{self.column}): {self.code} - {self.message}"
            return f"({self.line},{self.column}): {self.code}"
        if self.message != self.code:
            return f"{self.code} - {self.message}"
        return self.code

    def __eq__(self, other):
        if not isinstance(other, ParseError):
            return NotImplemented
        return self.code == other.code and self.line == other.line and self.column == other.column

    __hash__ = None  # Unhashable since we define __eq__


_ERROR_SINK: ContextVar[list[ParseError] | None] = ContextVar("justcss_error_sink", default=None)


def emit_error(
    code: str,
    *,
    line: int | None = None,
    column: int | None = None,
    message: str | None = None,
) -> None:
    """Report a dropped construct.

    The error is appended to the sink installed by `collect_errors()`. If no
    sink is active this only logs at debug level.
    """

    logger.debug("%s: %s", code, message if message is not None else code)
    sink = _ERROR_SINK.get()
    if sink is None:
        return
    sink.append(ParseError(str(code), line=line, column=column, message=message))


@contextmanager
def collect_errors() -> Iterator[list[ParseError]]:
    """Collect every `ParseError` emitted inside the `with` block.

        with collect_errors() as errors:
            sanitize_stylesheet(base, css, virtualization)
        for error in errors: ...
    """

    errors: list[ParseError] = []
    token = _ERROR_SINK.set(errors)
    try:
        yield errors
    finally:
        _ERROR_SINK.reset(token)
