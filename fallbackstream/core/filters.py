# fallbackstream/core/filters.py
from __future__ import annotations

import re
from typing import Any, Callable

from .exceptions import InvalidErrorFilter

ErrorFilter = Callable[[BaseException], bool]


def always_true(error: BaseException) -> bool:
    return True


def error_text(error: BaseException) -> str:
    """
    Textual form of an error used for pattern matching.

    "TypeError: boom" for an error with a message, "TypeError" otherwise.
    """
    name = type(error).__name__
    message = str(error)
    return f"{name}: {message}" if message else name


def pattern_filter(pattern: re.Pattern[str]) -> ErrorFilter:
    """Decision function: does the error's text contain a match for `pattern`."""

    def _matches(error: BaseException) -> bool:
        return pattern.search(error_text(error)) is not None

    return _matches


def build_error_filter(spec: Any) -> ErrorFilter:
    """
    Normalize a filter specification into a single ``(error) -> bool`` function.

    - None      -> every error triggers fallback
    - callable  -> used as is
    - re.Pattern -> search on the error text
    """
    if spec is None:
        return always_true
    if isinstance(spec, re.Pattern):
        return pattern_filter(spec)
    if callable(spec):
        return spec
    raise InvalidErrorFilter(
        "Error filter must be a function or a compiled regular expression, "
        f"but it was {type(spec).__name__}."
    )
