from __future__ import annotations

from collections.abc import Callable, Coroutine
from functools import wraps
from typing import Any, TypeVar

T = TypeVar("T")


def status_tuple(
    fn: Callable[..., Coroutine[Any, Any, T]],
) -> Callable[..., Coroutine[Any, Any, tuple[bool, T | str]]]:
    """Return ``(True, result)`` from an async adapter method, or ``(False, error_str)``.

    The wrapped method raises on failure; the exception is logged through
    ``self.logger`` and its text becomes the second element.
    """

    @wraps(fn)
    async def wrapper(self: Any, *args: Any, **kwargs: Any) -> tuple[bool, T | str]:
        try:
            return (True, await fn(self, *args, **kwargs))
        except Exception as exc:
            self.logger.error(f"{fn.__name__} failed: {exc}")
            return (False, str(exc))

    return wrapper  # type: ignore[return-value]
