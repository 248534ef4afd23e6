"""
Outcome handling for fan-out calls.

``settle_all`` waits for every awaitable regardless of failures and wraps
each outcome in a ``Settlement``; ``reduce_settlement`` then turns one
outcome into a plain value or an inline ``{"error": ...}`` placeholder.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Iterable, List, Optional, Sequence, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")

DEFAULT_ERROR_MESSAGE = "Information unavailable"
META_FIELD = "meta"

_PATH_TOKEN = re.compile(r"[^.\[\]]+")


@dataclass(frozen=True)
class Settlement(Generic[T]):
    """Fulfilled value or rejection reason of one awaited operation."""

    value: Optional[T] = None
    reason: Optional[BaseException] = None

    @property
    def fulfilled(self) -> bool:
        return self.reason is None

    @classmethod
    def of(cls, outcome: Union[T, BaseException]) -> "Settlement[T]":
        if isinstance(outcome, BaseException):
            return cls(reason=outcome)
        return cls(value=outcome)

    def map_ok(self, fn: Callable[[T], U]) -> "Settlement[U]":
        if not self.fulfilled:
            return Settlement(reason=self.reason)
        return Settlement(value=fn(self.value))  # type: ignore[arg-type]

    def map_err(self, fn: Callable[[BaseException], BaseException]) -> "Settlement[T]":
        if self.fulfilled:
            return self
        return Settlement(reason=fn(self.reason))  # type: ignore[arg-type]

    def unwrap_or_else(self, fn: Callable[[BaseException], U]) -> Union[T, U]:
        """Return the value, or ``fn(reason)`` when the operation failed."""
        if self.fulfilled:
            return self.value  # type: ignore[return-value]
        return fn(self.reason)  # type: ignore[arg-type]


async def settle_all(awaitables: Iterable[Awaitable[T]]) -> List[Settlement[T]]:
    """Await everything concurrently; one rejection never cancels the others."""
    outcomes = await asyncio.gather(*awaitables, return_exceptions=True)
    return [Settlement.of(outcome) for outcome in outcomes]


def get_path(source: Any, path: Union[str, Sequence[Union[str, int]]]) -> Any:
    """Read a nested value such as ``"battery.range"`` or ``"items[0].id"``.

    Missing keys, out-of-range indexes and non-container intermediates all
    yield ``None``.
    """
    keys = _PATH_TOKEN.findall(path) if isinstance(path, str) else list(path)
    current = source
    for key in keys:
        if isinstance(current, dict):
            if key in current:
                current = current[key]
            elif _is_int(key):
                current = current.get(int(key))
            else:
                return None
        elif isinstance(current, (list, tuple)) and _is_int(key):
            index = int(key)
            current = current[index] if -len(current) <= index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def _is_int(key: Union[str, int]) -> bool:
    if isinstance(key, int):
        return True
    return key.lstrip("-").isdigit()


def reduce_settlement(
    settlement: Settlement[Any],
    path: Optional[Union[str, Sequence[Union[str, int]]]] = None,
    error_message: str = DEFAULT_ERROR_MESSAGE,
    transform: Optional[Callable[[Any], Any]] = None,
) -> Any:
    """Extract the useful part of a settlement, or an error placeholder when it failed."""

    def extract(result: Any) -> Any:
        if path:
            value = get_path(result, path)
        elif isinstance(result, dict):
            value = {key: item for key, item in result.items() if key != META_FIELD}
        else:
            value = result
        return transform(value) if transform else value

    return settlement.map_ok(extract).unwrap_or_else(lambda _reason: {"error": error_message})


__all__ = [
    "DEFAULT_ERROR_MESSAGE",
    "Settlement",
    "get_path",
    "reduce_settlement",
    "settle_all",
]
