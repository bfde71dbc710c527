"""Filter registry used to customise defaults and source lists.

A filter is a named chain of callbacks. Each callback receives the current
value (plus any extra arguments) and returns the value passed to the next
one. Callbacks run in ascending priority, then in registration order.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

DEFAULT_PRIORITY = 10


@dataclass(order=True)
class _Filter:
    priority: int
    sequence: int
    callback: Callable[..., Any] = field(compare=False)


class FilterRegistry:
    """Registry of named value filters."""

    def __init__(self) -> None:
        self._filters: dict[str, list[_Filter]] = {}
        self._sequence = 0

    def add_filter(
        self,
        name: str,
        callback: Callable[..., Any],
        priority: int = DEFAULT_PRIORITY,
    ) -> None:
        """Register ``callback`` on the filter ``name``."""
        self._sequence += 1
        chain = self._filters.setdefault(name, [])
        chain.append(_Filter(priority, self._sequence, callback))
        chain.sort()

    def remove_filter(self, name: str, callback: Callable[..., Any]) -> bool:
        """Unregister ``callback``; returns whether it was registered."""
        chain = self._filters.get(name, [])
        remaining = [entry for entry in chain if entry.callback != callback]
        if len(remaining) == len(chain):
            return False
        self._filters[name] = remaining
        return True

    def has_filter(self, name: str) -> bool:
        return bool(self._filters.get(name))

    def apply_filters(self, name: str, value: Any, *args: Any) -> Any:
        """Run ``value`` through every callback registered on ``name``."""
        for entry in self._filters.get(name, []):
            value = entry.callback(value, *args)
        return value
