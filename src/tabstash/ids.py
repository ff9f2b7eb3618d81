"""Identifier allocation for newly saved groups."""

from __future__ import annotations

import time
from typing import Callable, Iterable

from .models import TabGroup

__all__ = ["GroupIdAllocator"]


def _epoch_millis() -> int:
    return time.time_ns() // 1_000_000


class GroupIdAllocator:
    """Hands out strictly increasing group ids.

    The counter starts from a millisecond clock reading so that new ids sort
    after ids written by older versions, which used the save time in
    milliseconds. Each call returns one more than the larger of the last id
    issued and the largest id already in the collection, so two saves issued
    back to back never share an id even when the clock has not advanced.
    """

    def __init__(self, *, seed: int | None = None, clock: Callable[[], int] = _epoch_millis) -> None:
        self._last = seed if seed is not None else clock()

    @property
    def last_issued(self) -> int:
        return self._last

    def next_id(self, existing: Iterable[TabGroup] = ()) -> int:
        highest = max((group.id for group in existing), default=0)
        self._last = max(self._last, highest) + 1
        return self._last
