"""Shared pytest fixtures."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

import pytest

from tabstash.actions import ActionContext
from tabstash.browser import MemoryBrowser
from tabstash.events import EventBus
from tabstash.ids import GroupIdAllocator
from tabstash.services.store import DEFAULT_STORAGE_KEY, GroupStore, MemoryBackend

FIXED_NOW = datetime(2024, 5, 17, 9, 5)


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def store(backend: MemoryBackend) -> GroupStore:
    return GroupStore(backend)


@pytest.fixture
def browser() -> MemoryBrowser:
    return MemoryBrowser()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def make_context(store: GroupStore, browser: MemoryBrowser) -> Callable[..., ActionContext]:
    """Build an action context around the shared store and browser."""

    def _factory(**overrides: Any) -> ActionContext:
        params: dict[str, Any] = {
            "store": store,
            "browser": browser,
            "ids": GroupIdAllocator(seed=100),
            "clock": lambda: FIXED_NOW,
        }
        params.update(overrides)
        return ActionContext(**params)

    return _factory


@pytest.fixture
def seed_groups(backend: MemoryBackend) -> Callable[[list[dict[str, Any]]], None]:
    """Write raw group records straight into the backend slot."""

    def _seed(records: list[dict[str, Any]]) -> None:
        backend._data[DEFAULT_STORAGE_KEY] = records

    return _seed
