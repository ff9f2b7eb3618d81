"""Persistence for the tab group collection.

The collection lives under a single key of an asynchronous key-value backend.
There is no partial update and no compare-and-swap: :meth:`GroupStore.write`
replaces the whole slot, so when two read-modify-write cycles overlap the
later write wins and the earlier mutation is lost.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

from ..errors import StoreError
from ..models import TabGroup

__all__ = [
    "DEFAULT_STORAGE_KEY",
    "KeyValueBackend",
    "MemoryBackend",
    "JsonFileBackend",
    "GroupStore",
]

LOGGER = logging.getLogger(__name__)
DEFAULT_STORAGE_KEY = "tabGroups"


@runtime_checkable
class KeyValueBackend(Protocol):
    """Minimal asynchronous key-value interface the store needs."""

    async def get(self, key: str) -> Any | None:
        """Return the value stored under ``key`` or ``None`` when absent."""

    async def set(self, key: str, value: Any) -> None:
        """Replace the value stored under ``key``."""


class MemoryBackend:
    """In-process backend holding JSON-compatible values.

    Values are deep-copied in both directions so callers never share mutable
    state with the slot. ``read_delay`` delays the result of every :meth:`get`
    by the given number of seconds, which widens the window between a read and
    the following write.
    """

    def __init__(self, initial: Mapping[str, Any] | None = None, *, read_delay: float = 0.0) -> None:
        self._data: dict[str, Any] = copy.deepcopy(dict(initial or {}))
        self.read_delay = read_delay
        self.write_count = 0

    async def get(self, key: str) -> Any | None:
        # the value is captured when the read is issued, not when it returns
        value = copy.deepcopy(self._data.get(key))
        await asyncio.sleep(self.read_delay)
        return value

    async def set(self, key: str, value: Any) -> None:
        await asyncio.sleep(0)
        self._data[key] = copy.deepcopy(value)
        self.write_count += 1

    def snapshot(self) -> dict[str, Any]:
        """Return a copy of everything stored, for inspection."""

        return copy.deepcopy(self._data)


class JsonFileBackend:
    """Backend persisting every key into one JSON object on disk.

    File IO runs in a worker thread. Writes go through a temporary file that
    replaces the target, so readers never observe a half-written document.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    async def get(self, key: str) -> Any | None:
        payload = await asyncio.to_thread(self._read_payload)
        return payload.get(key)

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write_key, key, value)

    def _read_payload(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            data = json.loads(text)
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            LOGGER.warning("Store file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(data, Mapping):
            LOGGER.warning("Store file %s does not contain a JSON object", self._path)
            return {}
        return dict(data)

    def _write_key(self, key: str, value: Any) -> None:
        payload = self._read_payload()
        payload[key] = value
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        descriptor, tmp_name = tempfile.mkstemp(
            dir=str(self._path.parent), prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(descriptor, "w", encoding="utf-8") as handle:
                handle.write(body)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class GroupStore:
    """Full-collection get/set over one slot of a :class:`KeyValueBackend`."""

    def __init__(self, backend: KeyValueBackend, *, key: str = DEFAULT_STORAGE_KEY) -> None:
        self._backend = backend
        self._key = key

    @property
    def backend(self) -> KeyValueBackend:
        return self._backend

    @property
    def key(self) -> str:
        return self._key

    async def read(self) -> list[TabGroup]:
        """Return the stored groups, or an empty list if the slot is absent or malformed.

        Records that cannot be coerced into a :class:`TabGroup` are skipped. The
        result is not normalized; urls are returned exactly as stored.
        """

        try:
            payload = await self._backend.get(self._key)
        except OSError as exc:
            raise StoreError(f"Unable to read {self._key!r}: {exc}") from exc
        if payload is None:
            return []
        if not isinstance(payload, list):
            LOGGER.warning(
                "Stored value for %r is %s, not a list; treating as empty",
                self._key,
                type(payload).__name__,
            )
            return []
        groups = [group for group in map(TabGroup.from_payload, payload) if group is not None]
        LOGGER.debug("Read %d group(s) from %r", len(groups), self._key)
        return groups

    async def write(self, groups: Iterable[TabGroup]) -> None:
        """Replace the stored collection with ``groups``."""

        payload = [group.to_payload() for group in groups]
        try:
            await self._backend.set(self._key, payload)
        except OSError as exc:
            raise StoreError(f"Unable to write {self._key!r}: {exc}") from exc
        LOGGER.debug("Wrote %d group(s) to %r", len(payload), self._key)
