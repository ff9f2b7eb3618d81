"""Tab primitives consumed by the action handlers.

:class:`TabBrowser` is the contract; :class:`MemoryBrowser` is an in-process
implementation and :class:`DevToolsBrowser` drives a Chromium-based browser
started with ``--remote-debugging-port``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, runtime_checkable
from urllib.parse import quote

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .errors import BrowserError

__all__ = ["BrowserTab", "TabBrowser", "MemoryBrowser", "DevToolsBrowser"]

LOGGER = logging.getLogger(__name__)
_RETRYABLE_ERRORS = (httpx.ConnectError, httpx.TimeoutException, httpx.RemoteProtocolError)
# characters of the target url sent as-is in the /json/new query; "#" and "%" are escaped
_NEW_TAB_SAFE = ":/?&=@,;"


@dataclass(slots=True, frozen=True)
class BrowserTab:
    """A live browser tab as reported by the browser."""

    id: str
    url: str | None
    window_id: int | None = None
    active: bool = False


@runtime_checkable
class TabBrowser(Protocol):
    """Asynchronous tab primitives."""

    async def window_tabs(self, window_id: int | None = None) -> list[BrowserTab]:
        """Return tabs in ``window_id``, or in the current window when ``None``."""

    async def all_tabs(self) -> list[BrowserTab]:
        """Return tabs across every window."""

    async def active_tab(self, window_id: int | None = None) -> BrowserTab | None:
        """Return the active tab of ``window_id`` (or the current window)."""

    async def create_tab(self, url: str, *, active: bool = False) -> bool:
        """Open ``url`` in a new tab; ``True`` when the browser accepted it."""


@dataclass(slots=True)
class MemoryBrowser:
    """Browser double keeping tabs in memory.

    ``failing_urls`` makes :meth:`create_tab` report failure for those urls and
    ``create_delay`` suspends each creation attempt for the given number of
    seconds. Every attempt is recorded in ``created`` in call order.
    """

    tabs: list[BrowserTab] = field(default_factory=list)
    current_window: int = 1
    failing_urls: set[str] = field(default_factory=set)
    create_delay: float = 0.0
    created: list[str] = field(default_factory=list)
    _next_tab: int = field(default=1, init=False, repr=False)

    @classmethod
    def with_windows(cls, windows: dict[int, Iterable[str]], *, current_window: int = 1) -> MemoryBrowser:
        """Build a browser whose windows hold the given urls; first tab of each is active."""

        browser = cls(current_window=current_window)
        for window_id, urls in windows.items():
            for index, url in enumerate(urls):
                browser.add_tab(url, window_id=window_id, active=index == 0)
        return browser

    def add_tab(self, url: str | None, *, window_id: int | None = None, active: bool = False) -> BrowserTab:
        target_window = self.current_window if window_id is None else window_id
        if active:
            self.tabs = [
                BrowserTab(tab.id, tab.url, tab.window_id, False) if tab.window_id == target_window else tab
                for tab in self.tabs
            ]
        tab = BrowserTab(id=str(self._next_tab), url=url, window_id=target_window, active=active)
        self._next_tab += 1
        self.tabs.append(tab)
        return tab

    async def window_tabs(self, window_id: int | None = None) -> list[BrowserTab]:
        await asyncio.sleep(0)
        target_window = self.current_window if window_id is None else window_id
        return [tab for tab in self.tabs if tab.window_id == target_window]

    async def all_tabs(self) -> list[BrowserTab]:
        await asyncio.sleep(0)
        return list(self.tabs)

    async def active_tab(self, window_id: int | None = None) -> BrowserTab | None:
        for tab in await self.window_tabs(window_id):
            if tab.active:
                return tab
        return None

    async def create_tab(self, url: str, *, active: bool = False) -> bool:
        self.created.append(url)
        await asyncio.sleep(self.create_delay)
        if url in self.failing_urls:
            return False
        self.add_tab(url, active=active)
        return True


class DevToolsBrowser:
    """Tab primitives backed by the Chromium DevTools HTTP endpoints.

    ``GET /json/list`` enumerates targets and ``PUT /json/new?<url>`` opens a
    tab. The listing carries no window information, so every page target is
    treated as belonging to the current window and the first page target
    (the most recently focused one) as the active tab.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:9222",
        *,
        timeout: float = 5.0,
        max_retries: int = 3,
        retry_min_seconds: float = 0.2,
        retry_max_seconds: float = 2.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._max_retries = max_retries
        self._retry_min_seconds = retry_min_seconds
        self._retry_max_seconds = retry_max_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self._base_url, timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> DevToolsBrowser:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def window_tabs(self, window_id: int | None = None) -> list[BrowserTab]:
        del window_id
        return await self.all_tabs()

    async def all_tabs(self) -> list[BrowserTab]:
        try:
            response = await self._request("GET", "/json/list")
            targets = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise BrowserError(f"Unable to list tabs from {self._base_url}: {exc}") from exc
        if not isinstance(targets, list):
            raise BrowserError(f"Unexpected tab listing from {self._base_url}")
        tabs: list[BrowserTab] = []
        for target in targets:
            if not isinstance(target, dict) or target.get("type") != "page":
                continue
            url = target.get("url")
            tabs.append(
                BrowserTab(
                    id=str(target.get("id", "")),
                    url=url if isinstance(url, str) else None,
                    window_id=None,
                    active=not tabs,
                )
            )
        LOGGER.debug("DevTools reported %d page target(s)", len(tabs))
        return tabs

    async def active_tab(self, window_id: int | None = None) -> BrowserTab | None:
        tabs = await self.window_tabs(window_id)
        return tabs[0] if tabs else None

    async def create_tab(self, url: str, *, active: bool = False) -> bool:
        # DevTools always opens new targets in the foreground
        del active
        try:
            await self._request("PUT", f"/json/new?{quote(url, safe=_NEW_TAB_SAFE)}")
        except httpx.HTTPError as exc:
            LOGGER.debug("DevTools failed to open %s: %s", url, exc)
            return False
        return True

    async def _request(self, method: str, path: str) -> httpx.Response:
        async for attempt in self._retrying():
            with attempt:
                response = await self._client.request(method, path)
                response.raise_for_status()
                return response
        raise BrowserError(f"{method} {path} was not attempted")  # pragma: no cover - tenacity always attempts

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._max_retries)),
            wait=wait_exponential(
                multiplier=self._retry_min_seconds,
                max=self._retry_max_seconds,
            ),
            retry=retry_if_exception_type(_RETRYABLE_ERRORS),
        )
