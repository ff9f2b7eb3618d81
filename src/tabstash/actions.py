"""User-triggered operations on the tab group collection.

Every handler runs the same linear sequence: read the stored collection,
normalize it, compute the next collection in memory, write it back whole and
report an :class:`~tabstash.models.ActionStatus`. Handlers keep nothing
between invocations and never lock the store, so two handlers whose
read-to-write windows overlap can lose one of the two mutations.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from .browser import TabBrowser
from .errors import ExternalFailure, ValidationError
from .events import EventBus, GroupsChanged, StatusReported
from .ids import GroupIdAllocator
from .models import ActionStatus, StatusLevel, TabGroup
from .reconcile import normalize, summarize
from .services.store import GroupStore
from .validation import is_restorable_url

__all__ = [
    "DEFAULT_OPEN_GRACE_PERIOD",
    "ActionContext",
    "action_handler",
    "load_groups",
    "drain_pending",
    "save_current",
    "add_current_to_group",
    "rename_group",
    "open_group",
    "remove_url_from_group",
    "delete_group",
]

LOGGER = logging.getLogger(__name__)
DEFAULT_OPEN_GRACE_PERIOD = 0.12

F = TypeVar("F", bound=Callable[..., Awaitable[ActionStatus]])


@dataclass(slots=True)
class ActionContext:
    """Collaborators handed to every action handler.

    Attributes:
        store: Persisted collection.
        browser: Tab primitives.
        window_id: Window the action was triggered from; ``None`` means the
            browser's current window.
        ids: Allocator for ids of newly saved groups.
        clock: Source of the time shown in generated group names.
        open_grace_period: Seconds ``open_group`` waits for tab creation
            attempts to settle before reporting.
        events: Optional bus notified about writes and outcomes.
        pending: Tab creation attempts still running after the grace period
            of an earlier ``open_group``; see :func:`drain_pending`.
    """

    store: GroupStore
    browser: TabBrowser
    window_id: int | None = None
    ids: GroupIdAllocator = field(default_factory=GroupIdAllocator)
    clock: Callable[[], datetime] = datetime.now
    open_grace_period: float = DEFAULT_OPEN_GRACE_PERIOD
    events: EventBus | None = None
    pending: set[asyncio.Task[bool]] = field(default_factory=set, repr=False)


def action_handler(failure_message: str) -> Callable[[F], F]:
    """Convert every failure raised by the wrapped handler into a status.

    Validation errors keep their own message and level. External failures and
    unexpected exceptions are logged and reported as ``failure_message``. The
    outcome is published as :class:`StatusReported` when the context has an
    event bus.
    """

    def decorator(func: F) -> F:
        action_name = func.__name__

        @functools.wraps(func)
        async def wrapper(context: ActionContext, *args: Any, **kwargs: Any) -> ActionStatus:
            try:
                status = await func(context, *args, **kwargs)
            except ValidationError as exc:
                LOGGER.debug("%s rejected: %s", action_name, exc.message)
                status = ActionStatus(exc.level, exc.message)
            except ExternalFailure as exc:
                LOGGER.warning("%s failed: %s", action_name, exc)
                status = ActionStatus.error(failure_message)
            except Exception:
                LOGGER.exception("%s failed unexpectedly", action_name)
                status = ActionStatus.error(failure_message)
            if context.events is not None:
                context.events.publish(StatusReported(action=action_name, status=status))
            return status

        return wrapper  # type: ignore[return-value]

    return decorator


async def load_groups(context: ActionContext) -> list[TabGroup]:
    """Return the normalized view of the stored collection."""

    return normalize(await context.store.read())


async def _persist(context: ActionContext, groups: list[TabGroup]) -> None:
    await context.store.write(groups)
    if context.events is not None:
        context.events.publish(GroupsChanged(summary=summarize(groups)))


def _find_group(groups: Iterable[TabGroup], group_id: int) -> TabGroup | None:
    for group in groups:
        if group.id == group_id:
            return group
    return None


def _generated_name(ordinal: int, now: datetime) -> str:
    return f"Group {ordinal} ({now:%H:%M})"


@action_handler("Something went wrong while saving tabs.")
async def save_current(context: ActionContext) -> ActionStatus:
    """Save the restorable tabs of the invoking window as a new group."""

    tabs = await context.browser.window_tabs(context.window_id)
    urls = [tab.url for tab in tabs if is_restorable_url(tab.url)]
    if not urls:
        raise ValidationError("No restorable tabs found in this window.")

    groups = await load_groups(context)
    group = TabGroup(
        id=context.ids.next_id(groups),
        name=_generated_name(len(groups) + 1, context.clock()),
        urls=urls,
    )
    await _persist(context, [*groups, group])
    LOGGER.info("Saved group %s with %d tab(s)", group.id, len(urls))
    return ActionStatus.success("Tab group saved.")


@action_handler("Failed to add current tab.")
async def add_current_to_group(context: ActionContext, group_id: int) -> ActionStatus:
    """Append the active tab's url to the group ``group_id``."""

    tab = await context.browser.active_tab(context.window_id)
    url = tab.url if tab is not None else None
    if not is_restorable_url(url):
        raise ValidationError("Current tab cannot be added to a group.")

    groups = await load_groups(context)
    target = _find_group(groups, group_id)
    if target is None:
        raise ValidationError("Tab group not found.", level=StatusLevel.WARNING)
    # exact string match only; equivalent urls are not folded together
    if url in target.urls:
        raise ValidationError("This tab is already in the group.", level=StatusLevel.WARNING)

    updated = [
        replace(group, urls=[*group.urls, url]) if group.id == group_id else group
        for group in groups
    ]
    await _persist(context, updated)
    return ActionStatus.success("Current tab added to group.")


@action_handler("Failed to rename group.")
async def rename_group(context: ActionContext, group_id: int, name: str | None) -> ActionStatus:
    """Rename ``group_id`` to the trimmed ``name``; an absent id is a silent no-op."""

    trimmed = (name or "").strip()
    if not trimmed:
        raise ValidationError("Group name cannot be empty.")

    groups = await load_groups(context)
    updated = [replace(group, name=trimmed) if group.id == group_id else group for group in groups]
    await _persist(context, updated)
    return ActionStatus.success("Group renamed.")


@action_handler("Unable to open tabs from this group.")
async def open_group(context: ActionContext, group_id: int) -> ActionStatus:
    """Open the urls of ``group_id`` that are not already open in any window.

    Duplicate urls inside the group are opened once. Creation attempts run
    concurrently and independently; a failed attempt does not stop the others.
    The store is read but never written.
    """

    groups = await load_groups(context)
    group = _find_group(groups, group_id)
    if group is None:
        return ActionStatus.error("Tab group not found.")

    open_tabs = await context.browser.all_tabs()
    already_open = {tab.url for tab in open_tabs if tab.url}
    unique_urls = list(dict.fromkeys(group.urls))
    to_open = [url for url in unique_urls if url not in already_open]
    skipped = len(unique_urls) - len(to_open)

    if not to_open:
        return ActionStatus.info("All tabs in this group are already open.")

    opened = await _open_urls(context, to_open)
    LOGGER.debug(
        "Group %s: opened %d of %d tab(s), skipped %d already open",
        group_id,
        opened,
        len(to_open),
        skipped,
    )
    if opened == 0:
        return ActionStatus.error("Unable to open tabs from this group.")

    message = f"Opened {opened} tab{'' if opened == 1 else 's'}."
    if skipped > 0:
        message += f" Skipped {skipped} already open."
    return ActionStatus.success(message)


async def _open_urls(context: ActionContext, urls: list[str]) -> int:
    """Start one creation attempt per url and count those that succeeded in time.

    Attempts that have not settled when the grace period ends are not counted
    and are left running.
    """

    tasks = [asyncio.create_task(_attempt_open(context.browser, url)) for url in urls]
    done, pending = await asyncio.wait(tasks, timeout=context.open_grace_period)
    for task in pending:
        context.pending.add(task)
        task.add_done_callback(context.pending.discard)
    if pending:
        LOGGER.debug("%d tab creation attempt(s) still running after grace period", len(pending))
    return sum(1 for task in done if task.result())


async def _attempt_open(browser: TabBrowser, url: str) -> bool:
    try:
        return bool(await browser.create_tab(url, active=False))
    except Exception as exc:
        LOGGER.debug("Opening %s failed: %s", url, exc)
        return False


async def drain_pending(context: ActionContext) -> int:
    """Wait for creation attempts left running by ``open_group``.

    Returns how many of them opened a tab. Callers that are about to close
    the browser or stop the event loop await this first so late attempts
    finish instead of being cancelled.
    """

    if not context.pending:
        return 0
    tasks = list(context.pending)
    LOGGER.debug("Waiting for %d pending tab creation attempt(s)", len(tasks))
    results = await asyncio.gather(*tasks, return_exceptions=True)
    return sum(1 for result in results if result is True)


@action_handler("Failed to remove tab from group.")
async def remove_url_from_group(context: ActionContext, group_id: int, position: int) -> ActionStatus:
    """Remove the url at ``position`` of ``group_id``, dropping the group if it empties.

    Removal is positional because a group may hold the same url more than
    once. ``position`` indexes the normalized url list. An absent group or an
    out-of-range position leaves the collection as it is; it is still written
    back and reported at info level.
    """

    groups = await load_groups(context)
    updated: list[TabGroup] = []
    removed = False
    for group in groups:
        if group.id == group_id and 0 <= position < len(group.urls):
            removed = True
            urls = group.urls[:position] + group.urls[position + 1 :]
            if not urls:
                LOGGER.debug("Group %s is empty after removal; dropping it", group_id)
                continue
            group = replace(group, urls=urls)
        updated.append(group)
    await _persist(context, updated)
    if not removed:
        return ActionStatus.info("Tab not found in group.")
    return ActionStatus.success("Tab removed from group.")


@action_handler("Failed to delete tab group.")
async def delete_group(context: ActionContext, group_id: int) -> ActionStatus:
    """Remove ``group_id``; the collection is written even when the id is absent."""

    groups = await load_groups(context)
    updated = [group for group in groups if group.id != group_id]
    await _persist(context, updated)
    return ActionStatus.success("Tab group deleted.")
