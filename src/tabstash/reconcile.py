"""Pure helpers turning a raw stored collection into its valid form."""

from __future__ import annotations

import logging
from typing import Iterable

from .models import GroupSummary, TabGroup
from .validation import is_restorable_url

__all__ = ["normalize", "summarize"]

LOGGER = logging.getLogger(__name__)


def normalize(groups: Iterable[TabGroup]) -> list[TabGroup]:
    """Return ``groups`` with invalid urls removed and empty groups dropped.

    Every url is filtered through :func:`is_restorable_url`. A group left without
    urls is removed from the result, as is any group repeating an id seen
    earlier in the sequence. The input objects are never mutated, and running
    the function on its own output returns an equal list.
    """

    normalized: list[TabGroup] = []
    seen_ids: set[int] = set()
    for group in groups:
        urls = [url for url in group.urls if is_restorable_url(url)]
        if not urls:
            LOGGER.debug("Dropping group %s with no restorable urls", group.id)
            continue
        if group.id in seen_ids:
            LOGGER.debug("Dropping group with duplicate id %s", group.id)
            continue
        seen_ids.add(group.id)
        normalized.append(TabGroup(id=group.id, name=group.name, urls=urls))
    return normalized


def summarize(groups: Iterable[TabGroup]) -> GroupSummary:
    """Return the number of groups and total number of urls."""

    group_count = 0
    tab_count = 0
    for group in groups:
        group_count += 1
        tab_count += len(group.urls)
    return GroupSummary(group_count=group_count, tab_count=tab_count)
