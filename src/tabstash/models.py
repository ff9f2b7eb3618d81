"""Data structures shared by the store, reconciler and action handlers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

__all__ = [
    "DEFAULT_GROUP_NAME",
    "TabGroup",
    "GroupSummary",
    "StatusLevel",
    "ActionStatus",
]

LOGGER = logging.getLogger(__name__)
DEFAULT_GROUP_NAME = "Untitled group"


@dataclass(slots=True)
class TabGroup:
    """A named, persisted list of urls.

    Attributes:
        id: Identifier assigned when the group is saved. Never reassigned.
        name: User-visible label.
        urls: Ordered urls. Duplicates are allowed as stored.
    """

    id: int
    name: str
    urls: list[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Any) -> TabGroup | None:
        """Build a group from a stored record, or ``None`` if it is unusable."""

        if not isinstance(payload, Mapping):
            LOGGER.debug("Skipping stored group of type %s", type(payload).__name__)
            return None
        group_id = payload.get("id")
        # bool is an int subclass but never a valid id
        if not isinstance(group_id, int) or isinstance(group_id, bool):
            LOGGER.debug("Skipping stored group with invalid id %r", group_id)
            return None
        urls = payload.get("urls")
        if not isinstance(urls, list):
            LOGGER.debug("Skipping stored group %s without a url list", group_id)
            return None
        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            name = DEFAULT_GROUP_NAME
        return cls(id=group_id, name=name, urls=list(urls))

    def to_payload(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "urls": list(self.urls)}


@dataclass(slots=True, frozen=True)
class GroupSummary:
    """Counts shown above the group list."""

    group_count: int = 0
    tab_count: int = 0


class StatusLevel(Enum):
    """Severity of an action outcome."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class ActionStatus:
    """Outcome reported by an action handler."""

    level: StatusLevel
    message: str

    @property
    def ok(self) -> bool:
        return self.level in (StatusLevel.INFO, StatusLevel.SUCCESS)

    @classmethod
    def info(cls, message: str) -> ActionStatus:
        return cls(StatusLevel.INFO, message)

    @classmethod
    def success(cls, message: str) -> ActionStatus:
        return cls(StatusLevel.SUCCESS, message)

    @classmethod
    def warning(cls, message: str) -> ActionStatus:
        return cls(StatusLevel.WARNING, message)

    @classmethod
    def error(cls, message: str) -> ActionStatus:
        return cls(StatusLevel.ERROR, message)
