"""Exception hierarchy raised inside action handlers.

Handlers raise these internally; the ``action_handler`` boundary in
:mod:`tabstash.actions` turns every one of them into an
:class:`~tabstash.models.ActionStatus`.
"""

from __future__ import annotations

from .models import StatusLevel

__all__ = [
    "TabstashError",
    "ValidationError",
    "ExternalFailure",
    "StoreError",
    "BrowserError",
]


class TabstashError(Exception):
    """Base class for errors raised by tabstash."""


class ValidationError(TabstashError):
    """Input rejected before any write happens.

    ``level`` controls how the rejection is reported; duplicates are reported as
    warnings, everything else as errors.
    """

    def __init__(self, message: str, *, level: StatusLevel = StatusLevel.ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.level = level


class ExternalFailure(TabstashError):
    """A collaborator outside the core (store or browser) failed."""


class StoreError(ExternalFailure):
    """Reading or writing the persisted slot failed."""


class BrowserError(ExternalFailure):
    """A tab primitive failed."""
