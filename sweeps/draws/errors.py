"""Exceptions raised by the draw engine.

Every error is an expected business condition; callers translate them into
user-facing responses. Storage errors from SQLAlchemy are not wrapped.
"""

from __future__ import annotations


class DrawError(Exception):
    """Base class for all draw engine errors."""


class DrawNotFoundError(DrawError, LookupError):
    """No draw exists with the requested id (or of the requested type)."""


class DrawLockedError(DrawError):
    """Entries or a mutation were sent to a frozen, completed or cancelled draw."""


class ConfigurationLockedError(DrawError):
    """An administrative edit was attempted after the configuration lock."""


class NoAvailableDrawError(DrawError):
    """No active or queued draw exists to receive entries."""


class WinnerAlreadySelectedError(DrawError):
    """The draw already has a winner."""


class NoEntriesError(DrawError):
    """Winner selection was attempted on a draw without entries."""


class DrawNotReadyError(DrawError):
    """Winner selection was attempted before the draw's entries froze."""


class InvalidEntrySourceError(DrawError, ValueError):
    """The entry source is not one of the known channels."""


class InvalidEntryCountError(DrawError, ValueError):
    """The entry count is not a positive integer."""


class InvalidStatusTransitionError(DrawError, ValueError):
    """The requested status change is not allowed from the current status."""


class InvalidEntryNumberError(DrawError, ValueError):
    """A recorded winning entry number does not belong to the named user."""


__all__ = [
    "DrawError",
    "DrawNotFoundError",
    "DrawLockedError",
    "ConfigurationLockedError",
    "NoAvailableDrawError",
    "WinnerAlreadySelectedError",
    "NoEntriesError",
    "DrawNotReadyError",
    "InvalidEntrySourceError",
    "InvalidEntryCountError",
    "InvalidStatusTransitionError",
    "InvalidEntryNumberError",
]
