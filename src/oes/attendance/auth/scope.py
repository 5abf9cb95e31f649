"""Scope module."""
from collections.abc import Iterable
from enum import Enum


class Scope(str, Enum):
    """Authorization scopes."""

    admin = "admin"
    """May reconcile events."""

    checkin = "checkin"
    """May check and redeem check-in codes."""

    event = "event"
    """May RSVP to events and view RSVP counts."""

    manage = "manage"
    """May manage check-in codes and view attendee lists."""


class Scopes(frozenset[str]):
    """A set of scopes, written as a space separated string."""

    def __new__(cls, iterable: Iterable[str] = ()):
        if isinstance(iterable, str):
            iterable = iterable.split()
        # store plain strings, not Scope members
        return super().__new__(cls, (str(getattr(s, "value", s)) for s in iterable))

    def __str__(self) -> str:
        return " ".join(sorted(self))

    def __repr__(self) -> str:
        return f"Scopes({str(self)!r})"


DEFAULT_SCOPES = Scopes((Scope.event, Scope.checkin))
"""The scopes of a regular attendee."""
