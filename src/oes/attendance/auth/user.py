"""User module."""
from typing import Optional

from guardpost import Identity
from oes.attendance.auth.scope import Scopes
from typing_extensions import Protocol


class User(Protocol):
    """The identity of the user making a request."""

    @property
    def id(self) -> Optional[str]:
        ...

    @property
    def scope(self) -> Scopes:
        ...


class UserIdentity(Identity):
    """A guardpost identity built from access token claims."""

    def __init__(
        self,
        id: Optional[str] = None,
        scope: Optional[Scopes] = None,
    ):
        super().__init__({"sub": id, "scope": scope or Scopes()}, "Bearer")

    @property
    def id(self) -> Optional[str]:
        return self.claims["sub"]

    @property
    def scope(self) -> Scopes:
        return self.claims["scope"]
