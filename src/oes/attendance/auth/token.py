"""Access token verification.

Tokens are issued by the identity provider. This service only checks the
signature, the expiration and, when configured, the issuer and audience.
"""
from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Optional, Union

import jwt
from attrs import fields, frozen
from cattrs import BaseValidationError, override
from cattrs.gen import make_dict_unstructure_fn
from cattrs.preconf.orjson import make_converter
from jwt import InvalidTokenError
from oes.attendance.auth.scope import Scopes
from oes.attendance.models.config import AuthConfig

ALGORITHM = "HS256"

converter = make_converter()

Audience = Union[str, Sequence[str], None]


@frozen(kw_only=True)
class AccessToken:
    """The claims of a verified access token."""

    sub: Optional[str] = None
    """The user ID."""

    exp: datetime
    iss: Optional[str] = None
    aud: Audience = None
    iat: Optional[datetime] = None

    scope: Scopes = Scopes()

    def encode(self, *, key: str) -> str:
        """Sign the token with ``key``."""
        return jwt.encode(converter.unstructure(self), key=key, algorithm=ALGORITHM)


def verify_token(value: str, config: AuthConfig) -> AccessToken:
    """Verify an encoded access token.

    Raises:
        jwt.InvalidTokenError: If the token is not valid.
    """
    claims = jwt.decode(
        value,
        key=config.signing_key,
        algorithms=[ALGORITHM],
        issuer=config.issuer,
        audience=config.audience,
        leeway=config.leeway,
        options={"require": ["exp"]},
    )

    try:
        return converter.structure(claims, AccessToken)
    except BaseValidationError as e:
        raise InvalidTokenError(e) from e


def _structure_timestamp(v, t) -> datetime:
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return datetime.fromtimestamp(v, tz=timezone.utc)
    raise TypeError(f"Invalid timestamp: {v!r}")


def _structure_audience(v, t) -> Audience:
    if v is None or isinstance(v, str):
        return v
    elif isinstance(v, list) and all(isinstance(s, str) for s in v):
        return tuple(v)
    raise TypeError(f"Invalid audience: {v!r}")


def _structure_scope(v, t) -> Scopes:
    # some providers send a list instead of a space separated string
    if isinstance(v, str):
        return Scopes(v)
    elif isinstance(v, list) and all(isinstance(s, str) for s in v):
        return Scopes(v)
    raise TypeError(f"Invalid scope: {v!r}")


def _make_token_unstructure_fn(cls):
    omitted = {
        f.name: override(omit_if_default=True) for f in fields(cls) if f.default is None
    }
    return make_dict_unstructure_fn(cls, converter, **omitted)


converter.register_structure_hook(datetime, _structure_timestamp)
converter.register_unstructure_hook(datetime, lambda v: int(v.timestamp()))
converter.register_structure_hook(Scopes, _structure_scope)
converter.register_structure_hook(Audience, _structure_audience)
converter.register_unstructure_hook(Scopes, str)
converter.register_unstructure_hook(
    AccessToken, _make_token_unstructure_fn(AccessToken)
)
