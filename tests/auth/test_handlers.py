from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from blacksheep import Request
from blacksheep.exceptions import Forbidden, Unauthorized
from guardpost.authorization import AuthorizationContext
from oes.attendance.auth.handlers import (
    ScopeRequirement,
    TokenAuthHandler,
    get_user_id,
)
from oes.attendance.auth.scope import Scope, Scopes
from oes.attendance.auth.token import AccessToken
from oes.attendance.auth.user import UserIdentity
from oes.attendance.config import CommandLineConfig
from oes.attendance.models.config import AuthConfig, Config, DatabaseConfig
from oes.attendance.util import get_now


def make_cmd_config(insecure: bool = False, no_auth: bool = False):
    return CommandLineConfig(insecure=insecure, no_auth=no_auth)


@pytest.fixture
def config() -> Config:
    return Config(
        database=DatabaseConfig("postgresql+asyncpg://localhost/test"),
        auth=AuthConfig("test"),
    )


def make_request(authorization: bytes = b"") -> Request:
    headers = [(b"Authorization", authorization)] if authorization else []
    return Request("GET", b"/events/example-event/rsvp", headers)


def make_token(scope: str = "event", key: str = "test") -> bytes:
    token = AccessToken(
        sub="user1",
        scope=Scopes(scope),
        exp=get_now().replace(microsecond=0) + timedelta(minutes=1),
    )
    return token.encode(key=key).encode()


@pytest.mark.asyncio
async def test_authenticate(config: Config):
    handler = TokenAuthHandler(make_cmd_config(), config)
    request = make_request(b"Bearer " + make_token("event checkin"))

    identity = await handler.authenticate(request)

    assert isinstance(identity, UserIdentity)
    assert identity.id == "user1"
    assert identity.scope == Scopes("event checkin")
    assert request.identity is identity


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "authorization",
    [
        b"",
        b"Basic dXNlcjpwYXNz",
        b"Bearer ",
        b"Bearer not-a-token",
    ],
)
async def test_authenticate_invalid(config: Config, authorization: bytes):
    handler = TokenAuthHandler(make_cmd_config(), config)
    request = make_request(authorization)

    assert await handler.authenticate(request) is None
    assert request.identity is None


@pytest.mark.asyncio
async def test_authenticate_wrong_key(config: Config):
    handler = TokenAuthHandler(make_cmd_config(), config)
    request = make_request(b"Bearer " + make_token(key="other"))

    assert await handler.authenticate(request) is None


@pytest.mark.asyncio
async def test_authenticate_no_auth(config: Config):
    handler = TokenAuthHandler(make_cmd_config(insecure=True, no_auth=True), config)
    request = make_request(b"Bearer " + make_token("event"))

    identity = await handler.authenticate(request)

    assert all(s in identity.scope for s in Scope)


@pytest.mark.asyncio
async def test_authenticate_no_auth_requires_insecure(config: Config):
    handler = TokenAuthHandler(make_cmd_config(no_auth=True), config)
    request = make_request(b"Bearer " + make_token("event"))

    identity = await handler.authenticate(request)

    assert identity.scope == Scopes("event")


def test_scope_requirement():
    context = MagicMock(spec=AuthorizationContext)
    context.identity = UserIdentity(id="user1", scope=Scopes("manage"))

    ScopeRequirement(Scope.manage).handle(context)

    context.succeed.assert_called_once()


def test_scope_requirement_missing_scope():
    context = MagicMock(spec=AuthorizationContext)
    context.identity = UserIdentity(id="user1", scope=Scopes("event"))

    with pytest.raises(Forbidden):
        ScopeRequirement(Scope.admin).handle(context)

    context.succeed.assert_not_called()


def test_scope_requirement_no_identity():
    context = MagicMock(spec=AuthorizationContext)
    context.identity = None

    ScopeRequirement(Scope.event).handle(context)

    context.fail.assert_called_once()
    context.succeed.assert_not_called()


def test_get_user_id():
    assert get_user_id(UserIdentity(id="user1")) == "user1"

    with pytest.raises(Unauthorized):
        get_user_id(UserIdentity())
