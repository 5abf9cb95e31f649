"""Auth handlers.

Requests are authenticated with a bearer access token. Each route then requires
one scope through a guardpost policy.
"""
from collections.abc import Callable
from typing import Any, Optional

from blacksheep import Request
from blacksheep.exceptions import Forbidden, Unauthorized
from blacksheep.server.bindings import Binder, BoundValue
from guardpost import Identity, Policy
from guardpost.asynchronous.authentication import AuthenticationHandler
from guardpost.authorization import AuthorizationContext
from guardpost.synchronous.authorization import Requirement
from jwt import InvalidTokenError
from loguru import logger
from oes.attendance.auth.scope import Scope, Scopes
from oes.attendance.auth.token import verify_token
from oes.attendance.auth.user import User, UserIdentity
from oes.attendance.config import CommandLineConfig
from oes.attendance.models.config import Config


class TokenAuthHandler(AuthenticationHandler):
    """Authenticates requests with the ``Authorization: Bearer`` header."""

    def __init__(self, cmd_config: CommandLineConfig, config: Config):
        # scopes are not enforced with --insecure --no-auth
        self.grant_all_scopes = cmd_config.insecure and cmd_config.no_auth
        self.config = config.auth

    async def authenticate(self, context: Request) -> Optional[Identity]:
        context.identity = self._get_identity(context)
        return context.identity

    def _get_identity(self, request: Request) -> Optional[UserIdentity]:
        value = get_bearer_token(request)
        if value is None:
            return None

        try:
            token = verify_token(value, self.config)
        except InvalidTokenError as e:
            logger.debug(f"Rejected access token: {e}")
            return None

        scope = Scopes(Scope) if self.grant_all_scopes else token.scope
        return UserIdentity(id=token.sub, scope=scope)


def get_bearer_token(request: Request) -> Optional[str]:
    """Get the bearer token from a request's ``Authorization`` header."""
    header = request.get_first_header(b"Authorization")
    typ, _, value = (header or b"").partition(b" ")
    if typ.lower() != b"bearer":
        return None
    return value.decode().strip() or None


class ScopeRequirement(Requirement):
    """Require a scope."""

    def __init__(self, scope: Scope):
        self.scope = scope

    def handle(self, context: AuthorizationContext):
        identity = context.identity

        if not identity:
            context.fail("Missing identity")
        elif self.scope not in getattr(identity, "scope", ()):
            context.fail(f"Missing scope {self.scope.value}")
            # guardpost would answer 401 for an authenticated user
            raise Forbidden
        else:
            context.succeed(self)


RequireEvent = "require_event"
RequireCheckin = "require_checkin"
RequireManage = "require_manage"
RequireAdmin = "require_admin"

policies = [
    Policy(name, ScopeRequirement(scope))
    for name, scope in (
        (RequireEvent, Scope.event),
        (RequireCheckin, Scope.checkin),
        (RequireManage, Scope.manage),
        (RequireAdmin, Scope.admin),
    )
]
"""One policy per scope, referenced by name in route ``@auth`` decorators."""


def get_user_id(user: User) -> str:
    """Get the ID of an authenticated user.

    Raises:
        Unauthorized: If the token did not identify a user.
    """
    if not user.id:
        raise Unauthorized
    return user.id


class RequestUser(BoundValue[User]):
    pass


class UserBinder(Binder):
    """Binds the authenticated :class:`User` to handler parameters."""

    handle = RequestUser
    type_alias = User

    def __init__(
        self,
        expected_type: Any = User,
        name: str = "",
        implicit: bool = True,
        required: bool = True,
        converter: Optional[Callable] = None,
    ):
        super().__init__(expected_type, name, implicit, required, converter)

    async def get_value(self, request: Request) -> Optional[User]:
        return getattr(request, "identity", None)
