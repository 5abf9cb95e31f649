"""Web application module."""
from asyncio import get_running_loop
from functools import partial
from ipaddress import IPv4Network, IPv6Network

import uvicorn
from blacksheep import Application, Request
from blacksheep.plugins import json
from blacksheep.server.remotes.forwarding import XForwardedHeadersMiddleware
from guardpost import Policy
from guardpost.common import AuthenticatedRequirement
from loguru import logger
from oes.attendance.auth.handlers import TokenAuthHandler, policies
from oes.attendance.config import CommandLineConfig, load_config, parse_args
from oes.attendance.database import (
    DBConfig,
    db_session_factory,
    db_session_middleware,
)
from oes.attendance.docs import docs
from oes.attendance.errors import AttendanceError
from oes.attendance.http_client import setup_http_client, shutdown_http_client
from oes.attendance.log import setup_logging
from oes.attendance.models.config import Config
from oes.attendance.notification.service import (
    CommitCallbackService,
    NotificationQueue,
    NotificationSender,
)
from oes.attendance.serialization.json import json_dumps, json_loads
from oes.attendance.services.admission import AdmissionService
from oes.attendance.services.checkin import CheckinService
from oes.attendance.services.event import EventService
from oes.attendance.services.redemption import RedemptionService
from oes.attendance.services.rsvp import RsvpService
from oes.attendance.views.responses import (
    BodyValidationError,
    ExceptionDetails,
    json_response,
)
from rodi import GetServiceContext
from sqlalchemy.ext.asyncio import AsyncSession

TRUSTED_PROXY_NETWORKS = (
    IPv4Network("127.0.0.0/8"),
    IPv4Network("10.0.0.0/8"),
    IPv4Network("172.16.0.0/12"),
    IPv4Network("192.168.0.0/16"),
    IPv6Network("fc00::/7"),
    IPv6Network("::1/128"),
)
"""Networks whose ``X-Forwarded-*`` headers are trusted."""

app = Application()

docs.bind_app(app)

json.use(
    loads=json_loads,
    dumps=lambda o: json_dumps(o).decode(),
)

for service_type in (
    EventService,
    RsvpService,
    CheckinService,
    AdmissionService,
    RedemptionService,
):
    app.services.add_scoped(service_type)


async def _validation_error_handler(
    app: Application, request: Request, exc: BodyValidationError
):
    return json_response(ExceptionDetails.create(exc.exc), 422)


async def _attendance_error_handler(
    app: Application, request: Request, exc: AttendanceError
):
    return json_response(ExceptionDetails.create(exc), exc.status)


app.exceptions_handlers[BodyValidationError] = _validation_error_handler
app.exceptions_handlers[AttendanceError] = _attendance_error_handler
app.middlewares.append(db_session_middleware)


async def _set_base_path(request, handler):
    request.base_path = request.scope.get("root_path", "")
    return await handler(request)


@app.on_middlewares_configuration
def _configure_forwarded_headers(app: Application):
    # both must run before the other middlewares
    app.middlewares.insert(0, _set_base_path)
    app.middlewares.insert(
        0, XForwardedHeadersMiddleware(known_networks=list(TRUSTED_PROXY_NETWORKS))
    )


def _commit_callback_service_factory(
    services: GetServiceContext,
) -> CommitCallbackService:
    db_config: DBConfig = services.provider[DBConfig]
    service = CommitCallbackService(get_running_loop())
    service.add_listeners(db_config.session_factory)
    return service


def _notification_queue_factory(services: GetServiceContext) -> NotificationQueue:
    config: Config = services.provider[Config]
    return NotificationQueue(get_running_loop(), config.notifications)


def _notification_sender_factory(services: GetServiceContext) -> NotificationSender:
    return NotificationSender(
        services.provider[AsyncSession],
        services.provider[NotificationQueue],
        services.provider[CommitCallbackService],
    )


async def _setup_app(config: Config, app: Application):
    db_config = DBConfig.create(config.database.url)
    app.services.add_instance(db_config)
    app.services.add_scoped_by_factory(db_session_factory, AsyncSession)

    app.services.add_singleton_by_factory(_commit_callback_service_factory)
    app.services.add_singleton_by_factory(_notification_queue_factory)
    app.services.add_scoped_by_factory(_notification_sender_factory)

    app.services.add_instance(setup_http_client(config.notifications.timeout))


@app.after_start
async def _start_notification_queue(app: Application):
    app.service_provider[NotificationQueue].start()


@app.on_stop
async def _shutdown_app(app: Application):
    db_config: DBConfig = app.service_provider[DBConfig]

    # pending notifications are dropped
    await app.service_provider[NotificationQueue].close()
    app.service_provider[CommitCallbackService].remove_listeners(
        db_config.session_factory
    )

    await shutdown_http_client()
    await db_config.close()


def _setup_auth(app: Application, cmd_config: CommandLineConfig, config: Config):
    app.use_authentication().add(TokenAuthHandler(cmd_config, config))

    authorization = app.use_authorization()
    authorization.default_policy = Policy("authenticated", AuthenticatedRequirement())
    for policy in policies:
        authorization.add(policy)

    if cmd_config.insecure:
        logger.warning("Starting with insecure options")
        if cmd_config.no_auth:
            logger.warning("Every valid token is granted all scopes")


def app_factory() -> Application:
    """Set up and return the ASGI app."""
    # uvicorn workers can't receive settings from the main process, so parse the
    # command line again
    cmd_config = parse_args()
    config = load_config(cmd_config.config)
    setup_logging(cmd_config.debug, config.logging)

    app.services.add_instance(config)
    app.services.add_instance(cmd_config)
    app.on_start(partial(_setup_app, config))

    _setup_auth(app, cmd_config, config)

    app.use_cors(
        allow_methods=("GET", "POST", "DELETE"),
        allow_origins=config.auth.allowed_origins,
        allow_headers=("Authorization", "Content-Type"),
    )

    logger.info(f"Using admission policy {config.admission.policy.value}")
    return app


def run():
    """Entry point for the console script."""
    args = parse_args()

    uvicorn.run(
        "oes.attendance.app:app_factory",
        factory=True,
        host=args.bind,
        port=args.port,
        root_path=args.root_path,
        reload=args.reload,
        # reload only works with a single worker
        workers=1 if args.reload else None,
    )


import oes.attendance.views.checkin  # noqa
import oes.attendance.views.rsvp  # noqa
