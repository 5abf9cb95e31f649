"""Logging module."""
import copy
import inspect
import logging
import sys
from enum import Enum

from loguru import logger
from oes.attendance.models.config import LoggingConfig

AUDIT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <cyan>AUDIT</cyan> | "
    "{extra[type].value} event={extra[event_id]} user={extra[user_id]} | "
    "<level>{message}</level>"
)


class AuditLogType(str, Enum):
    audit = "audit"
    rsvp_create = "rsvp.create"
    rsvp_cancel = "rsvp.cancel"
    rsvp_promote = "rsvp.promote"
    rsvp_reconcile = "rsvp.reconcile"
    checkin_create = "checkin.create"
    checkin_code_create = "checkin_code.create"
    checkin_code_delete = "checkin_code.delete"


class InterceptHandler(logging.Handler):
    """Route standard library logging (uvicorn, sqlalchemy) to loguru."""

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # skip frames in the logging module to find the caller
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(debug: bool = False, config: LoggingConfig = LoggingConfig()):
    """Set up the logger."""
    level = "DEBUG" if debug else config.level.upper()

    logger.remove()
    logger.add(sys.stderr, level=level)

    audit_log.remove()
    audit_log.add(sys.stderr, level=level, format=AUDIT_FORMAT)
    if config.audit_file is not None:
        audit_log.add(config.audit_file, level="INFO", serialize=True)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)


audit_log = copy.deepcopy(logger, memo={id(sys.stderr): sys.stderr}).bind(name="audit")
"""Separate logger for audit events.

Bind ``type``, ``event_id`` and ``user_id`` when logging.
"""

audit_log.remove()

audit_log.configure(
    extra=dict(
        type=AuditLogType.audit,
        event_id=None,
        user_id=None,
    )
)
