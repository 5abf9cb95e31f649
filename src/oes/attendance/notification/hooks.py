"""Built-in Python hooks."""
from typing import Any

from loguru import logger


def log_notification(body: dict[str, Any]):
    """Write the notification to the log.

    Configure with ``python: oes.attendance.notification.hooks:log_notification``.
    """
    logger.info(f"Notification {body.get('type')}: {body.get('payload')}")
