"""Config models."""
from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import Optional

from attrs import Factory, field, frozen
from oes.attendance.notification.models import NotificationConfig


@frozen
class DatabaseConfig:
    url: str = field(repr=False)
    """The database URL."""


@frozen
class AuthConfig:
    signing_key: str = field(repr=False)
    """The key used to verify access tokens."""

    issuer: Optional[str] = None
    """The required ``iss`` claim, if any."""

    audience: Optional[str] = None
    """The required ``aud`` claim, if any."""

    leeway: int = 0
    """Allowed clock skew in seconds when checking token expiration."""

    allowed_origins: Sequence[str] = ()
    """The allowed CORS origins."""


@frozen
class LoggingConfig:
    level: str = "INFO"
    """The log level. ``--debug`` always uses ``DEBUG``."""

    audit_file: Optional[Path] = None
    """Also write audit events to this file, one JSON object per line."""


class AdmissionPolicy(str, Enum):
    """How concurrent admission decisions for one event are kept under capacity."""

    conditional = "conditional"
    """Claim a seat with a single conditional increment of the confirmed count."""

    locked = "locked"
    """Lock the event row and count confirmed RSVPs from the ledger."""


@frozen
class AdmissionConfig:
    policy: AdmissionPolicy = AdmissionPolicy.conditional
    """The admission policy."""


@frozen
class Config:
    """The main config class."""

    database: DatabaseConfig
    auth: AuthConfig
    admission: AdmissionConfig = AdmissionConfig()
    notifications: NotificationConfig = Factory(NotificationConfig)
    logging: LoggingConfig = LoggingConfig()
