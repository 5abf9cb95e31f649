"""Event models."""
from enum import Enum


class EventStatus(str, Enum):
    """Event lifecycle status."""

    active = "active"
    draft = "draft"
    cancelled = "cancelled"
