"""Declarative base and shared column types."""
import uuid
from datetime import datetime
from typing import Annotated
from uuid import UUID

from sqlalchemy import UUID as SqlUUID
from sqlalchemy import DateTime, ForeignKey, MetaData, String
from sqlalchemy.orm import DeclarativeBase, mapped_column

ID_MAX_LENGTH = 300
"""Max length of external IDs (events, users)."""

ENUM_MAX_LENGTH = 16
"""Max length of a stored enum value."""

metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

PKUUID = Annotated[
    UUID, mapped_column(SqlUUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
]
"""Random UUID primary key."""

EventRef = Annotated[
    str,
    mapped_column(
        String(ID_MAX_LENGTH), ForeignKey("event.id", ondelete="CASCADE"), index=True
    ),
]
"""Reference to the owning event. Rows are removed with the event."""

EnumStr = Annotated[str, mapped_column(String(ENUM_MAX_LENGTH))]
"""A str enum stored by value."""


class Base(DeclarativeBase):
    metadata = metadata
    type_annotation_map = {
        UUID: SqlUUID(as_uuid=True),
        datetime: DateTime(timezone=True),
        str: String(ID_MAX_LENGTH),
    }


def import_entities():
    """Import every entity module so the metadata is complete."""
    from oes.attendance.entities import checkin, event, rsvp  # noqa
