"""SQLAlchemy model backing the durable key/value storage."""

from sqlalchemy import Column, DateTime, String, Text

from care_alerts.infrastructure.database import Base
from care_alerts.utils import now_in_app_timezone


class KeyValueEntryModel(Base):
    """A single ``key -> value`` pair, mirroring browser local storage."""

    __tablename__ = "key_value_entry"

    key = Column(String(120), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=now_in_app_timezone,
        onupdate=now_in_app_timezone,
    )


__all__ = ["KeyValueEntryModel"]
