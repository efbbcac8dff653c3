"""ORM models used by the application infrastructure."""

from .key_value import KeyValueEntryModel

__all__ = ["KeyValueEntryModel"]
