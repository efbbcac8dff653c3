"""Public helpers for turning change events into notifications."""

from .normalizer import (
    NotificationIdGenerator,
    accepts,
    has_mapping,
    normalize,
    normalize_row,
    register_mapping,
)
from .service import (
    DEFAULT_TABLES,
    NotificationNotFoundError,
    NotificationService,
    build_notification_service,
)

__all__ = [
    "DEFAULT_TABLES",
    "NotificationIdGenerator",
    "NotificationNotFoundError",
    "NotificationService",
    "accepts",
    "build_notification_service",
    "has_mapping",
    "normalize",
    "normalize_row",
    "register_mapping",
]
