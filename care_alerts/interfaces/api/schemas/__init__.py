from .notification import (
    NotificationAckRequest,
    NotificationActivationRead,
    NotificationRead,
    UnreadCountRead,
)

__all__ = [
    "NotificationAckRequest",
    "NotificationActivationRead",
    "NotificationRead",
    "UnreadCountRead",
]
