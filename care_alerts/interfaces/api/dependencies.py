"""FastAPI dependency utilities."""

from fastapi import HTTPException, Request, status

from care_alerts.application.use_cases.notifications import NotificationService


def get_notification_service(request: Request) -> NotificationService:
    """Return the notification service wired at application startup."""

    service = getattr(request.app.state, "notification_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notification service is not available",
        )
    return service
