"""Endpoints and websocket handler for dashboard notifications."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, WebSocket, WebSocketDisconnect, status

from care_alerts.application.use_cases.notifications import (
    NotificationNotFoundError,
    NotificationService,
)
from care_alerts.domain.entities import Notification
from care_alerts.infrastructure.notifications import serialize_notification
from care_alerts.interfaces.api.dependencies import get_notification_service
from care_alerts.interfaces.api.schemas import (
    NotificationAckRequest,
    NotificationActivationRead,
    NotificationRead,
    UnreadCountRead,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _notification_to_schema(notification: Notification) -> NotificationRead:
    return NotificationRead(
        id=notification.id,
        type=notification.kind,
        title=notification.title,
        message=notification.message,
        priority=notification.priority,
        timestamp=notification.created_at,
        read=notification.read,
        user_id=notification.subject_id,
        user_name=notification.subject_name,
        action_url=notification.action_path,
        data=notification.data or {},
    )


@router.get("/", response_model=list[NotificationRead])
def list_notifications(
    service: NotificationService = Depends(get_notification_service),
) -> list[NotificationRead]:
    """Return the persisted notification log, most recent first."""

    return [_notification_to_schema(notification) for notification in service.load_all()]


@router.get("/unread-count", response_model=UnreadCountRead)
def get_unread_count(
    service: NotificationService = Depends(get_notification_service),
) -> UnreadCountRead:
    return UnreadCountRead(unread_count=service.get_unread_count())


@router.post("/read-all", status_code=status.HTTP_204_NO_CONTENT)
def mark_all_notifications_read(
    service: NotificationService = Depends(get_notification_service),
) -> Response:
    service.mark_all_as_read()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/read", status_code=status.HTTP_204_NO_CONTENT)
def mark_notifications_read(
    payload: NotificationAckRequest,
    service: NotificationService = Depends(get_notification_service),
) -> Response:
    """Mark a batch of notifications as read; unknown ids are ignored."""

    for notification_id in payload.unique_ids():
        service.mark_as_read(notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
def mark_notification_read(
    notification_id: str,
    service: NotificationService = Depends(get_notification_service),
) -> Response:
    service.mark_as_read(notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{notification_id}/activate", response_model=NotificationActivationRead)
def activate_notification(
    notification_id: str,
    service: NotificationService = Depends(get_notification_service),
) -> NotificationActivationRead:
    """Mark the notification read and return the route the UI should open."""

    try:
        action_url = service.activate(notification_id)
    except NotificationNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        ) from exc
    return NotificationActivationRead(id=notification_id, action_url=action_url)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: str,
    service: NotificationService = Depends(get_notification_service),
) -> Response:
    service.delete(notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/", status_code=status.HTTP_204_NO_CONTENT)
def clear_notifications(
    service: NotificationService = Depends(get_notification_service),
) -> Response:
    service.clear_all()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket) -> None:
    """Stream the log and every new notification to a dashboard client."""

    service: NotificationService | None = getattr(websocket.app.state, "notification_service", None)
    manager = getattr(websocket.app.state, "connection_manager", None)
    if service is None or manager is None:
        await websocket.close(code=1011)
        return

    await manager.connect(websocket)
    try:
        await websocket.send_json(
            {
                "type": "init",
                "data": [serialize_notification(n) for n in service.load_all()],
                "unread_count": service.get_unread_count(),
            }
        )
        while True:
            try:
                message = await websocket.receive_json()
            except WebSocketDisconnect:
                raise
            except (KeyError, ValueError):
                logger.debug("Ignoring malformed websocket message")
                continue

            if not isinstance(message, dict):
                continue

            message_type = message.get("type")
            if message_type == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            if message_type == "ack":
                ids = message.get("ids", [])
                if isinstance(ids, list):
                    for notification_id in ids:
                        if isinstance(notification_id, str):
                            service.mark_as_read(notification_id)
                    await websocket.send_json(
                        {"type": "unread_count", "unread_count": service.get_unread_count()}
                    )
                continue
    except WebSocketDisconnect:
        manager.disconnect(websocket)
    except Exception:
        manager.disconnect(websocket)
        raise
