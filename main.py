import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from care_alerts.application.use_cases.notifications import (
    NotificationService,
    build_notification_service,
)
from care_alerts.config import get_settings
from care_alerts.infrastructure.notifications import (
    ChangeFeed,
    NotificationConnectionManager,
    WebsocketNotificationPublisher,
    build_change_feed,
)
from care_alerts.interfaces.api.routes import register_routes

logger = logging.getLogger(__name__)

_UNSET = object()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the ledger, start the change feed and bridge it to websockets."""

    settings = get_settings()
    service: NotificationService | None = app.state.notification_service
    if service is None:
        service = build_notification_service(settings)
        app.state.notification_service = service
    feed: ChangeFeed | None = app.state.change_feed

    bridge = WebsocketNotificationPublisher(
        app.state.connection_manager, loop=asyncio.get_running_loop()
    )
    unsubscribe = service.subscribe(bridge)
    service.init(feed, settings.watched_table_list)
    if feed is not None:
        await feed.start()
    try:
        yield
    finally:
        unsubscribe()
        if feed is not None:
            await feed.close()


def create_app(
    service: NotificationService | None = None,
    feed: ChangeFeed | None | object = _UNSET,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``service`` and ``feed`` default to instances built from settings; pass
    them explicitly to run isolated instances (``feed=None`` disables the
    change feed). A default service, and the storage behind it, is built
    when the application starts rather than here.
    """

    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="Care Alerts", lifespan=lifespan)
    app.state.notification_service = service
    app.state.change_feed = (
        build_change_feed(settings.supabase_url, settings.supabase_key)
        if feed is _UNSET
        else feed
    )
    app.state.connection_manager = NotificationConnectionManager()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000)
