from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health(request: Request) -> dict[str, object]:
    service = getattr(request.app.state, "notification_service", None)
    feed = getattr(request.app.state, "change_feed", None)
    return {
        "status": "ok",
        "initialized": bool(service is not None and service.initialized),
        "change_feed": feed is not None,
    }
