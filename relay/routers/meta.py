from __future__ import annotations

from fastapi import APIRouter, Request

from relay.domain.hooks import format_timestamp, utc_now
from relay.routers.webhooks import get_hook_service

router = APIRouter(tags=["meta"])


@router.get("/meta")
async def meta(request: Request):
    svc = get_hook_service(request)
    base = str(request.base_url).rstrip("/")
    return {
        "name": "Webhook Relay",
        "ready": True,
        "adminProtected": bool(request.app.state.settings.admin_access),
        "management": {
            "list": f"{base}/webhooks",
            "create": f"{base}/webhooks",
            "detail": f"{base}/webhooks/:slug",
        },
        "dynamicEndpointExample": f"{base}/email1",
        "note": (
            "Create a slug under /webhooks first, then send any request to "
            "/:slug or /hooks/:slug to have it captured."
        ),
        "stats": await svc.stats(),
    }


@router.get("/health")
def health():
    return {"ok": True, "timestamp": format_timestamp(utc_now())}
