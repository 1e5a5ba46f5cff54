from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from relay.core.security import admin_slug, require_admin
from relay.domain.hooks import DEFAULT_RECENT_LIMIT
from relay.domain.slugs import normalize_slug
from relay.services.hook_service import HookService

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


class CreateHookRequest(BaseModel):
    slug: str | None = None
    description: str | None = ""
    metadata: Any = None


def get_hook_service(request: Request) -> HookService:
    svc = getattr(getattr(request.app, "state", None), "hook_service", None)
    if not svc:
        raise RuntimeError("HookService not configured")
    return svc


def build_hook_urls(request: Request, slug: str) -> dict:
    base = str(request.base_url).rstrip("/")
    return {"short": f"{base}/{slug}", "explicit": f"{base}/hooks/{slug}"}


def _not_found(slug: str) -> JSONResponse:
    return JSONResponse({"error": f'Webhook "{slug}" not found.'}, status_code=404)


@router.get("", dependencies=[Depends(require_admin)])
async def list_webhooks(request: Request):
    svc = get_hook_service(request)
    return {"items": await svc.list_hooks()}


@router.get("/recent")
async def recent_webhooks(request: Request, limit: str | None = None):
    svc = get_hook_service(request)
    return {"items": await svc.recent(limit if limit is not None else DEFAULT_RECENT_LIMIT)}


@router.get("/stats")
async def webhook_stats(request: Request):
    svc = get_hook_service(request)
    return {"stats": await svc.stats()}


@router.post("")
async def create_webhook(payload: CreateHookRequest, request: Request):
    svc = get_hook_service(request)
    slug = normalize_slug(payload.slug)
    hook, already_existed = await svc.register(slug, payload.description, payload.metadata)
    return JSONResponse(
        {
            "hook": hook,
            "endpoint": build_hook_urls(request, slug),
            "alreadyExisted": already_existed,
        },
        status_code=200 if already_existed else 201,
    )


@router.get("/{slug}")
async def get_webhook(slug: str, request: Request):
    svc = get_hook_service(request)
    value = normalize_slug(slug)
    hidden = admin_slug(request.app.state.settings)
    if hidden and value == hidden:
        return {"admin": True, "hooks": await svc.list_hooks()}
    hook = await svc.get(value)
    if hook is None:
        return _not_found(value)
    return {"hook": hook}


@router.delete("/{slug}")
async def delete_webhook(slug: str, request: Request):
    svc = get_hook_service(request)
    value = normalize_slug(slug)
    if not await svc.delete(value):
        return _not_found(value)
    return {"deleted": True, "slug": value}


@router.post("/{slug}/reset")
async def reset_webhook(slug: str, request: Request):
    svc = get_hook_service(request)
    hook = await svc.reset(normalize_slug(slug))
    return {"reset": True, "hook": hook}
