from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from relay.domain.payloads import PayloadTooLargeError
from relay.domain.slugs import is_reserved, normalize_slug
from relay.routers.webhooks import get_hook_service

router = APIRouter(tags=["hooks"])

CAPTURE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return None


async def read_body(request: Request, limit: int) -> bytes:
    """Read the raw body, aborting as soon as it grows past ``limit`` bytes."""
    declared = request.headers.get("content-length") or ""
    if declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError(limit)
    chunks: list[bytes] = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise PayloadTooLargeError(limit)
        chunks.append(chunk)
    return b"".join(chunks)


async def capture(slug: str, request: Request):
    value = normalize_slug(slug)
    if not value or is_reserved(value):
        return JSONResponse({"error": "Not found"}, status_code=404)
    if request.method.upper() != "POST":
        return JSONResponse(
            {"error": "Only POST requests are accepted on this webhook endpoint."},
            status_code=405,
        )

    svc = get_hook_service(request)
    raw = await read_body(request, request.app.state.settings.payload_limit)
    entry = await svc.capture(
        value,
        raw,
        method=request.method,
        headers=dict(request.headers),
        query=dict(request.query_params),
        ip=_client_ip(request),
    )
    return {
        "stored": True,
        "slug": value,
        "reference": entry["id"],
        "receivedAt": entry["timestamp"],
        "size": entry["byteSize"],
        "isJson": entry["isJson"],
        "note": "Payload captured successfully.",
    }


router.add_api_route("/hooks/{slug}", capture, methods=CAPTURE_METHODS)
router.add_api_route("/{slug}", capture, methods=CAPTURE_METHODS)
