from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from relay.core.config import Settings, get_settings
from relay.core.log_setup import configure_logging
from relay.domain.payloads import PayloadTooLargeError
from relay.domain.slugs import SlugValidationError
from relay.repositories.base import HookStore, StoreError
from relay.repositories.factory import store_from_settings
from relay.routers import hooks as hooks_router
from relay.routers import meta as meta_router
from relay.routers import webhooks as webhooks_router
from relay.services.hook_service import HookService, MetadataValidationError

logger = structlog.get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Inject baseline security headers and disable caching of API responses."""

    def __init__(self, app, *, enforce_hsts: bool) -> None:
        super().__init__(app)
        self._enforce_hsts = enforce_hsts

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["Cache-Control"] = "no-store"
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        if self._enforce_hsts:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response


def _error_response(exc: Exception) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=getattr(exc, "status_code", 500))


async def _typed_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    return _error_response(exc)


async def _http_error_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


async def _validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg") if errors else "Invalid request."
    return JSONResponse({"error": message}, status_code=400)


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path, method=request.method)
    return JSONResponse({"error": "Unexpected server error"}, status_code=500)


def create_app(settings: Settings | None = None, store: HookStore | None = None) -> FastAPI:
    """Factory compatible with uvicorn/gunicorn."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    hook_store = store or store_from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # backend errors abort startup; there is no fallback engine
        await hook_store.init()
        logger.info("Webhook relay ready", store=type(hook_store).__name__, log_limit=hook_store.log_limit)
        try:
            yield
        finally:
            await hook_store.close()

    app = FastAPI(title="Webhook Relay", lifespan=lifespan)
    app.state.settings = settings
    app.state.hook_store = hook_store
    app.state.hook_service = HookService(hook_store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware, enforce_hsts=settings.app_env == "prod")

    for exc_type in (StoreError, SlugValidationError, MetadataValidationError, PayloadTooLargeError):
        app.add_exception_handler(exc_type, _typed_error_handler)
    app.add_exception_handler(HTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)

    app.include_router(meta_router.router)
    app.include_router(webhooks_router.router)
    # catch-all /{slug} capture must come last
    app.include_router(hooks_router.router)
    return app


app = create_app()
