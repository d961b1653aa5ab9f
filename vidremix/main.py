import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vidremix.api import jobs, media, presets, preview, split
from vidremix.api.deps import Services, build_services
from vidremix.config import Settings, get_settings
from vidremix.exceptions import VidremixError
from vidremix.services.media_storage import MediaStorage

logger = logging.getLogger(__name__)


async def _retention_loop(storage: MediaStorage, interval_s: int) -> None:
    """Periodically delete expired uploads and outputs."""
    while True:
        await asyncio.sleep(interval_s)
        try:
            await asyncio.to_thread(storage.cleanup_expired)
        except Exception:
            logger.exception("[CLEANUP] Retention pass failed")


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    settings = settings or get_settings()
    services = services or build_services(settings)
    services.storage.ensure_dirs()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Startup
        cleanup_task = asyncio.create_task(
            _retention_loop(services.storage, settings.cleanup_interval_s)
        )
        yield
        # Shutdown
        cleanup_task.cancel()
        with suppress(asyncio.CancelledError):
            await cleanup_task

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.services = services

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(VidremixError)
    async def vidremix_exception_handler(request: Request, exc: VidremixError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message} {exc.details or ''}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        if errors:
            first_error = errors[0]
            loc = " -> ".join(str(x) for x in first_error.get("loc", []))
            msg = first_error.get("msg", "Validation error")
            message = f"{loc}: {msg}" if loc else msg
        else:
            message = "Request validation failed"
        return JSONResponse(
            status_code=422,
            content={
                "error": message,
                "code": "VALIDATION_ERROR",
                # Rejected input is not echoed back; NaN and Infinity are not valid JSON
                "detail": jsonable_encoder(errors, exclude={"input"}),
            },
        )

    # Global exception handler to ensure errors return proper JSON
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "code": "INTERNAL_ERROR"},
        )

    # Routers
    app.include_router(media.router, prefix="/api", tags=["media"])
    app.include_router(preview.router, prefix="/api", tags=["preview"])
    app.include_router(jobs.router, prefix="/api", tags=["jobs"])
    app.include_router(split.router, prefix="/api", tags=["split"])
    app.include_router(presets.router, prefix="/api", tags=["presets"])

    @app.get("/api/health")
    async def health_check() -> dict:
        return {"ok": True, "version": settings.app_version}

    return app


logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
app = create_app()
