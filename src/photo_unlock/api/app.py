"""FastAPI application factory."""

import asyncio
import contextlib
import logging
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from photo_unlock.api.payments import router as payments_router
from photo_unlock.api.photos import router as photos_router
from photo_unlock.app_logging import configure_logging
from photo_unlock.containers import AppContainer
from photo_unlock.errors import AppError, RateLimitExceededError

logger = logging.getLogger(__name__)


async def run_expiry_sweep(container: AppContainer, interval_seconds: float) -> None:
    """Periodically fail transactions that stayed open too long."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(container.transaction_service.expire_stale)
        except Exception:
            logger.exception("Transaction expiry sweep failed")


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    debug = container.settings.debug

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        interval = container.settings.expiry_sweep_interval_seconds
        sweep = None
        if interval > 0:
            sweep = asyncio.create_task(run_expiry_sweep(container, interval))
        yield
        if sweep is not None:
            sweep.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweep
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(payments_router)
    app.include_router(photos_router)

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "Request failed",
                exc_info=exc,
                extra={"path": request.url.path, "kind": exc.kind},
            )
        else:
            logger.warning(
                "Request rejected: %s",
                exc.message,
                extra={"path": request.url.path, "kind": exc.kind},
            )
        content: dict[str, object] = {"success": False, "error": exc.message}
        if debug and exc.status_code >= 500:
            content["traceback"] = _format_traceback(exc)
        headers = None
        if isinstance(exc, RateLimitExceededError):
            headers = {"Retry-After": str(exc.retry_after)}
        return JSONResponse(
            status_code=exc.status_code, content=content, headers=headers
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Invalid request",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error", exc_info=exc, extra={"path": request.url.path}
        )
        content: dict[str, object] = {
            "success": False,
            "error": "Internal server error",
        }
        if debug:
            content["traceback"] = _format_traceback(exc)
        return JSONResponse(status_code=500, content=content)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app


def _format_traceback(exc: BaseException) -> str:
    return "".join(traceback.format_exception(exc))
