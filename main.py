"""
Unified backend entry point.

Architecture:
- One Python process, one asyncio event loop
- FastAPI serves scheduling requests; the message scheduler's timers fire
  on the same loop, so request handlers and timers never run in parallel
- On startup, unsent messages are recovered in the background: missed ones
  are sent, future ones re-armed. New requests may arrive while this runs.

Run with: python main.py [--port PORT]
"""

import asyncio
import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Set up import paths before any local imports
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

# Load .env.local first (if exists), then .env as fallback
# .env.local is gitignored and used for local dev overrides
load_dotenv(project_root / ".env.local")  # Local overrides (gitignored)
load_dotenv()  # Fallback to .env

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from notifier.config import check_required_env_vars, get_api_port
from notifier.database import close_engine
from notifier.exceptions import (
    DispatchError,
    NotFoundError,
    NotifierError,
    SchedulingError,
    StoreError,
    ValidationError,
)
from notifier.notifications.service import NotificationService
from web_api.routes.events import router as events_router

logger = logging.getLogger(__name__)

if os.environ.get("SENTRY_DSN"):
    sentry_sdk.init(dsn=os.environ["SENTRY_DSN"])

# Track recovery task for cleanup
_recovery_task: asyncio.Task | None = None


def _handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    """Log unhandled asynchronous failures instead of letting them go unnoticed."""
    error = context.get("exception")
    logger.error(f"Unhandled asynchronous error: {context.get('message')}", exc_info=error)
    if error is not None:
        sentry_sdk.capture_exception(error)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Starts the message scheduler and kicks off recovery as a background task.
    """
    global _recovery_task

    ok, warnings = check_required_env_vars()
    for warning in warnings:
        print(warning)
    if not ok:
        raise RuntimeError("Missing required environment variables")

    asyncio.get_running_loop().set_exception_handler(_handle_loop_exception)

    service = NotificationService.from_config()
    service.start()
    app.state.notification_service = service

    print("Recovering unsent messages...")
    _recovery_task = asyncio.create_task(service.bootstrap())

    yield  # FastAPI runs here, timers fire alongside it

    print("Shutting down notification service...")
    if _recovery_task and not _recovery_task.done():
        _recovery_task.cancel()
        try:
            await _recovery_task
        except asyncio.CancelledError:
            pass
    service.shutdown()
    await close_engine()  # Close database connections


# Create FastAPI app with lifespan
app = FastAPI(
    title="Event Notifier API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "GET", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
)

# Include routers
app.include_router(events_router)


ERROR_STATUS_CODES = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (SchedulingError, 422),
    (DispatchError, 502),
    (StoreError, 503),
]


def status_code_for(error: NotifierError) -> int:
    # NotFoundError is checked before DispatchError, so a missing event is a 404
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


@app.exception_handler(NotifierError)
async def notifier_error_handler(request: Request, exc: NotifierError) -> JSONResponse:
    """Structured error payload with a machine-readable reason."""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    content = {"error": exc.reason, "detail": str(exc)}
    message_id = getattr(exc, "message_id", None)
    if message_id:
        content["messageId"] = message_id
    return JSONResponse(status_code=status_code, content=content)


@app.get("/health")
async def health(request: Request):
    """Health check endpoint with scheduler status."""
    service: NotificationService | None = getattr(
        request.app.state, "notification_service", None
    )
    return {
        "status": "healthy",
        "scheduler": service.scheduler.get_status() if service else None,
        "recovery_done": _recovery_task.done() if _recovery_task else False,
    }


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Event Notifier Server")
    parser.add_argument(
        "--port",
        type=int,
        default=get_api_port(),
        help="Port to run the server on (default: API_PORT or 8000)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Pass app object directly (not string) to avoid module reimport issues
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=args.port,
    )
