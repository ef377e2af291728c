"""FastAPI control surface: health and on-demand count."""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import FastAPI, status
from fastapi.responses import JSONResponse

from . import __version__
from .config import Settings
from .imap_client import MailboxError
from .scanner import ScanCancelled, check_mailbox
from .scheduler import SyncService

logger = logging.getLogger(__name__)


def create_app(
    service: SyncService,
    health_check: Callable[[Settings], None] = check_mailbox,
) -> FastAPI:
    app = FastAPI(title="Mail Day Tracker", version=__version__)

    @app.get("/api/health")
    def health() -> JSONResponse:
        """Check that the mailbox can be opened; nothing else is touched."""
        try:
            health_check(service.settings)
        except MailboxError as exc:
            logger.warning("health check failed: %s", exc)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"ok": False, "error": str(exc)},
            )
        return JSONResponse(content={"ok": True})

    @app.get("/api/count")
    def count() -> JSONResponse:
        """Run one scan synchronously and return its summary."""
        try:
            summary = service.scan()
        except (MailboxError, ScanCancelled) as exc:
            logger.warning("count scan failed: %s", exc)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": str(exc)},
            )
        return JSONResponse(content=summary.to_dict())

    return app
