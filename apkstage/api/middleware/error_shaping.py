"""
Error shaping for the build status API.

Store and configuration problems are expected operating conditions (a corrupt
version.properties, an unreadable counter file, a bad ctx query) and map to
client-visible statuses:

    ConfigError  -> 400
    StoreIOError -> 503

Anything else is a bug: the traceback stays in the server log and the client
gets a plain 500.
"""
from __future__ import annotations

import logging
import traceback
from typing import Callable

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from apkstage.core.errors import ApkStageError, ConfigError, StoreIOError

log = logging.getLogger("apkstage.errors")

_STATUS_BY_ERROR = (
    (ConfigError, 400),
    (StoreIOError, 503),
)


def status_for(exc: ApkStageError) -> int:
    for kind, status in _STATUS_BY_ERROR:
        if isinstance(exc, kind):
            return status
    return 500


async def _stager_error_handler(request: Request, exc: ApkStageError) -> JSONResponse:
    status = status_for(exc)
    log.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc), "error": type(exc).__name__})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApkStageError, _stager_error_handler)


class SafeErrorMiddleware(BaseHTTPMiddleware):
    """
    - Never return stack traces to clients
    - Log traceback server-side with the path that failed
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            log.error(
                "Unhandled error on %s %s: %s\n%s",
                request.method,
                request.url.path,
                str(e),
                traceback.format_exc(),
            )
            return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})
