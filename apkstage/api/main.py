from __future__ import annotations

from fastapi import FastAPI

from apkstage import __version__
from apkstage.api.endpoints import health
from apkstage.api.endpoints import metrics_export
from apkstage.api.endpoints.version import router as version_router
from apkstage.api.middleware.error_shaping import SafeErrorMiddleware, register_error_handlers

app = FastAPI(
    title="apkstage build status API",
    version=__version__,
)

# Outermost wrapper: catches anything the handlers raise
app.add_middleware(SafeErrorMiddleware)
# ConfigError -> 400, StoreIOError -> 503
register_error_handlers(app)

app.include_router(health.router)
app.include_router(version_router)
app.include_router(metrics_export.router)
