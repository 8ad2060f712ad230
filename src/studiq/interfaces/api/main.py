# --- START OF FILE: src/studiq/interfaces/api/main.py ---
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studiq import __version__
from studiq.boot import build_services, start_background_tasks, stop_background_tasks
from studiq.config import Settings, settings
from studiq.interfaces.api.metrics import router as metrics_router
from studiq.interfaces.api.routers import crypto as crypto_router
from studiq.logging_conf import setup_logging

log = logging.getLogger(__name__)


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    cfg = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        log.info("🚀 Application startup sequence initiated...")
        app.state.services = build_services(cfg)
        start_background_tasks(app.state.services)
        log.info("🚀 Application startup complete.")
        try:
            yield
        finally:
            stop_background_tasks(app.state.services)
            app.state.services = None
            log.info("Application shutdown complete.")

    app = FastAPI(title="StudIQ Markets API", version=__version__, lifespan=lifespan)
    app.state.services = None

    origins = [o.strip() for o in cfg.CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=86400,
    )

    @app.get("/")
    def root():
        return {"message": "StudIQ Markets API Running"}

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    app.include_router(crypto_router.router)
    if cfg.METRICS_ENABLED:
        app.include_router(metrics_router)
    return app


app = create_app()
# --- END OF FILE ---
