import logging

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.staticfiles import StaticFiles

from relay_api.api.health.endpoint import router as health_router
from relay_api.api.proxy.endpoint import router as proxy_router
from relay_api.api.upload.endpoint import router as upload_router
from relay_api.bindings import PROXY_PREFIX
from relay_api.config import Settings, load_settings
from relay_api.errors import register_error_handlers
from relay_api.observability import RelayMetrics, RequestLoggingMiddleware, configure_logging
from relay_api.security.cors import setup_cors
from relay_api.service.upload import default_strategies

logger = logging.getLogger("relay.app")


class FrontendFiles(StaticFiles):
    """Front-end directory mounted at ``/``; anything it cannot serve is a 404."""

    async def get_response(self, path: str, scope):
        if scope["method"] not in ("GET", "HEAD"):
            raise HTTPException(status_code=404)
        return await super().get_response(path, scope)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings)
    settings.uploads_dir.mkdir(parents=True, exist_ok=True)
    settings.frontend_dir.mkdir(parents=True, exist_ok=True)

    app = FastAPI(title="Audio Relay Proxy", version="0.1.0")
    app.state.settings = settings
    app.state.metrics = RelayMetrics(enabled=settings.enable_metrics)
    app.state.upload_strategies = default_strategies(settings)

    setup_cors(app, settings.allowed_origins)
    app.add_middleware(RequestLoggingMiddleware, metrics=app.state.metrics)
    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(upload_router)
    app.include_router(proxy_router)
    app.mount("/uploads", StaticFiles(directory=settings.uploads_dir), name="uploads")
    # Mounted last: it matches every path the routes above did not.
    app.mount("/", FrontendFiles(directory=settings.frontend_dir, html=True), name="frontend")
    return app


app = create_app()


def run() -> None:
    settings = app.state.settings
    base = f"http://localhost:{settings.port}"
    logger.info("relay proxy listening on %s:%s", settings.host, settings.port)
    logger.info("proxy endpoints under %s%s/*, health check at %s/health", base, PROXY_PREFIX, base)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
