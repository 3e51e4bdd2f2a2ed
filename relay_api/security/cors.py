import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("relay.cors")

# Browsers send "null" for file:// pages.
NULL_ORIGIN = "null"


def origin_allowed(origin: str | None, allowed_origins: tuple[str, ...]) -> bool:
    if not origin or origin == NULL_ORIGIN:
        return True
    return origin in allowed_origins


class OriginAllowListMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, allowed_origins: tuple[str, ...]):
        super().__init__(app)
        self._allowed_origins = allowed_origins

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("origin")
        if not origin_allowed(origin, self._allowed_origins):
            logger.warning("rejected origin %s for %s %s", origin, request.method, request.url.path)
            return JSONResponse(status_code=403, content={"code": 403, "msg": "Not allowed by CORS"})
        return await call_next(request)


def setup_cors(app: FastAPI, allowed_origins: tuple[str, ...]) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[*allowed_origins, NULL_ORIGIN],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "access_token"],
    )
    # Added last so it wraps CORSMiddleware and runs before it.
    app.add_middleware(OriginAllowListMiddleware, allowed_origins=allowed_origins)
