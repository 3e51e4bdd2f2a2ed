import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("relay.app")

INTERNAL_ERROR_CODE = 50000


class RelayError(Exception):
    status_code = 500
    code = INTERNAL_ERROR_CODE
    msg = "internal server error"

    def __init__(self, msg: str | None = None, error: str | None = None) -> None:
        super().__init__(msg or self.msg)
        if msg:
            self.msg = msg
        self.error = error

    def envelope(self) -> dict:
        body: dict = {"code": self.code, "msg": self.msg}
        if self.error is not None:
            body["error"] = self.error
        return body


class ValidationError(RelayError):
    status_code = 400
    code = 400
    msg = "invalid request"


class PayloadTooLargeError(RelayError):
    status_code = 413
    code = 413
    msg = "uploaded file is too large"


class NetworkUnreachable(RelayError):
    status_code = 503
    msg = "cannot reach the upstream API server, check the network connection"


class UpstreamTimeout(RelayError):
    status_code = 504
    msg = "upstream request timed out, try again later"


class InternalProxyError(RelayError):
    status_code = 500
    msg = "internal proxy error"


class UploadFailedError(RelayError):
    msg = "file upload failed"


def error_response(exc: RelayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.envelope())


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RelayError)
    async def relay_error_handler(_: Request, exc: RelayError) -> JSONResponse:
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(ValidationError(error=str(exc.errors())))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"code": 404, "msg": "requested endpoint does not exist"})
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.status_code, "msg": str(exc.detail)},
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"code": INTERNAL_ERROR_CODE, "msg": "internal server error", "error": str(exc)},
        )
