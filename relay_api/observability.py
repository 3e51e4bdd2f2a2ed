import json
import logging
import time
import uuid
from collections import Counter
from dataclasses import dataclass, field
from threading import Lock

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from relay_api.config import Settings

_LOG_EXTRA_FIELDS = (
    "request_id",
    "method",
    "path",
    "status_code",
    "latency_ms",
    "client_ip",
    "binding",
    "upload_host",
)


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, getattr(record, key))
            for key in _LOG_EXTRA_FIELDS
            if getattr(record, key, None) is not None
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(settings: Settings) -> None:
    root = logging.getLogger()
    if root.handlers:
        return
    handler = logging.StreamHandler()
    if settings.log_json:
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    root.addHandler(handler)


def _labels(**labels: str) -> str:
    return ",".join(f'{key}="{value}"' for key, value in labels.items())


@dataclass
class RelayMetrics:
    """In-process counters for the relay, rendered in Prometheus text format.

    Uploads are counted by the host that finally accepted the file
    (``transfer.sh``, ``0x0.st``, ``local``) or ``failed`` when the chain
    raised. Proxied calls are counted per binding and returned status, so
    503/504/500 transport failures show up next to pass-through statuses.
    """

    enabled: bool = True
    http_responses: Counter = field(default_factory=Counter)
    uploads: Counter = field(default_factory=Counter)
    proxy_calls: Counter = field(default_factory=Counter)
    _lock: Lock = field(default_factory=Lock)

    def record_response(self, status_code: int) -> None:
        if self.enabled:
            with self._lock:
                self.http_responses[status_code] += 1

    def record_upload(self, host_label: str) -> None:
        if self.enabled:
            with self._lock:
                self.uploads[host_label] += 1

    def record_proxy_call(self, binding: str, method: str, status_code: int) -> None:
        if self.enabled:
            with self._lock:
                self.proxy_calls[(binding, method, status_code)] += 1

    def render_prometheus(self) -> str:
        with self._lock:
            lines = ["# TYPE relay_http_responses_total counter"]
            lines += [
                f"relay_http_responses_total{{{_labels(status=str(code))}}} {count}"
                for code, count in sorted(self.http_responses.items())
            ]
            lines.append("# TYPE relay_upload_outcomes_total counter")
            lines += [
                f"relay_upload_outcomes_total{{{_labels(host=host)}}} {count}"
                for host, count in sorted(self.uploads.items())
            ]
            lines.append("# TYPE relay_proxy_calls_total counter")
            lines += [
                f"relay_proxy_calls_total{{{_labels(binding=binding, method=method, status=str(code))}}} {count}"
                for (binding, method, code), count in sorted(self.proxy_calls.items())
            ]
            return "\n".join(lines) + "\n"


_access_logger = logging.getLogger("relay.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, metrics: RelayMetrics):
        super().__init__(app)
        self._metrics = metrics

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:  # noqa: BLE001
            self._log_access(request, request_id, 500, start, failed=True)
            raise

        self._log_access(request, request_id, response.status_code, start)
        response.headers["x-request-id"] = request_id
        return response

    def _log_access(self, request: Request, request_id: str, status_code: int, start: float, failed: bool = False) -> None:
        self._metrics.record_response(status_code)
        extra = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "latency_ms": round((time.perf_counter() - start) * 1000.0, 2),
            "client_ip": request.client.host if request.client else None,
        }
        if failed:
            _access_logger.exception("request_failed", extra=extra)
        else:
            _access_logger.info("request_complete", extra=extra)
