import asyncio
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import httpx
from fastapi import Request

from relay_api.adapter.client.http import NO_BODY, send_request
from relay_api.bindings import ProxyBinding
from relay_api.config import Settings
from relay_api.errors import (
    InternalProxyError,
    NetworkUnreachable,
    RelayError,
    UpstreamTimeout,
    ValidationError,
)

logger = logging.getLogger("relay.proxy")

# Framing headers are recomputed by httpx on the way out and by starlette on the way back.
_SKIPPED_REQUEST_HEADERS = {
    "host",
    "origin",
    "referer",
    "content-length",
    "transfer-encoding",
    "connection",
    "accept-encoding",
}
_SKIPPED_RESPONSE_HEADERS = {"content-encoding", "content-length", "transfer-encoding", "connection"}


@dataclass
class ProxyOutcome:
    status_code: int
    body: Any
    headers: list[tuple[str, str]] = field(default_factory=list)


def rewrite_headers(headers: Iterable[tuple[str, str]], settings: Settings) -> dict[str, str]:
    forwarded = {
        key.lower(): value
        for key, value in headers
        if key.lower() not in _SKIPPED_REQUEST_HEADERS
    }
    forwarded["host"] = settings.upstream_host
    forwarded["origin"] = settings.upstream_origin
    forwarded["referer"] = f"{settings.upstream_origin}/"
    return forwarded


def copy_response_headers(headers: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    return [(key, value) for key, value in headers if key.lower() not in _SKIPPED_RESPONSE_HEADERS]


def decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def classify_transport_error(exc: Exception) -> RelayError:
    error = str(exc) or exc.__class__.__name__
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return UpstreamTimeout(error=error)
    if isinstance(exc, httpx.ConnectError):
        return NetworkUnreachable(error=error)
    return InternalProxyError(error=error)


async def read_json_body(request: Request) -> Any:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise ValidationError("request body is not valid JSON", error=str(exc)) from exc


async def forward(binding: ProxyBinding, request: Request, settings: Settings) -> ProxyOutcome:
    url = f"{settings.api_base_url.rstrip('/')}{binding.upstream_path}"
    params = request.query_params.multi_items() if binding.method == "GET" else None
    payload = await read_json_body(request) if binding.method == "POST" else NO_BODY
    logger.info("proxy %s %s -> %s", binding.method, request.url.path, url)

    try:
        response = await send_request(
            binding.method,
            url,
            headers=rewrite_headers(request.headers.items(), settings),
            params=params,
            payload=payload,
            timeout_s=settings.upstream_timeout_s,
        )
    except Exception as exc:  # noqa: BLE001
        logger.error(
            "proxy %s %s failed: %r",
            binding.method,
            request.url.path,
            exc,
            extra={"binding": binding.name},
        )
        raise classify_transport_error(exc) from exc

    if response.is_error:
        logger.warning(
            "proxy %s %s upstream returned %s",
            binding.method,
            request.url.path,
            response.status_code,
        )
    return ProxyOutcome(
        status_code=response.status_code,
        body=decode_body(response),
        headers=copy_response_headers(response.headers.multi_items()),
    )
