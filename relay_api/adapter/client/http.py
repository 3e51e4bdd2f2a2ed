import asyncio
import json
from typing import Any

import httpx

# Marks a request without a body; ``None`` is a valid JSON payload.
NO_BODY: Any = object()


async def send_request(
    method: str,
    url: str,
    headers: dict[str, str],
    params: list[tuple[str, str]] | None = None,
    payload: Any = NO_BODY,
    timeout_s: float = 30.0,
) -> httpx.Response:
    request_headers = dict(headers)
    content = None
    if payload is not NO_BODY:
        content = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        request_headers["content-type"] = "application/json"

    async with httpx.AsyncClient(timeout=timeout_s) as client:
        # httpx timeouts apply per phase; the whole call shares one deadline.
        return await asyncio.wait_for(
            client.request(method, url, headers=request_headers, params=params, content=content),
            timeout=timeout_s,
        )


async def put_bytes(url: str, content: bytes, content_type: str, timeout_s: float = 30.0) -> httpx.Response:
    async with httpx.AsyncClient(timeout=timeout_s) as client:
        response = await asyncio.wait_for(
            client.put(url, content=content, headers={"Content-Type": content_type}),
            timeout=timeout_s,
        )
        response.raise_for_status()
        return response


async def post_file(
    url: str,
    field_name: str,
    filename: str,
    content: bytes,
    content_type: str,
    timeout_s: float = 30.0,
) -> httpx.Response:
    async with httpx.AsyncClient(timeout=timeout_s) as client:
        response = await asyncio.wait_for(
            client.post(url, files={field_name: (filename, content, content_type)}),
            timeout=timeout_s,
        )
        response.raise_for_status()
        return response
