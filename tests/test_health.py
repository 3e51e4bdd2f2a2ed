from dataclasses import replace
from datetime import datetime

import httpx
from fastapi.testclient import TestClient

from relay_api.main import create_app


def _no_network(*_args, **_kwargs):
    raise AssertionError("health must not touch the network")


def test_health_is_ok_without_network(settings, monkeypatch) -> None:
    monkeypatch.setattr("relay_api.service.proxy.send_request", _no_network)
    monkeypatch.setattr("relay_api.service.upload.put_bytes", _no_network)
    monkeypatch.setattr("relay_api.service.upload.post_file", _no_network)
    client = TestClient(create_app(settings))

    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["message"]
    assert datetime.fromisoformat(body["timestamp"]).tzinfo is not None


def test_metrics_count_responses_by_status(settings) -> None:
    client = TestClient(create_app(settings))
    client.get("/health")
    client.get("/no/such/route")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert 'relay_http_responses_total{status="200"} 1' in response.text
    assert 'relay_http_responses_total{status="404"} 1' in response.text


def test_metrics_count_upload_outcomes_by_host(settings, monkeypatch) -> None:
    async def _put(url, content, content_type, timeout_s=30.0):
        return httpx.Response(200, text="https://transfer.sh/x/a.mp3", request=httpx.Request("PUT", url))

    async def _fail(url, *_args, **_kwargs):
        raise httpx.ConnectError("down", request=httpx.Request("PUT", url))

    client = TestClient(create_app(settings))
    monkeypatch.setattr("relay_api.service.upload.put_bytes", _put)
    client.post("/upload", files={"file": ("a.mp3", b"abc", "audio/mpeg")})
    monkeypatch.setattr("relay_api.service.upload.put_bytes", _fail)
    monkeypatch.setattr("relay_api.service.upload.post_file", _fail)
    client.post("/upload", files={"file": ("b.mp3", b"abc", "audio/mpeg")})

    text = client.get("/metrics").text
    assert 'relay_upload_outcomes_total{host="transfer.sh"} 1' in text
    assert 'relay_upload_outcomes_total{host="local"} 1' in text


def test_metrics_disabled_returns_404(settings) -> None:
    client = TestClient(create_app(replace(settings, enable_metrics=False)))

    response = client.get("/metrics")

    assert response.status_code == 404
    assert response.json()["code"] == 404
