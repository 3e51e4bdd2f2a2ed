import json
import logging

from fastapi.testclient import TestClient

from relay_api.config import load_settings
from relay_api.main import create_app
from relay_api.observability import JsonLogFormatter, RelayMetrics


def test_unmatched_route_returns_404_envelope(settings) -> None:
    client = TestClient(create_app(settings))

    response = client.post("/definitely/not/here")

    assert response.status_code == 404
    assert response.json() == {"code": 404, "msg": "requested endpoint does not exist"}


def test_missing_local_upload_is_404(settings) -> None:
    client = TestClient(create_app(settings))

    response = client.get("/uploads/1700000000000_missing.mp3")

    assert response.status_code == 404


def test_index_page_served_from_frontend_dir(settings) -> None:
    settings.frontend_dir.mkdir(parents=True)
    (settings.frontend_dir / "index.html").write_text("<h1>relay</h1>", encoding="utf-8")
    client = TestClient(create_app(settings))

    response = client.get("/")

    assert response.status_code == 200
    assert "<h1>relay</h1>" in response.text


def test_frontend_assets_are_served(settings) -> None:
    (settings.frontend_dir / "js").mkdir(parents=True)
    (settings.frontend_dir / "js" / "app.js").write_text("console.log(1);", encoding="utf-8")
    client = TestClient(create_app(settings))

    response = client.get("/js/app.js")

    assert response.status_code == 200
    assert response.text == "console.log(1);"
    assert client.post("/js/app.js").status_code == 404


def test_index_page_missing_is_404(settings) -> None:
    client = TestClient(create_app(settings))

    assert client.get("/").status_code == 404


def test_uncaught_error_returns_500_envelope(settings) -> None:
    app = create_app(settings)

    @app.get("/explode")
    def explode() -> dict:
        raise KeyError("missing")

    client = TestClient(app, raise_server_exceptions=False)
    response = client.get("/explode")

    assert response.status_code == 500
    body = response.json()
    assert body["code"] == 50000
    assert body["msg"] == "internal server error"
    assert "missing" in body["error"]


def test_request_id_is_propagated(settings) -> None:
    client = TestClient(create_app(settings))

    response = client.get("/health", headers={"x-request-id": "req-123"})

    assert response.headers["x-request-id"] == "req-123"
    assert client.get("/health").headers["x-request-id"]


def test_json_log_formatter_includes_request_fields() -> None:
    record = logging.LogRecord("relay.access", logging.INFO, __file__, 1, "request_complete", None, None)
    record.request_id = "abc"
    record.status_code = 200

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["message"] == "request_complete"
    assert payload["logger"] == "relay.access"
    assert payload["request_id"] == "abc"
    assert payload["status_code"] == 200
    assert "method" not in payload


def test_disabled_metrics_record_nothing() -> None:
    metrics = RelayMetrics(enabled=False)
    metrics.record_upload("local")
    metrics.record_proxy_call("access_token", "POST", 503)

    assert "relay_upload_outcomes_total{" not in metrics.render_prometheus()
    assert "relay_proxy_calls_total{" not in metrics.render_prometheus()


def test_load_settings_reads_environment(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("RELAY_PORT", "8080")
    monkeypatch.setenv("ALLOWED_ORIGINS", "http://a.test, http://b.test ,")
    monkeypatch.setenv("UPLOADS_DIR", str(tmp_path / "up"))
    monkeypatch.setenv("UPSTREAM_TIMEOUT_S", "12.5")
    monkeypatch.setenv("ENABLE_METRICS", "false")
    monkeypatch.delenv("PUBLIC_BASE_URL", raising=False)

    settings = load_settings()

    assert settings.port == 8080
    assert settings.allowed_origins == ("http://a.test", "http://b.test")
    assert settings.uploads_dir == tmp_path / "up"
    assert settings.upstream_timeout_s == 12.5
    assert settings.enable_metrics is False
    assert settings.local_base_url == "http://localhost:8080"
    assert settings.upstream_host == "open-api.chanjing.cc"


def test_openapi_documents_error_envelope(settings) -> None:
    schema = TestClient(create_app(settings)).get("/openapi.json").json()

    assert "ErrorResponse" in schema["components"]["schemas"]
    upload_errors = schema["paths"]["/upload"]["post"]["responses"]
    assert upload_errors["413"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
    proxy_errors = schema["paths"]["/proxy/access_token"]["post"]["responses"]
    assert {"400", "500", "503", "504"} <= set(proxy_errors)
