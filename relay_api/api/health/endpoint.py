from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse

from relay_api.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        message="relay proxy server is running",
    )


@router.get("/metrics", response_class=PlainTextResponse)
def metrics(request: Request) -> str:
    if not request.app.state.settings.enable_metrics:
        raise HTTPException(status_code=404)
    return request.app.state.metrics.render_prometheus()
