from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from relay_api.bindings import BINDINGS, PROXY_PREFIX, ProxyBinding
from relay_api.errors import RelayError
from relay_api.schemas import ErrorResponse
from relay_api.service.proxy import ProxyOutcome, forward

router = APIRouter(prefix=PROXY_PREFIX, tags=["proxy"])

PROXY_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Request body is not valid JSON"},
    500: {"model": ErrorResponse, "description": "Internal proxy error"},
    503: {"model": ErrorResponse, "description": "Upstream API unreachable"},
    504: {"model": ErrorResponse, "description": "Upstream API timed out"},
}


def render_outcome(outcome: ProxyOutcome) -> JSONResponse:
    response = JSONResponse(status_code=outcome.status_code, content=outcome.body)
    for key, value in outcome.headers:
        if key.lower() == "content-type":
            response.headers[key] = value
        else:
            response.headers.append(key, value)
    return response


def _make_endpoint(binding: ProxyBinding):
    async def endpoint(request: Request) -> JSONResponse:
        metrics = request.app.state.metrics
        try:
            outcome = await forward(binding, request, request.app.state.settings)
        except RelayError as exc:
            metrics.record_proxy_call(binding.name, binding.method, exc.status_code)
            raise
        metrics.record_proxy_call(binding.name, binding.method, outcome.status_code)
        return render_outcome(outcome)

    endpoint.__name__ = f"proxy_{binding.method.lower()}_{binding.name}"
    return endpoint


for _binding in BINDINGS:
    router.add_api_route(
        f"/{_binding.name}",
        _make_endpoint(_binding),
        methods=[_binding.method],
        responses=PROXY_ERROR_RESPONSES,
    )
