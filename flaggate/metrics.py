import time

from fastapi import FastAPI, Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.responses import Response

REQUESTS = Counter("flaggate_requests_total", "Total API requests", ["method", "endpoint", "http_status"])
LATENCY = Histogram("flaggate_request_latency_seconds", "Request latency", ["method", "endpoint"])
EVALS = Counter("flag_evaluations_total", "Flag decisions made by the engine", ["feature", "result"])


def _endpoint(request: Request) -> str:
    # route template keeps label cardinality bounded
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


def setup_metrics(app: FastAPI):

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        endpoint = _endpoint(request)
        LATENCY.labels(request.method, endpoint).observe(time.perf_counter() - start)
        REQUESTS.labels(request.method, endpoint, response.status_code).inc()
        return response

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
