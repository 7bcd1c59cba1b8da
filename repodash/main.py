from __future__ import annotations

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from repodash.core.config import get_settings
from repodash.core.metrics import observe_http_request, render_latest
from repodash.core.middleware import (
    RequestRecord,
    SlidingWindowLimiter,
    apply_headers,
    client_key,
    now_ts,
    request_id_ctx,
    resolve_request_id,
    route_template,
    security_headers,
    too_many_requests,
)
from repodash.routers.auth import router as auth_router
from repodash.routers.contacts import router as contacts_router
from repodash.routers.health import router as health_router
from repodash.routers.messages import router as messages_router
from repodash.routers.relay import router as relay_router
from repodash.routers.repos import router as repos_router
from repodash.services.line_count import GitCloneLineCounter
from repodash.services.relay import RelayHub


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="repodash API", version=settings.VERSION)

    # Per-application state, built here and torn down with the app.
    app.state.relay_hub = RelayHub()
    app.state.line_counter = GitCloneLineCounter(
        git_binary=settings.GIT_BINARY,
        timeout_seconds=settings.LINE_COUNT_TIMEOUT_SECONDS,
        max_concurrent_clones=settings.LINE_COUNT_MAX_CONCURRENT_CLONES,
    )

    limiter = (
        SlidingWindowLimiter(limit=settings.RATE_LIMIT_REQUESTS_PER_MINUTE)
        if settings.RATE_LIMIT_REQUESTS_PER_MINUTE > 0
        else None
    )
    default_headers = security_headers(settings)
    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):  # type: ignore[no-untyped-def]
        request_id = resolve_request_id(request, header_name=settings.REQUEST_ID_HEADER)
        ctx_token = request_id_ctx.set(request_id)
        started = now_ts()
        retry_after = limiter.hit(client_key(request), now=started) if limiter else None
        status_code = 500

        try:
            if retry_after is not None:
                response = too_many_requests(retry_after)
            else:
                response = await call_next(request)
            status_code = response.status_code
            response.headers[settings.REQUEST_ID_HEADER] = request_id
            apply_headers(response, default_headers)
            return response
        finally:
            record = RequestRecord(
                request_id=request_id,
                method=request.method,
                path=route_template(request),
                status_code=status_code,
                duration_ms=int((now_ts() - started) * 1000),
                rate_limited=retry_after is not None,
            )
            record.log()
            if settings.ENABLE_PROMETHEUS_METRICS:
                observe_http_request(record)
            request_id_ctx.reset(ctx_token)

    if settings.ENABLE_PROMETHEUS_METRICS:

        @app.get(settings.PROMETHEUS_METRICS_PATH, include_in_schema=False)
        def metrics() -> Response:
            body, content_type = render_latest()
            return Response(content=body, media_type=content_type)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(repos_router)
    app.include_router(messages_router)
    app.include_router(contacts_router)
    app.include_router(relay_router)
    return app


app = create_app()
