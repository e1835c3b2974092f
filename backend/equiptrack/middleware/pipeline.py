"""Request pipeline: ordered stages around every inbound operation.

Order per request:

1. rate limit (reject before any other work)
2. identity resolution, skipped for exempt routes
3. tenant context derivation
4. dispatch to the route, which authorizes its own action
5. audit, scheduled in the background once the response is final

Request logging and metrics run for every request regardless of outcome.
Stage order and route exemptions are plain data on the pipeline.
"""

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from backend.equiptrack.api.auth import IdentityResolver, extract_bearer_token
from backend.equiptrack.db.context import Identity, TenantContext, derive_tenant_context
from backend.equiptrack.db.repositories import RateLimitDecision
from backend.equiptrack.errors import AppError, Unauthorized, error_response
from backend.equiptrack.middleware.audit import AuditRecorder
from backend.equiptrack.middleware.ratelimit import rate_limit_headers, retry_after_seconds
from backend.equiptrack.utils.clock import utcnow
from backend.equiptrack.utils.logging import RequestLogger
from backend.equiptrack.utils.metrics import http_request_latency_ms, http_requests_total

logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    """Mutable per-request state threaded through the stages."""

    method: str
    path: str
    headers: Headers
    client_host: str | None
    started_at: datetime
    identity: Identity | None = None
    tenant: TenantContext | None = None
    rate_limit: RateLimitDecision | None = None
    exempt: bool = False


class Stage(Protocol):
    """A pipeline stage returns None to continue or an error to stop."""

    name: str

    async def run(self, ctx: PipelineContext) -> AppError | None: ...


@dataclass(frozen=True)
class ExemptRoute:
    """Route served without identity resolution or tenant context."""

    method: str
    pattern: str

    def matches(self, method: str, path: str) -> bool:
        return method.upper() == self.method and re.fullmatch(self.pattern, path) is not None


DEFAULT_EXEMPT_ROUTES: tuple[ExemptRoute, ...] = (
    ExemptRoute("POST", r"/auth/register-company/?"),
    ExemptRoute("POST", r"/auth/login/?"),
    ExemptRoute("GET", r"/auth/invitation/[^/]+/?"),
    ExemptRoute("POST", r"/auth/accept-invitation/[^/]+/?"),
    ExemptRoute("GET", r"/health/?"),
    ExemptRoute("GET", r"/healthz/?"),
    ExemptRoute("GET", r"/metrics/?"),
    ExemptRoute("GET", r"/(docs|redoc|openapi\.json)(/.*)?"),
)


def is_exempt(
    method: str, path: str, exempt_routes: tuple[ExemptRoute, ...] = DEFAULT_EXEMPT_ROUTES
) -> bool:
    return any(route.matches(method, path) for route in exempt_routes)


class IdentityStage:
    """Resolve the bearer credential into a live identity."""

    name = "identity"

    def __init__(
        self,
        resolver: IdentityResolver,
        session_factory: async_sessionmaker[AsyncSession],
        exempt_routes: tuple[ExemptRoute, ...] = DEFAULT_EXEMPT_ROUTES,
    ) -> None:
        self._resolver = resolver
        self._session_factory = session_factory
        self._exempt_routes = exempt_routes

    async def run(self, ctx: PipelineContext) -> AppError | None:
        if is_exempt(ctx.method, ctx.path, self._exempt_routes):
            ctx.exempt = True
            return None

        token = extract_bearer_token(ctx.headers.get("authorization"))
        try:
            async with self._session_factory() as session:
                ctx.identity = await self._resolver.resolve(session, token)
        except Unauthorized as e:
            return e

        return None


class TenantStage:
    """Project the identity into tenant capability flags."""

    name = "tenant"

    async def run(self, ctx: PipelineContext) -> AppError | None:
        ctx.tenant = derive_tenant_context(ctx.identity)
        return None


class RequestPipeline:
    """Runs stages in order, stopping at the first terminal failure."""

    def __init__(self, stages: list[Stage]) -> None:
        self.stages = stages

    async def run(self, ctx: PipelineContext) -> AppError | None:
        for stage in self.stages:
            failure = await stage.run(ctx)
            if failure is not None:
                return failure
        return None


class RequestPipelineMiddleware(BaseHTTPMiddleware):
    """Applies the request pipeline to every HTTP request."""

    def __init__(
        self,
        app: ASGIApp,
        pipeline: RequestPipeline,
        audit_recorder: AuditRecorder,
        request_logger: RequestLogger | None = None,
    ) -> None:
        super().__init__(app)
        self._pipeline = pipeline
        self._audit = audit_recorder
        self._request_logger = request_logger or RequestLogger()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        ctx = PipelineContext(
            method=request.method,
            path=request.url.path,
            headers=request.headers,
            client_host=request.client.host if request.client else None,
            started_at=utcnow(),
        )

        status_code = 500
        try:
            failure = await self._pipeline.run(ctx)

            if failure is not None:
                response = self._reject(failure, ctx)
            else:
                response = await self._dispatch(request, call_next, ctx, start)

            if ctx.rate_limit is not None:
                response.headers.update(rate_limit_headers(ctx.rate_limit))

            status_code = response.status_code
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            http_requests_total.labels(method=ctx.method, status=str(status_code)).inc()
            http_request_latency_ms.labels(method=ctx.method).observe(duration_ms)
            self._request_logger.log_request(
                ctx.method, ctx.path, status_code, duration_ms, ctx.client_host, ctx.identity
            )

    def _reject(self, failure: AppError, ctx: PipelineContext) -> Response:
        headers: dict[str, str] = {}
        if ctx.rate_limit is not None and not ctx.rate_limit.allowed:
            headers["Retry-After"] = str(retry_after_seconds(ctx.rate_limit, ctx))
        return error_response(failure, headers)

    async def _dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
        ctx: PipelineContext,
        start: float,
    ) -> Response:
        request.state.identity = ctx.identity
        request.state.tenant = ctx.tenant

        auditable = self._audit.should_record(ctx.identity, ctx.method)
        request_body = await request.body() if auditable else None

        try:
            response = await call_next(request)
        except Exception:
            # Unhandled route errors become a 500 rendered inside the pipeline
            logger.exception("Unhandled error on %s %s", ctx.method, ctx.path)
            final: Response = error_response(AppError("An internal error occurred"))
            response_body = bytes(final.body)
        else:
            if not auditable:
                return response

            # Buffer the body so the audit hook sees exactly what the caller got
            chunks = [chunk async for chunk in response.body_iterator]  # type: ignore[attr-defined]
            response_body = b"".join(
                chunk if isinstance(chunk, bytes) else chunk.encode("utf-8") for chunk in chunks
            )
            final = Response(
                content=response_body,
                status_code=response.status_code,
                headers=dict(response.headers),
                media_type=response.media_type,
            )

        if not auditable:
            return final

        self._audit.schedule(
            identity=ctx.identity,
            method=ctx.method,
            path=ctx.path,
            request_body=request_body,
            response_body=response_body,
            status_code=final.status_code,
            elapsed_ms=(time.perf_counter() - start) * 1000,
            ip_address=ctx.client_host,
            user_agent=request.headers.get("user-agent"),
        )

        return final


def build_default_pipeline(
    rate_limit_stage: Stage,
    resolver: IdentityResolver,
    session_factory: async_sessionmaker[AsyncSession],
    exempt_routes: tuple[ExemptRoute, ...] = DEFAULT_EXEMPT_ROUTES,
) -> RequestPipeline:
    """Assemble the standard stage order."""
    return RequestPipeline(
        [
            rate_limit_stage,
            IdentityStage(resolver, session_factory, exempt_routes),
            TenantStage(),
        ]
    )
