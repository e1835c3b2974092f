"""FastAPI application factory."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine

from backend.equiptrack.api.auth import IdentityResolver, TokenAuthority
from backend.equiptrack.api.routes.auth import router as auth_router
from backend.equiptrack.api.routes.equipment import router as equipment_router
from backend.equiptrack.api.routes.equipment_types import router as equipment_types_router
from backend.equiptrack.api.routes.health import router as health_router
from backend.equiptrack.api.routes.metrics import router as metrics_router
from backend.equiptrack.api.routes.users import router as users_router
from backend.equiptrack.config import Settings, get_settings
from backend.equiptrack.db.engine import create_async_engine_from_settings, create_session_factory
from backend.equiptrack.db.repositories import AuditLogRepository, RateLimitStore
from backend.equiptrack.db.sql_repositories import SqlAuditLogRepository
from backend.equiptrack.equipment.lifecycle import EquipmentLifecycle
from backend.equiptrack.errors import install_error_handlers
from backend.equiptrack.middleware.audit import AuditRecorder
from backend.equiptrack.middleware.pipeline import RequestPipelineMiddleware, build_default_pipeline
from backend.equiptrack.middleware.ratelimit import RateLimitStage
from backend.equiptrack.ratelimit import build_rate_limit_store
from backend.equiptrack.utils.logging import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging(app.state.settings.log_level)
    yield
    # Let in-flight audit writes land before the pool goes away
    await app.state.audit_recorder.drain()
    await app.state.engine.dispose()


def create_app(
    settings: Settings | None = None,
    engine: AsyncEngine | None = None,
    rate_limit_store: RateLimitStore | None = None,
    audit_repository: AuditLogRepository | None = None,
) -> FastAPI:
    """Build the application with its collaborators.

    Args:
        settings: Settings to use (defaults to environment settings)
        engine: Async engine (defaults to one built from settings)
        rate_limit_store: Rate limit store (defaults to the configured backend)
        audit_repository: Audit sink (defaults to the SQL audit log)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    engine = engine or create_async_engine_from_settings(settings)
    session_factory = create_session_factory(engine)
    authority = TokenAuthority.from_settings(settings)
    store = rate_limit_store or build_rate_limit_store(settings)
    audit_recorder = AuditRecorder(audit_repository or SqlAuditLogRepository(session_factory))

    app = FastAPI(title="EquipTrack API", version="0.1.0", lifespan=lifespan)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.token_authority = authority
    app.state.rate_limit_store = store
    app.state.audit_recorder = audit_recorder
    app.state.lifecycle = EquipmentLifecycle(settings.transition_max_attempts)

    install_error_handlers(app)

    pipeline = build_default_pipeline(
        RateLimitStage(store, authority),
        IdentityResolver(authority),
        session_factory,
    )
    app.add_middleware(
        RequestPipelineMiddleware,
        pipeline=pipeline,
        audit_recorder=audit_recorder,
    )

    # Register routes
    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(equipment_types_router)
    app.include_router(equipment_router)

    return app


app = create_app()
