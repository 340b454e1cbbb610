from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from xsbundle.api.router import router as scripts_router
from xsbundle.core.config import get_settings
from xsbundle.core.limiter import limiter
from xsbundle.core.middleware import RequestIdMiddleware, SecurityHeadersMiddleware
from xsbundle.engine.tasks import create_bundle_queue


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the bundle queue handle for the lifetime of the HTTP process."""
    settings = get_settings()
    app.state.bundle_queue = create_bundle_queue(settings)
    try:
        yield
    finally:
        # Only release connections: queued bundles must survive a restart.
        app.state.bundle_queue.shutdown()


def create_app() -> FastAPI:
    settings = get_settings()

    _app = FastAPI(
        title="XS Script Bundler",
        description="Download XS scripts as single files, user bundles or manifest bundles",
        version="0.1.0",
        lifespan=lifespan,
    )

    # ---------------------------------------------------------------------------
    # Rate limiter state: SlowAPI reads limiter from app.state
    # ---------------------------------------------------------------------------
    _app.state.limiter = limiter
    _app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # ---------------------------------------------------------------------------
    # Middleware (registered outermost → innermost; executed innermost → outermost)
    # ---------------------------------------------------------------------------
    _app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _app.add_middleware(SlowAPIMiddleware)
    _app.add_middleware(SecurityHeadersMiddleware)
    _app.add_middleware(RequestIdMiddleware)

    # ---------------------------------------------------------------------------
    # Sentry: initialised here so it captures startup errors too
    # ---------------------------------------------------------------------------
    from xsbundle.core.sentry import init_sentry

    init_sentry(
        dsn=settings.sentry_dsn,
        environment="development" if settings.debug else "production",
    )

    # ---------------------------------------------------------------------------
    # Logging: configure structlog before any routers log anything
    # ---------------------------------------------------------------------------
    from xsbundle.core.logging import configure_structlog

    configure_structlog(debug=settings.debug)

    @_app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    _app.include_router(scripts_router)

    return _app


app = create_app()
