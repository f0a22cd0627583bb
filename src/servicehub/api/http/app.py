"""FastAPI application factory and setup."""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from servicehub.api.http.app_data import ApplicationDependencies
from servicehub.api.http.routers.auth import router as auth_router
from servicehub.api.http.routers.health import router as health_router
from servicehub.api.utils.app_startup import configure_logging
from servicehub.core.errors import ConfigurationError
from servicehub.core.services import DatabaseSeeder, SqlIdentityStore
from servicehub.runtime.config import ConfigData, validate_startup_config
from servicehub.runtime.context import get_config, set_config


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, environment: str) -> None:
        super().__init__(app)
        self._environment = environment

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault(
            "Referrer-Policy", "strict-origin-when-cross-origin"
        )
        response.headers.setdefault("Cache-Control", "no-store")
        if self._environment == "production":
            response.headers.setdefault(
                "Strict-Transport-Security",
                "max-age=31536000; includeSubDomains; preload",
            )
        return response


async def log_requests(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    xff = request.headers.get("x-forwarded-for")
    client_ip = (
        xff.split(",")[0].strip()
        if xff
        else request.client.host
        if request.client
        else "unknown"
    )

    # Query strings are never logged; authorization codes may travel there.
    base_ctx = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "client_ip": client_ip,
    }

    start = time.perf_counter()
    with logger.contextualize(**base_ctx):
        try:
            logger.info("request.start")
            response = await call_next(request)
        except Exception as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.bind(
                status_code=500,
                duration_ms=round(duration_ms, 1),
                error_type=type(exc).__name__,
            ).exception("request.error")
            return JSONResponse(
                status_code=500,
                content={"message": "Internal Server Error", "requestId": request_id},
                headers={"X-Request-ID": request_id},
            )

        duration_ms = (time.perf_counter() - start) * 1000
        logger.bind(
            status_code=response.status_code, duration_ms=round(duration_ms, 1)
        ).info("request.end")
        response.headers.setdefault("X-Request-ID", request_id)
        return response


async def startup(app_deps: ApplicationDependencies) -> None:
    config = app_deps.config
    logger.info(f"Starting up application in {config.app.environment} environment")

    app_deps.database_service.create_all()
    with app_deps.database_service.session_scope() as session:
        seeder = DatabaseSeeder(
            SqlIdentityStore(session, config.security), config.security, config.seed
        )
        report = await seeder.seed()
    if report.roles_created:
        logger.info(f"Seeded roles: {', '.join(report.roles_created)}")

    app_deps.signing_keys.start()


async def shutdown(app_deps: ApplicationDependencies) -> None:
    logger.info("Shutting down application")
    await app_deps.signing_keys.stop()
    app_deps.database_service.dispose()


def create_app(
    config: ConfigData | None = None,
    dependencies: ApplicationDependencies | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        config: Startup configuration; loaded from config.yaml when omitted
        dependencies: Pre-built shared services, mainly for tests

    Raises:
        ConfigurationError: If required settings are missing
    """
    config = dependencies.config if dependencies else (config or get_config())
    validate_startup_config(config)
    set_config(config)

    if config.app.environment == "production" and "*" in config.app.cors.origins:
        raise ConfigurationError(
            "CORS misconfigured: cannot use '*' with allow_credentials=True in production"
        )

    app_deps = dependencies or ApplicationDependencies.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(config)
        await startup(app_deps)
        try:
            yield
        finally:
            await shutdown(app_deps)

    is_production = config.app.environment == "production"
    app = FastAPI(
        title="ServiceHub",
        lifespan=lifespan,
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
    )
    app.state.app_dependencies = app_deps

    app.add_middleware(SecurityHeadersMiddleware, environment=config.app.environment)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.app.cors.origins,
        allow_credentials=config.app.cors.allow_credentials,
        allow_methods=config.app.cors.allow_methods,
        allow_headers=config.app.cors.allow_headers,
    )
    app.middleware("http")(log_requests)

    app.include_router(health_router)
    app.include_router(auth_router)
    return app
