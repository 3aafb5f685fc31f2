"""
Tenant IAM - FastAPI Application Entrypoint

Builds the FastAPI application with:
- CORS and security middleware
- Authentication and organization routes
- Database lifecycle management
- Uniform error envelope

The Settings object is built once here and passed to every collaborator
that needs it.
"""

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from tenant_iam.auth.database import check_database, get_engine, get_session_factory, init_db
from tenant_iam.auth.password import CredentialHasher
from tenant_iam.auth.routes import router as auth_router
from tenant_iam.auth.tokens import TokenService
from tenant_iam.config import Settings
from tenant_iam.gateway.handlers import error_body, register_exception_handlers
from tenant_iam.gateway.middleware import SecurityMiddleware
from tenant_iam.logging_config import configure_logging
from tenant_iam.organizations.routes import router as organizations_router


API_PREFIX = "/api/v1"


def create_app(settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Configuration; read from the environment when omitted
        engine: Pre-built engine (tests); built from DATABASE_URL when omitted
    """
    settings = settings or Settings()
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Startup:
            - Create the engine (unless injected) and the tables
        Shutdown:
            - Dispose the engine if this app created it
        """
        owns_engine = engine is None
        db_engine = engine or get_engine(
            settings.DATABASE_URL,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
        init_db(db_engine)
        app.state.db_engine = db_engine
        app.state.db_session_factory = get_session_factory(db_engine)

        yield

        if owns_engine:
            db_engine.dispose()

    app = FastAPI(
        title="Tenant IAM",
        description="Identity and access core for a multi-tenant application",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.hasher = CredentialHasher(work_factor=settings.BCRYPT_WORK_FACTOR)
    app.state.token_service = TokenService(
        secret=settings.SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
        issuer=settings.JWT_ISSUER,
        access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Authorization", "Content-Type", "X-Request-ID"],
        max_age=300,
    )
    app.add_middleware(SecurityMiddleware)

    register_exception_handlers(app)

    app.include_router(auth_router, prefix=API_PREFIX)
    app.include_router(organizations_router, prefix=API_PREFIX)

    @app.get(f"{API_PREFIX}/")
    async def api_root():
        return {"success": True, "data": {"message": "Welcome to Tenant IAM API v1"}}

    @app.get("/health")
    def health_check(request: Request):
        """Report database connectivity; 503 when it is unreachable."""
        if not check_database(request.app.state.db_engine):
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content=error_body("database_unavailable", "Database unavailable"),
            )
        return {"success": True, "data": {"status": "ok", "database": "connected"}}

    return app
