"""
FastAPI application and entry point.

This module creates and configures the FastAPI application:
  1. Lifespan manager — builds the engine, repository, token issuer and
     UserService at startup; disposes the engine at shutdown
  2. CORS middleware — allows frontend origins to make cross-origin requests
  3. Exception handlers — maps domain errors to HTTP responses
  4. Router registration — mounts the auth and users endpoint groups

Running locally:
    uvicorn zoneguard.main:app --reload
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from zoneguard.config import settings
from zoneguard.database import create_engine, create_session_factory, init_models
from zoneguard.exceptions import register_exception_handlers
from zoneguard.logging_config import configure_logging
from zoneguard.repositories.user_repository import UserRepository
from zoneguard.routers import auth, users
from zoneguard.security import TokenIssuer
from zoneguard.services.user_service import UserService

configure_logging(environment=settings.ENVIRONMENT, level=settings.LOG_LEVEL)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
      Creates tables if they don't exist, then wires the one UserService
      every request shares and stores it on app.state. If bootstrap
      credentials are configured and the store is empty, the first admin
      is created.

    Shutdown:
      Disposes of the database engine, closing all connections cleanly.
    """
    # --- Startup ---
    engine = create_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    await init_models(engine)

    service = UserService(
        repository=UserRepository(create_session_factory(engine)),
        token_issuer=TokenIssuer(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
        ),
    )
    app.state.user_service = service

    if settings.BOOTSTRAP_ADMIN_USERNAME and settings.BOOTSTRAP_ADMIN_PASSWORD:
        await service.ensure_bootstrap_admin(
            settings.BOOTSTRAP_ADMIN_USERNAME,
            settings.BOOTSTRAP_ADMIN_PASSWORD,
        )

    logger.info("startup_complete", version=settings.APP_VERSION)
    yield
    # --- Shutdown ---
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Operator authentication, bearer tokens and account management",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(users.router, prefix="/users", tags=["Users"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for deployment probes."""
    return {"status": "ok", "version": settings.APP_VERSION}
