from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.cors import CORSMiddleware

from taskdesk.core.config import app_logger, settings
from taskdesk.core.db import dispose_db, init_db
from taskdesk.core.dependencies import get_async_session
from taskdesk.core.exceptions.handlers import (
    authentication_exception_handler,
    bad_request_exception_handler,
    conflict_exception_handler,
    dependency_exception_handler,
    exception_schema,
    forbidden_exception_handler,
    general_exception_handler,
    not_found_exception_handler,
    otp_expired_exception_handler,
    otp_invalid_exception_handler,
    otp_not_found_exception_handler,
    otp_still_valid_exception_handler,
    rate_limit_exception_handler,
    session_forbidden_exception_handler,
    session_token_exception_handler,
    validation_exception_handler,
)
from taskdesk.core.exceptions.types import (
    AppException,
    AuthenticationException,
    BadRequestException,
    ConflictException,
    DependencyException,
    ForbiddenException,
    NotFoundException,
    OTPExpiredException,
    OTPInvalidException,
    OTPNotFoundException,
    OTPStillValidException,
    RateLimitExceededException,
    SessionForbiddenException,
    SessionTokenException,
)
from taskdesk.core.routers import auth_router
from taskdesk.core.services import (
    BrevoService,
    OTPService,
    RedisService,
    Renderer,
    SessionTokenService,
    SSOVerifier,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app_logger.info("Starting application...")

    # Initialize Redis service
    if settings.REDIS_URL:
        app_logger.info("Initializing Redis service...")
        await RedisService.init(settings.REDIS_URL)
        app_logger.info("Redis service initialized successfully.")
    else:
        app_logger.info("Redis disabled: REDIS_URL is not set.")

    # Create tables
    if settings.AUTO_CREATE_TABLES:
        app_logger.info("Creating database tables...")
        await init_db()
        app_logger.info("Database tables ready.")

    # Initialize session and OTP services
    app_logger.info("Initializing session token and OTP services...")
    SessionTokenService.init()
    OTPService.init()
    app_logger.info("Session token and OTP services initialized successfully.")

    # Initialize SSO providers
    app_logger.info("Initializing SSO providers...")
    await SSOVerifier.init_all()
    app_logger.info("SSO providers initialized successfully.")

    # Initialize Brevo Service
    app_logger.info("Initializing Brevo service...")
    await BrevoService.init(
        api_key=settings.BREVO_API_KEY,
        sender_email=settings.BREVO_SENDER_EMAIL,
        sender_name=settings.BREVO_SENDER_NAME,
    )
    app_logger.info("Brevo service initialized successfully.")

    # Initialize template renderer
    app_logger.info("Initializing template renderer...")
    Renderer.initialize(settings.TEMPLATES_DIR)
    app_logger.info("Template renderer initialized successfully.")

    # Yield control back to the application
    yield

    # Cleanup on shutdown
    app_logger.info("Shutting down application...")

    app_logger.info("Closing SSO providers...")
    await SSOVerifier.aclose_all()

    app_logger.info("Closing Brevo service...")
    await BrevoService.aclose()

    app_logger.info("Closing Redis service...")
    await RedisService.aclose()

    app_logger.info("Disposing database engine...")
    await dispose_db()
    app_logger.info("Shutdown complete.")


app = FastAPI(
    lifespan=lifespan,
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=settings.APP_DESCRIPTION,
    debug=settings.DEBUG,
    openapi_url="/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    responses=exception_schema,
    root_path_in_servers=False,
    servers=[
        {
            "url": f"{settings.API_DOMAIN}",
        },
    ],
)

# Register exception handlers (order matters - more specific first)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(SessionTokenException, session_token_exception_handler)
app.add_exception_handler(SessionForbiddenException, session_forbidden_exception_handler)
app.add_exception_handler(OTPNotFoundException, otp_not_found_exception_handler)
app.add_exception_handler(OTPExpiredException, otp_expired_exception_handler)
app.add_exception_handler(OTPInvalidException, otp_invalid_exception_handler)
app.add_exception_handler(OTPStillValidException, otp_still_valid_exception_handler)
app.add_exception_handler(RateLimitExceededException, rate_limit_exception_handler)
app.add_exception_handler(AuthenticationException, authentication_exception_handler)
app.add_exception_handler(ForbiddenException, forbidden_exception_handler)
app.add_exception_handler(NotFoundException, not_found_exception_handler)
app.add_exception_handler(ConflictException, conflict_exception_handler)
app.add_exception_handler(BadRequestException, bad_request_exception_handler)
app.add_exception_handler(DependencyException, dependency_exception_handler)
# Generic fallback
app.add_exception_handler(AppException, general_exception_handler)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router, prefix="/auth", tags=["Authentication"])


@app.get("/", include_in_schema=False)
async def root(request: Request):
    base_url = request.base_url._url.rstrip("/")
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "documentations": {
            "swagger": f"{base_url}/docs",
            "redoc": f"{base_url}/redoc",
        },
        "version": settings.APP_VERSION,
    }


@app.head("/health", include_in_schema=False)
@app.get("/health")
async def health_check(session: Annotated[AsyncSession, Depends(get_async_session)]):
    """
    Health check endpoint to verify if the API is running.

    Checks:
        - Database connectivity
        - Redis connectivity (only when REDIS_URL is set)
    """
    health_status = {
        "status": "ok",
        "message": f"{settings.APP_NAME} API is running.",
        "checks": {
            "database": "ok",
        },
    }

    # Check database connectivity
    try:
        async with session.begin():
            result = await session.execute(text("SELECT 1"))
            if result.scalar() != 1:
                health_status["checks"]["database"] = "unhealthy"
                health_status["status"] = "degraded"
    except Exception as e:
        app_logger.error(f"Database health check failed: {e}")
        health_status["checks"]["database"] = "unhealthy"
        health_status["status"] = "degraded"

    # Check Redis connectivity
    if settings.REDIS_URL:
        health_status["checks"]["redis"] = "ok"
        try:
            redis_ok = await RedisService.ping()
            if not redis_ok:
                health_status["checks"]["redis"] = "unhealthy"
                health_status["status"] = "degraded"
        except Exception as e:
            app_logger.error(f"Redis health check failed: {e}")
            health_status["checks"]["redis"] = "unhealthy"
            health_status["status"] = "degraded"

    # Return 503 if any check failed
    if health_status["status"] != "ok":
        raise AppException(
            "One or more health checks failed.",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=health_status,
        )

    return health_status
