from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from loanbook.core.config import settings
from loanbook.core.database import Database
from loanbook.core.exceptions import (
    AlreadyResolvedError,
    AlreadyUsedError,
    ConflictError,
    ExpiredError,
    InvalidCodeError,
    InvalidStateError,
    LoanbookError,
    NotFoundError,
    PermissionDeniedError,
    SessionExpiredError,
    SessionRevokedError,
    ValidationError,
)
from loanbook.modules.auth.router import router as auth_router
from loanbook.modules.errors.models import ErrorSeverity
from loanbook.modules.errors.services import ErrorAuditService
from loanbook.modules.loans.router import router as loans_router
from loanbook.modules.payments.router import router as payments_router
from loanbook.modules.errors.router import router as errors_router
from loanbook.modules.users.router import borrowers_router, router as users_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ValidationError: 422,
    ConflictError: status.HTTP_409_CONFLICT,
    InvalidStateError: status.HTTP_409_CONFLICT,
    AlreadyResolvedError: status.HTTP_409_CONFLICT,
    AlreadyUsedError: status.HTTP_400_BAD_REQUEST,
    InvalidCodeError: status.HTTP_400_BAD_REQUEST,
    ExpiredError: status.HTTP_400_BAD_REQUEST,
    SessionExpiredError: status.HTTP_401_UNAUTHORIZED,
    SessionRevokedError: status.HTTP_401_UNAUTHORIZED,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    # Startup
    database = Database().connect()
    # Create all tables (for development - use Alembic in production)
    await database.create_all()
    app.state.database = database

    yield

    # Shutdown
    await database.dispose()


app = FastAPI(
    title="Loanbook API",
    description="Loan servicing: OTP sessions, loan ledger, payments and error audit",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(users_router)
app.include_router(borrowers_router)
app.include_router(auth_router)
app.include_router(loans_router)
app.include_router(payments_router)
app.include_router(errors_router)


@app.exception_handler(LoanbookError)
async def domain_error_handler(request: Request, exc: LoanbookError):
    """Map domain errors to HTTP responses"""
    status_code = next(
        (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)),
        status.HTTP_400_BAD_REQUEST
    )
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=headers
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Record unexpected failures in the error audit trail"""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    database = getattr(request.app.state, "database", None)
    if database is not None and database.session_factory is not None:
        authorization = request.headers.get("authorization", "")
        await ErrorAuditService(database.session_factory).record_exception(
            exc,
            severity=ErrorSeverity.CRITICAL,
            session_token=authorization[7:] if authorization.lower().startswith("bearer ") else None,
            url=str(request.url),
            method=request.method,
            route=request.url.path,
            user_agent=request.headers.get("user-agent"),
            ip_address=request.client.host if request.client else None
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "code": "INTERNAL_ERROR"}
    )


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "ok",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT
    }


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "docs": "/docs"
    }

