# ================================
# MAIN APPLICATION (main.py)
# ================================

from datetime import datetime, timezone
from pathlib import Path
from fastapi import FastAPI, Request, HTTPException, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.openapi.utils import get_openapi
from sqlalchemy.exc import IntegrityError
from contextlib import asynccontextmanager

# Core imports
from app.config import settings
from app.api import API_VERSION, API_PREFIX, API_DESCRIPTION
from app.core.exceptions import AppException
from app.core.middleware import (
    DatabaseSessionMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    RateLimitMiddleware,
    TimeoutMiddleware
)
from app.dependencies import get_current_active_user

# API Routes
from app.api.v1 import (
    auth, customers, properties, invoices, expenses, recurring,
    reports, data, backups, demo_data
)

import logging
import uvicorn

# ================================
# LOGGING CONFIGURATION
# ================================

logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# ================================
# APPLICATION LIFECYCLE
# ================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""

    # Startup
    logger.info(f"Starting {settings.APP_NAME}")
    await startup_tasks()

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}")
    await shutdown_tasks()

async def startup_tasks():
    await initialize_database()
    await create_initial_admin()
    await initialize_email_service()

    if settings.ENABLE_SCHEDULER:
        await initialize_background_scheduler()
    else:
        logger.info("Background scheduler disabled")

async def shutdown_tasks():
    await stop_background_scheduler()

    from app.core.database import engine
    engine.dispose()

    logger.info("Application shutdown complete")

async def initialize_database():
    """Checks the connection and runs migrations outside debug mode"""
    try:
        from app.core.database import engine
        from sqlalchemy import text

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        logger.info("Database connection established")

        if not settings.DEBUG:
            await run_database_migrations()

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

async def run_database_migrations():
    try:
        from alembic.config import Config
        from alembic import command

        alembic_cfg = Config("alembic.ini")
        command.upgrade(alembic_cfg, "head")

        logger.info("Database migrations completed")

    except Exception as e:
        logger.error(f"Database migration failed: {e}")
        raise

async def create_initial_admin():
    """Create the initial admin account if configured"""

    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        logger.info("No admin configuration found, skipping creation")
        return

    try:
        from app.core.database import SessionLocal
        from app.services.auth_service import AuthService

        with SessionLocal() as db:
            AuthService.ensure_admin_user(
                db, settings.ADMIN_EMAIL, settings.ADMIN_USERNAME, settings.ADMIN_PASSWORD
            )
            db.commit()

    except Exception as e:
        logger.error(f"Admin creation failed: {e}")
        # Don't raise - application should continue even if admin creation fails

async def initialize_email_service():
    if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
        logger.info("AWS SES email service initialized")
    elif settings.SMTP_HOST:
        logger.info("SMTP email service initialized")
    else:
        logger.warning("No email service configured")

async def initialize_background_scheduler():
    try:
        from app.core.scheduler import scheduler, initialize_scheduler

        initialize_scheduler()
        await scheduler.start()

        logger.info("Background scheduler started successfully")

    except Exception as e:
        logger.error(f"Failed to start background scheduler: {e}")
        # Don't raise - app should work even without scheduler

async def stop_background_scheduler():
    try:
        from app.core.scheduler import scheduler

        await scheduler.stop()

    except Exception as e:
        logger.error(f"Error stopping background scheduler: {e}")

# ================================
# FASTAPI APPLICATION
# ================================

app = FastAPI(
    title=settings.APP_NAME,
    version=API_VERSION,
    description=API_DESCRIPTION,
    docs_url="/docs" if settings.DEBUG else None,  # Disable docs in production
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan
)

# ================================
# MIDDLEWARE CONFIGURATION
# ================================

# Request Timeout (innermost)
app.add_middleware(TimeoutMiddleware, timeout_seconds=120)

# Security Headers
app.add_middleware(SecurityHeadersMiddleware)

# Rate Limiting
app.add_middleware(RateLimitMiddleware, calls_per_minute=settings.RATE_LIMIT_PER_MINUTE)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Process-Time", "Content-Disposition"]
)

# Request Logging
app.add_middleware(RequestLoggingMiddleware)

# Database Session + Request ID (outermost)
app.add_middleware(DatabaseSessionMiddleware)

# ================================
# EXCEPTION HANDLERS
# ================================

def _error_content(request: Request, detail, error_code=None) -> dict:
    return {
        "detail": detail,
        "error_code": error_code,
        "request_id": getattr(request.state, "request_id", None)
    }

@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Application exceptions raised outside route handlers (e.g. auth dependencies)"""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_content(request, exc.detail, exc.error_code)
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request validation errors as 400 with one message per field"""
    errors = []
    for error in exc.errors():
        location = list(error.get("loc", ()))
        if location and location[0] in ("body", "query", "path", "header", "cookie"):
            location = location[1:]
        errors.append({
            "field": ".".join(str(part) for part in location) or "request",
            "message": error.get("msg", "Invalid value")
        })

    return JSONResponse(
        status_code=400,
        content={"detail": "Validation failed", "errors": errors}
    )

@app.exception_handler(IntegrityError)
async def integrity_exception_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error: {exc.orig}")
    return JSONResponse(
        status_code=400,
        content=_error_content(request, "Duplicate entry", "DUPLICATE_ENTRY")
    )

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "request_id": getattr(request.state, "request_id", None)
        },
        headers=getattr(exc, "headers", None)
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content=_error_content(
            request,
            "Internal server error" if not settings.DEBUG else str(exc),
            "INTERNAL_ERROR"
        )
    )

# ================================
# HEALTH CHECK ENDPOINTS
# ================================

@app.get("/health", tags=["Health"])
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": API_VERSION
    }

@app.get("/health/detailed", tags=["Health"])
async def detailed_health_check():
    """Detailed health check with dependencies"""
    health_status = {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": API_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {}
    }

    # Database check
    try:
        from app.core.database import engine
        from sqlalchemy import text

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "healthy"
    except Exception:
        health_status["checks"]["database"] = "unhealthy"
        health_status["status"] = "degraded"

    # Email service check
    from app.utils.email import email_service
    if email_service.is_configured():
        health_status["checks"]["email"] = "available"
    else:
        health_status["checks"]["email"] = "not_configured"

    # Receipt parser check
    health_status["checks"]["receipt_parser"] = "available" if settings.GEMINI_API_KEY else "not_configured"

    # Scheduler check
    from app.core.scheduler import scheduler
    health_status["checks"]["scheduler"] = "running" if scheduler.running else "stopped"

    return health_status

@app.get("/ready", tags=["Health"])
async def readiness_check():
    """Readiness probe"""
    try:
        from app.core.database import engine
        from sqlalchemy import text

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        return {"status": "ready"}
    except Exception:
        raise HTTPException(status_code=503, detail="Service not ready")

@app.get(f"{API_PREFIX}/scheduler/status", tags=["Health"])
async def scheduler_status(current_user=Depends(get_current_active_user)):
    """Run counts and last errors of the background tasks"""
    from app.core.scheduler import scheduler

    return {"running": scheduler.running, "tasks": scheduler.get_task_status()}

# ================================
# API ROUTES
# ================================

app.include_router(
    auth.router,
    prefix=f"{API_PREFIX}/auth",
    tags=["Authentication"],
    responses={401: {"description": "Authentication failed"}}
)

app.include_router(
    customers.router,
    prefix=f"{API_PREFIX}/customers",
    tags=["Customers"],
    responses={
        401: {"description": "Authentication required"},
        404: {"description": "Resource not found"}
    }
)

app.include_router(
    properties.router,
    prefix=f"{API_PREFIX}/properties",
    tags=["Properties"],
    responses={
        401: {"description": "Authentication required"},
        404: {"description": "Resource not found"}
    }
)

app.include_router(
    invoices.router,
    prefix=f"{API_PREFIX}/invoices",
    tags=["Invoices"],
    responses={
        401: {"description": "Authentication required"},
        404: {"description": "Invoice not found"},
        502: {"description": "Email delivery failed"}
    }
)

app.include_router(
    expenses.router,
    prefix=f"{API_PREFIX}/expenses",
    tags=["Expenses"],
    responses={
        401: {"description": "Authentication required"},
        404: {"description": "Expense not found"}
    }
)

app.include_router(
    recurring.router,
    prefix=f"{API_PREFIX}/recurring",
    tags=["Recurring Invoices"],
    responses={
        401: {"description": "Authentication required"},
        404: {"description": "Template not found"}
    }
)

app.include_router(
    reports.router,
    prefix=f"{API_PREFIX}/reports",
    tags=["Reports"],
    responses={401: {"description": "Authentication required"}}
)

app.include_router(
    data.router,
    prefix=f"{API_PREFIX}/data",
    tags=["Data Export & Import"],
    responses={401: {"description": "Authentication required"}}
)

app.include_router(
    backups.router,
    prefix=f"{API_PREFIX}/backups",
    tags=["Backups"],
    responses={
        401: {"description": "Authentication required"},
        400: {"description": "Backup service disabled"}
    }
)

app.include_router(
    demo_data.router,
    prefix=f"{API_PREFIX}/demo-data",
    tags=["Demo Data"],
    responses={401: {"description": "Authentication required"}}
)

# Uploaded photos and receipts
Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

# ================================
# ROOT ENDPOINT
# ================================

@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": API_VERSION,
        "docs_url": "/docs" if settings.DEBUG else None,
        "health_url": "/health",
        "available_endpoints": {
            "auth": f"{API_PREFIX}/auth",
            "customers": f"{API_PREFIX}/customers",
            "properties": f"{API_PREFIX}/properties",
            "invoices": f"{API_PREFIX}/invoices",
            "expenses": f"{API_PREFIX}/expenses",
            "recurring": f"{API_PREFIX}/recurring",
            "reports": f"{API_PREFIX}/reports",
            "data": f"{API_PREFIX}/data",
            "backups": f"{API_PREFIX}/backups",
            "demo_data": f"{API_PREFIX}/demo-data"
        }
    }

# ================================
# CUSTOM OPENAPI SCHEMA
# ================================

def custom_openapi():
    """Custom OpenAPI schema with security definitions"""
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=settings.APP_NAME,
        version=API_VERSION,
        description=API_DESCRIPTION,
        routes=app.routes,
    )

    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": "JWT Bearer token"
        }
    }

    public_paths = {
        "/", "/health", "/health/detailed", "/ready",
        f"{API_PREFIX}/auth/login", f"{API_PREFIX}/auth/register"
    }
    for path, path_item in openapi_schema["paths"].items():
        if path in public_paths:
            continue

        for method, operation in path_item.items():
            if method in ["get", "post", "put", "delete", "patch"]:
                operation["security"] = [{"BearerAuth": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema

app.openapi = custom_openapi

# ================================
# DEVELOPMENT SERVER
# ================================

if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
        access_log=True
    )
