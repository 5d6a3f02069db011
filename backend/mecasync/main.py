"""FastAPI application entry point."""
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.sessions import SessionMiddleware

from mecasync.config import settings
from mecasync.database import init_db
from mecasync.exceptions import SyncError
from mecasync.logging_config import setup_logging
from mecasync.routers import activity, modules, sync

setup_logging(settings.LOG_LEVEL)

# Create FastAPI application
app = FastAPI(
    title="MecaSync",
    description="Offline delta sync and activity reconciliation for the mechanic reference app",
    version="0.1.0"
)

# Add session middleware for user authentication
app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY)

# Register routers
app.include_router(sync.router)
app.include_router(modules.router)
app.include_router(activity.router)


@app.exception_handler(SyncError)
async def sync_error_handler(request: Request, exc: SyncError):
    """Render service errors as {success: false, message}."""
    if exc.status_code >= 500:
        logger.error(f"✗ {request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Missing or mistyped request input is a 400 in the same envelope as service errors."""
    errors = exc.errors()
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()))
        message = f"Invalid request: {location}: {errors[0].get('msg')}"
    else:
        message = "Invalid request"
    logger.info(f"{request.method} {request.url.path} rejected (400): {message}")

    return JSONResponse(
        status_code=400,
        content={"success": False, "message": message},
    )


@app.on_event("startup")
async def startup_event():
    """Initialize application on startup."""
    # Ensure database directory exists
    if settings.DATABASE_URL.startswith("sqlite:///"):
        db_path = Path(settings.DATABASE_URL.replace("sqlite:///", ""))
        db_path.parent.mkdir(parents=True, exist_ok=True)

    # Create database tables
    init_db()
    logger.info("✓ Database initialized")
    logger.info(f"✓ Running in {settings.ENVIRONMENT} mode")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("mecasync.main:app", host="0.0.0.0", port=8080, reload=settings.is_development)
