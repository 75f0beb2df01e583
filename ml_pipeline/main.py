"""FastAPI application main module."""
import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ml_pipeline.ai.model_store import ModelStore, running_job_tenants
from ml_pipeline.ai.training_service import TrainingService
from ml_pipeline.config import settings
from ml_pipeline.database import db
from ml_pipeline.dependencies import all_training_services, artifact_cache
from ml_pipeline.routers import health, ml_models
from ml_pipeline.utils.logging import get_logger, setup_logging

# Setup logging
setup_logging(settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager for startup and shutdown events.

    Startup connects the database (creating tables) and finalizes training
    jobs that a previous process left RUNNING, for every tenant. Shutdown
    cancels running training jobs, then disconnects the database.

    Args:
        app: FastAPI application instance
    """
    # Startup
    logger.info("=" * 60)
    logger.info("Starting ML Pipeline Backend")
    logger.info("=" * 60)

    try:
        import sklearn
        logger.info(f"✓ scikit-learn available (version: {sklearn.__version__})")
    except ImportError:
        logger.error("✗ scikit-learn is NOT installed; install it with: pip install scikit-learn")
        raise

    logger.info("Initializing database...")
    await db.connect()
    logger.info("✓ Database connected and tables initialized")

    orphaned = 0
    for tenant_id in await running_job_tenants(db):
        recovery = TrainingService(ModelStore(db, tenant_id), artifact_cache)
        orphaned += await recovery.fail_orphaned_jobs()
    if orphaned:
        logger.warning(f"⚠ {orphaned} interrupted training job(s) marked FAILED")

    logger.info("=" * 60)
    logger.info(f"Application ready on {settings.host}:{settings.port}")
    logger.info("=" * 60)

    yield

    # Shutdown
    logger.info("=" * 60)
    logger.info("Shutting down application...")
    logger.info("=" * 60)

    shutdown_timeout = 5.0

    try:
        logger.info("Cancelling running training jobs...")
        await asyncio.wait_for(
            asyncio.gather(*(service.shutdown() for service in all_training_services())),
            timeout=shutdown_timeout
        )
        logger.info("[OK] Training jobs stopped")
    except asyncio.TimeoutError:
        logger.warning("[WARNING] Training shutdown timed out")

    try:
        await asyncio.wait_for(db.disconnect(), timeout=shutdown_timeout)
        logger.info("[OK] Database disconnected")
    except asyncio.TimeoutError:
        logger.warning("[WARNING] Database disconnect timed out")

    logger.info("[OK] Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    lifespan=lifespan
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Consistent error responses for all HTTPExceptions."""
    logger.debug(f"HTTPException: {exc.status_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "detail": exc.detail}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unhandled exceptions.

    Logs the traceback and returns a generic error body.
    """
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {str(exc)}",
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please check server logs.",
            "type": type(exc).__name__
        }
    )


# Include routers
# Health endpoints at root level
app.include_router(health.router)
# Model lifecycle endpoints
app.include_router(ml_models.router)
