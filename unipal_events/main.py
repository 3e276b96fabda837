"""
Main FastAPI application for the UniPal Events Service.
Handles application startup, middleware, error rendering and routing.
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import config
from .core.errors import EventWorkflowError
from .api.dependencies import db_connection, redis_connection, jwt_service
from .api.v1.router import router as api_v1_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("Starting UniPal Events Service...")

    try:
        database_url = await config.get_database_url()
        db_connection.initialize(database_url)
        db_connection.create_tables()

        await jwt_service.initialize()

        # Lifecycle publishing is optional; the service runs without Redis
        try:
            redis_connection.initialize(await config.get_redis_url())
        except Exception as e:
            logger.warning(f"Redis unavailable, lifecycle events will not be published: {e}")

        logger.info("UniPal Events Service started successfully")

    except Exception as e:
        logger.error(f"Failed to start UniPal Events Service: {e}")
        raise

    yield

    logger.info("Shutting down UniPal Events Service...")

    try:
        await redis_connection.close()
        db_connection.close()
        await config.close()
        logger.info("UniPal Events Service shut down successfully")

    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


app = FastAPI(
    title="UniPal Events Service",
    description="University event lifecycle: approval, invitations, attendance and reporting",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add request processing time to response headers."""
    start_time = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = str(time.time() - start_time)
    return response


def _error_body(error_code: str, message: str, status_code: int) -> dict:
    return {
        "error_code": error_code,
        "error_message": message,
        "status_code": status_code,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@app.exception_handler(EventWorkflowError)
async def workflow_exception_handler(request: Request, exc: EventWorkflowError):
    """Render workflow rejections with their mapped status code."""
    logger.info(f"Workflow rejection on {request.url.path}: {exc.kind} - {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.kind, exc.message, exc.status_code)
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(f"HTTP exception: {exc.status_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body("HTTP_ERROR", exc.detail, exc.status_code),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=_error_body("INTERNAL_SERVER_ERROR", "An internal server error occurred", 500)
    )


app.include_router(api_v1_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint with service information."""
    return {
        "service": "UniPal Events Service",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "api": "/api/v1",
            "health": "/health",
            "docs": "/docs",
            "redoc": "/redoc"
        }
    }


@app.get("/health")
async def health_check():
    """Health check covering the database and Redis."""
    database_healthy = db_connection.health_check()
    redis_healthy = await redis_connection.health_check()
    return {
        "status": "healthy" if database_healthy else "unhealthy",
        "service": "events",
        "database": "healthy" if database_healthy else "unhealthy",
        "redis": "healthy" if redis_healthy else "unavailable",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
