"""Main FastAPI application entry point.

Provides CORS, health, SCORM package storage and runtime session endpoints.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os
from datetime import datetime

from scorm_player.db.config import close_db, init_db
from scorm_player.routers import health, packages, runtime

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Application metadata
APP_NAME = "SCORM Player API"
VERSION = "1.0.0"
DESCRIPTION = """
SCORM Package Host Backend

## Features

* **Package Store**: Upload SCORM ZIP packages, stored in the database with a
  metadata-only catalog fallback
* **Manifest Resolution**: Resolved, flattened play-list per package
* **Content Delivery**: Member files served with API discovery injected
* **Runtime Sessions**: SCORM 1.2 / 2004 API calls relayed to a per-item
  run-time data store
"""

cors_origins = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:3001"
).split(",")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown tasks"""
    logger.info(f"Starting {APP_NAME} v{VERSION}")
    logger.info(f"Environment: {os.getenv('ENVIRONMENT', 'development')}")
    logger.info(f"CORS Origins: {cors_origins}")
    try:
        await init_db()
    except Exception as exc:
        # Uploads still land in the fallback catalog without the database
        logger.error(f"Database initialisation failed: {exc}")
    yield
    logger.info(f"Shutting down {APP_NAME}")
    await close_db()


app = FastAPI(
    title=APP_NAME,
    description=DESCRIPTION,
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    """Handle HTTP exceptions with consistent error format"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "timestamp": datetime.utcnow().isoformat(),
            "path": str(request.url)
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    """Handle general exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "timestamp": datetime.utcnow().isoformat(),
            "path": str(request.url)
        }
    )

# Include routers
app.include_router(health.router, prefix="/api/v1", tags=["Health"])
app.include_router(packages.router, prefix="/api/v1")
app.include_router(runtime.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information"""
    return {
        "name": APP_NAME,
        "version": VERSION,
        "status": "running",
        "environment": os.getenv("ENVIRONMENT", "development"),
        "timestamp": datetime.utcnow().isoformat(),
        "docs": "/docs",
        "health": "/api/v1/health"
    }


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    host = os.getenv("HOST", "0.0.0.0")

    uvicorn.run(
        "scorm_player.main:app",
        host=host,
        port=port,
        reload=True,
        log_level="info"
    )
