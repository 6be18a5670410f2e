"""
CareSync Backend
Main FastAPI application: medication adherence and caregiver access
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, Iterable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Configuration and database
from config import settings
from database import init_db, DatabaseHealthCheck

from api import include_routers
from services.exceptions import CareSyncError, InternalError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)

# Nested request fields reported under the flat name the portal forms use
FLATTENED_FIELDS = {
    "frequency.timesPerDay": "timesPerDay",
    "frequency.label": "frequency",
}

_LOCATION_PREFIXES = ("body", "query", "path", "header")


# ==================== LIFESPAN ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown"""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENV}")

    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}")


# ==================== APP INITIALIZATION ====================

app = FastAPI(
    title=settings.APP_NAME,
    description="""
    ## CareSync API

    Medication adherence tracking with caregiver access.

    ### Features
    - **Medications**: Stock, refill alerts and a derived dose calendar
    - **Adherence**: Intake ledger, statistics, trends and PDF reports
    - **Caregivers**: Invitation-based read access to a patient's data

    Requests identify the user with the `X-User-Id` header. Caregivers pass
    `patientId` to read a patient's data.
    """,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Attach modular API routers (prefix /api/v1)
include_routers(app)


# ==================== EXCEPTION HANDLERS ====================

def flatten_validation_errors(errors: Iterable[Dict[str, Any]]) -> Dict[str, str]:
    """
    Map pydantic error locations to dotted field paths, first message wins.

    ("body", "records", 2, "medicationId") -> "records.2.medicationId"
    """
    fields: Dict[str, str] = {}
    for error in errors:
        loc = list(error.get("loc", ()))
        if loc and loc[0] in _LOCATION_PREFIXES:
            loc = loc[1:]
        path = ".".join(str(part) for part in loc) or "body"
        path = FLATTENED_FIELDS.get(path, path)
        fields.setdefault(path, error.get("msg", "Invalid value"))
    return fields


@app.exception_handler(CareSyncError)
async def caresync_exception_handler(request: Request, exc: CareSyncError):
    if isinstance(exc, InternalError):
        logger.error(f"Internal error on {request.url.path}: {exc.message}", exc_info=exc.__cause__)
        message = exc.message if settings.DEBUG else exc.default_message
    else:
        message = exc.message

    content = {"success": False, "message": message}
    errors = getattr(exc, "errors", None)
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Validation failed",
            "errors": flatten_validation_errors(exc.errors()),
        }
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "An unexpected error occurred" if not settings.DEBUG else str(exc),
        }
    )


# ==================== HEALTH ENDPOINTS ====================

@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - basic health check"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat()
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check endpoint"""
    db_connected = DatabaseHealthCheck.is_connected()

    return {
        "status": "healthy" if db_connected else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": {
            "database": {
                "status": "up" if db_connected else "down",
                "type": "sqlite" if settings.DATABASE_URL.startswith("sqlite") else "postgresql"
            },
            "prescriptionParser": {
                "configured": bool(settings.PDF_PARSER_URL)
            }
        },
        "version": settings.APP_VERSION,
        "environment": settings.ENV
    }


# ==================== MAIN ====================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
