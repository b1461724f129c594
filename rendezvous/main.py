import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

# Import all models to ensure they're registered with SQLAlchemy Base
from . import (
    models,  # noqa: F401
    models_notifications,  # noqa: F401
)
from .config import RATE_LIMIT_ENABLED
from .database import Base, engine
from .domain.failures.router import router as failures_router
from .domain.notifications.router import router as notifications_router
from .domain.open_slots.router import organizer_router as open_slots_organizer_router
from .domain.open_slots.router import router as open_slots_router
from .domain.scheduling.router import router as invites_router
from .domain.scheduling.router import threads_router
from .errors import SchedulingError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    if RATE_LIMIT_ENABLED:
        try:
            from .rate_limiter import get_redis_client

            get_redis_client()  # Connection test
            logger.info("Redis connection established")
        except Exception as e:
            logger.warning(f"Redis connection failed - rate limited endpoints will return 503: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Rendezvous API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.error}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} - {exc.status_code} {exc.error}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are 400 validation_error"""
    errors = exc.errors()
    logger.warning(f"Validation error for {request.url.path}: {errors}")
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "validation_error",
            "message": message,
            "details": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors],
        },
    )


@app.exception_handler(SQLAlchemyError)
async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"{request.method} {request.url.path} - Storage error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "storage_error", "message": "Storage operation failed"},
    )


# CORS Configuration
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Routes
app.include_router(invites_router)
app.include_router(open_slots_router)
app.include_router(threads_router)
app.include_router(open_slots_organizer_router)
app.include_router(failures_router)
app.include_router(notifications_router)


@app.get("/")
def root():
    return {"message": "Rendezvous API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
