import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models  # noqa: F401  (register tables on Base)
from .config import FRONTEND_URL
from .database import Base, engine
from .domain.orders.router import router as orders_router
from .domain.partners.router import router as partners_router
from .domain.payments.router import router as payments_router
from .domain.wallet.router import router as wallet_router
from .exceptions import ServiceError
from .routes.admin import router as admin_router

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
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    try:
        from .rate_limiter import get_redis_client

        get_redis_client()  # Connection test
        logger.info("Redis connection established")
    except Exception as e:
        logger.warning(f"Redis connection failed - rate limited endpoints will return 503: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="HomeServe API", version="1.0.0", lifespan=lifespan)


def error_response(status_code: int, message: str, details: dict | None = None, headers=None):
    """Standard error envelope: {"success": false, "error": message, **details}"""
    content = {"success": False, "error": message}
    if details:
        content.update(jsonable_encoder(details))
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} - {exc!r}")
    else:
        logger.warning(f"⚠️ {request.method} {request.url.path} - {exc!r}")
    return error_response(exc.status_code, exc.message, exc.details)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Auth, rate limiting and webhook signature errors keep their status codes"""
    detail = exc.detail
    if isinstance(detail, dict):
        details = {k: v for k, v in detail.items() if k != "message"}
        return error_response(
            exc.status_code, str(detail.get("message", "Request failed")), details, exc.headers
        )
    return error_response(exc.status_code, str(detail), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header; everything else is a 400
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return error_response(
                401,
                "Not authenticated. Please provide a valid Bearer token in the Authorization header.",
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return error_response(400, "Invalid request", {"details": exc.errors()})


# CORS Configuration
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", FRONTEND_URL).split(",")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(orders_router)
app.include_router(partners_router)
app.include_router(wallet_router)
app.include_router(payments_router)
app.include_router(admin_router)


@app.get("/")
def root():
    return {"message": "HomeServe API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
