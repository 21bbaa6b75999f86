import os
import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from pymongo.errors import ExecutionTimeout, NetworkTimeout, PyMongoError, ServerSelectionTimeoutError

from app.core.exceptions import ContestHubError, StoreError, StoreTimeoutError
from app.core.scheduler import setup_scheduler, start_scheduler, stop_scheduler
from app.database import Database
from app.routes.admin.admin_routes import router as admin_router
from app.routes.auth.user_routes import router as user_router
from app.routes.contest.contest_routes import router as contest_router
from app.routes.contest.submission_routes import router as submission_router
from app.routes.payment.payment_routes import router as payment_router
from app.utils.response import error_response

# Load environment variables
load_dotenv()

# Get environment variables
APP_NAME = os.getenv("APP_NAME", "ContestHub")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
DEBUG = os.getenv("DEBUG", "True").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER", "True").lower() == "true"

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for the application"""
    # Startup
    await Database.connect_db()
    if ENABLE_SCHEDULER:
        setup_scheduler()
        start_scheduler()

    yield
    # Shutdown
    stop_scheduler()
    await Database.close_db()


app = FastAPI(
    title=APP_NAME,
    version=APP_VERSION,
    description="ContestHub API: contest lifecycle, entry-fee payments, submissions and winners",
    lifespan=lifespan
)

# CORS middleware
# In development, allow all origins for easier testing
cors_origins = [
    FRONTEND_URL,
    "http://localhost:3000",
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins if not DEBUG else ["*"],
    allow_credentials=not DEBUG,  # Can't use credentials with wildcard origin
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ContestHubError)
async def contest_hub_error_handler(request: Request, exc: ContestHubError):
    """Render domain errors in the standard envelope"""
    if exc.http_status >= 500:
        logger.error("[ERROR] %s %s: %s", request.method, request.url.path, exc)
    return error_response(
        message=exc.message,
        status_code=exc.http_status,
        code=exc.code,
        errors=exc.extra.get("errors")
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = {
        ".".join(str(part) for part in err["loc"] if part != "body") or "body": err["msg"]
        for err in exc.errors()
    }
    return error_response(
        message="Invalid request data",
        status_code=400,
        code="validation_error",
        errors=errors
    )


@app.exception_handler(PyMongoError)
async def store_error_handler(request: Request, exc: PyMongoError):
    """Database failures that escaped the services"""
    if isinstance(exc, (ExecutionTimeout, NetworkTimeout, ServerSelectionTimeoutError)):
        error = StoreTimeoutError()
    else:
        error = StoreError()
    logger.error("[ERROR] %s %s: %s", request.method, request.url.path, exc)
    return error_response(message=error.message, status_code=error.http_status, code=error.code)


# Include routers with /api prefix
app.include_router(contest_router, prefix="/api")
app.include_router(submission_router, prefix="/api")
app.include_router(payment_router, prefix="/api")
app.include_router(user_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/")
async def read_root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {APP_NAME} API",
        "version": APP_VERSION,
        "docs": "/docs"
    }


@app.get("/health")
@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}
