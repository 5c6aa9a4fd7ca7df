import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded

from common.core.config import settings
from common.core.exceptions import (
    AppException,
    InvariantViolationError,
    NotFoundError,
    PaymentProviderError,
    TransientStoreError,
    ValidationError,
)
from api.v1.routes.router import api_router
from common.db.session import dispose_engine
from common.providers.locking.factory import get_lock_provider
from common.providers.messaging.factory import get_message_queue
from common.providers.rate_limiter.limiter import limiter
from packages.billing.catalog import get_plan_catalog

# Initialize Axiom OpenTelemetry exporter (must be first)
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from common.core.otel_axiom_exporter import (
    _initialize_telemetry,
    get_logger,
)  # noqa


_initialize_telemetry()
# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Get logger
logger = get_logger(__name__)

TRANSIENT_RETRY_AFTER_SECONDS = "5"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting application...")
    get_plan_catalog().validate()
    yield
    # Shutdown
    logger.info("Shutting down application...")
    await get_message_queue().disconnect()
    await get_lock_provider().disconnect()
    await dispose_engine()


# Only expose OpenAPI docs in local development
docs_url = "/docs" if settings.environment == "local" else None
redoc_url = "/redoc" if settings.environment == "local" else None
openapi_url = "/openapi.json" if settings.environment == "local" else None

app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    lifespan=lifespan,
    docs_url=docs_url,
    redoc_url=redoc_url,
    openapi_url=openapi_url,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Not found"}
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)}
    )


@app.exception_handler(InvariantViolationError)
async def invariant_violation_handler(request: Request, exc: InvariantViolationError):
    logger.warning(f"Invariant violation on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "Request conflicts with current state"},
    )


@app.exception_handler(TransientStoreError)
async def transient_store_handler(request: Request, exc: TransientStoreError):
    logger.warning(f"Transient store failure on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Service temporarily unavailable"},
        headers={"Retry-After": TRANSIENT_RETRY_AFTER_SECONDS},
    )


@app.exception_handler(PaymentProviderError)
async def payment_provider_handler(request: Request, exc: PaymentProviderError):
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": "Billing provider unavailable"},
    )


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    # UnknownPlanError and anything else unexpected: configuration or bug
    logger.error(f"Unhandled application error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# Instrument FastAPI with OpenTelemetry
FastAPIInstrumentor.instrument_app(app)

# Add gzip compression middleware
app.add_middleware(GZipMiddleware, minimum_size=1000)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers (auth enforced via dependencies at router level)
app.include_router(api_router, prefix="/api/v1")


# Internal health endpoint for k8s probes - not under /api/v1 to avoid external spam
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"status": "ok"}
