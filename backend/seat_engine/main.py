"""
Seat Reservation Engine - Main Application Entry Point

A multi-tenant seat reservation service providing:
- Atomic, TTL-bound seat holds in Redis (SET NX EX)
- All-or-nothing booking commit from holds into PostgreSQL
- Idempotent payment reconciliation (callbacks and status polls)
- Best-effort seat-status fanout to live seat-map viewers
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from seat_engine.core.config import get_settings
from seat_engine.core.errors import SeatEngineError, seat_engine_error_handler
from seat_engine.core.logging import setup_logging, get_logger
from seat_engine.core.metrics import metrics_endpoint
from seat_engine.api.router import api_router
from seat_engine.api.middleware import RequestLoggingMiddleware
from seat_engine.infrastructure.redis_client import close_redis
from seat_engine.services.container import build_backends, build_container

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        seat_lock_backend=settings.SEAT_LOCK_BACKEND,
    )

    lock_store, channel = await build_backends(settings)
    container = build_container(settings, lock_store, channel)
    container.fanout.start()
    app.state.container = container
    if not container.verifiers:
        logger.warning("no_payment_providers_configured")
    logger.info(
        "seat_engine_ready",
        hold_ttl=settings.SEAT_HOLD_TTL_SECONDS,
        payment_providers=sorted(container.verifiers),
    )

    yield

    # Cleanup
    await container.close()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Seat holds, booking commit and payment reconciliation for showtimes",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

app.add_exception_handler(SeatEngineError, seat_engine_error_handler)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "invalid_request", "detail": jsonable_encoder(exc.errors())},
    )


# Routes
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """Health check endpoint for Docker and load balancers."""
    container = getattr(request.app.state, "container", None)
    if container is None:
        return {"status": "starting", "version": settings.APP_VERSION}

    lock_store_ok = await container.lock_store.ping()
    return {
        "status": "healthy" if lock_store_ok else "degraded",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "lock_store": "connected" if lock_store_ok else "unreachable",
        "viewers": container.fanout.connection_count,
    }


@app.get("/metrics", tags=["Health"])
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
