"""Main FastAPI application for the Token Health API."""

import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import httpx
import structlog

from token_health_api.app.routers import health, service
from token_health_api.config.settings import APISettings
from token_health_api.errors import (
    PaymentProcessingError,
    PaymentRejected,
    PaymentRequired,
    UpstreamProviderError,
    ValidationError,
)
from token_health_api.schemas.responses import ErrorResponse
from token_health_api.services.cache import ResponseCache, create_cache
from token_health_api.services.health_service import TokenHealthService
from token_health_api.services.payment_gateway import (
    PAYMENT_RESPONSE_HEADER,
    BroadcastSettler,
    PaymentGateway,
    TransactionSettler,
)
from token_health_api.services.scoring import TokenHealthEngine
from token_health_api.services.tenero_client import TeneroClient
from token_health_api.utils.logging import setup_logging
from token_health_api.utils.metrics import metrics, setup_metrics


def _error_body(error: str, details: Optional[str] = None, payment_status: Optional[str] = None) -> dict:
    return ErrorResponse(
        error=error,
        details=details,
        payment_status=payment_status
    ).model_dump(by_alias=True, exclude_none=True)


def create_app(settings: Optional[APISettings] = None,
               *,
               http_client: Optional[httpx.AsyncClient] = None,
               cache: Optional[ResponseCache] = None,
               settler: Optional[TransactionSettler] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Collaborators not passed in are built from settings. An httpx client
    created here is closed on shutdown; one passed in is left to its owner.
    """
    settings = settings or APISettings()
    setup_logging(settings.log_level, settings.log_format, settings.log_file)
    logger = structlog.get_logger(__name__)

    owns_http_client = http_client is None
    if http_client is None:
        http_client = httpx.AsyncClient(timeout=settings.upstream_timeout)

    if cache is None:
        cache = create_cache(settings)

    if settler is None:
        settler = BroadcastSettler(
            settings.get_broadcast_url(),
            http_client,
            timeout=settings.broadcast_timeout
        )

    gateway = PaymentGateway(settings.get_payment_config(), settler)
    engine = TokenHealthEngine(
        TeneroClient(http_client, base_url=settings.tenero_base_url, timeout=settings.upstream_timeout),
        ohlc_period=settings.ohlc_period,
        ohlc_limit=settings.ohlc_limit
    )
    health_service = TokenHealthService(engine, cache=cache, ttl_seconds=settings.cache_ttl_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan management."""
        logger.info("Starting Token Health API",
                    network=settings.payment_network.value,
                    pay_to=settings.payment_address,
                    cache=cache.cache_type if cache else "disabled")

        yield

        logger.info("Shutting down Token Health API")

        if cache is not None:
            await cache.close()
        if owns_http_client:
            await http_client.aclose()

        logger.info("Token Health API shutdown complete")

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None
    )

    app.state.settings = settings
    app.state.payment_gateway = gateway
    app.state.health_service = health_service

    # Add middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=settings.cors_methods,
        allow_headers=["*"],
        expose_headers=[PAYMENT_RESPONSE_HEADER],
    )

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Request logging middleware."""
        start_time = time.time()

        if settings.access_log:
            logger.info("Request started",
                        method=request.method,
                        url=str(request.url),
                        client_ip=request.client.host if request.client else None)

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error("Request failed",
                         method=request.method,
                         url=str(request.url),
                         error=str(e),
                         process_time=process_time)

            if settings.enable_metrics:
                metrics.request_count.labels(
                    method=request.method,
                    endpoint=_endpoint_label(request),
                    status=500
                ).inc()

            raise

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)

        if settings.access_log:
            logger.info("Request completed",
                        method=request.method,
                        url=str(request.url),
                        status_code=response.status_code,
                        process_time=process_time)

        if settings.enable_metrics:
            endpoint = _endpoint_label(request)
            metrics.request_count.labels(
                method=request.method,
                endpoint=endpoint,
                status=response.status_code
            ).inc()
            metrics.request_duration.labels(
                method=request.method,
                endpoint=endpoint
            ).observe(process_time)

        return response

    # Include routers
    app.include_router(service.router, tags=["service"])
    app.include_router(health.router, tags=["health"])

    if settings.enable_metrics:
        setup_metrics(app, settings.metrics_path)

    # Exception handlers
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        logger.info("Rejected request", url=str(request.url), reason=str(exc))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body(str(exc))
        )

    @app.exception_handler(PaymentRequired)
    async def payment_required_handler(request: Request, exc: PaymentRequired):
        return JSONResponse(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            content=exc.challenge.to_response()
        )

    @app.exception_handler(PaymentRejected)
    async def payment_rejected_handler(request: Request, exc: PaymentRejected):
        return JSONResponse(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            content=_error_body("Payment broadcast failed", exc.details, payment_status="failed")
        )

    @app.exception_handler(PaymentProcessingError)
    async def payment_processing_error_handler(request: Request, exc: PaymentProcessingError):
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("Payment processing error", exc.details)
        )

    @app.exception_handler(UpstreamProviderError)
    async def upstream_error_handler(request: Request, exc: UpstreamProviderError):
        logger.warning("Token analysis failed", url=str(request.url), error=str(exc))

        # Payment was already settled by the time the report failed
        headers = {}
        receipt_header = getattr(request.state, "payment_receipt_header", None)
        if receipt_header:
            headers[PAYMENT_RESPONSE_HEADER] = receipt_header

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(f"Failed to analyze token: {exc}"),
            headers=headers
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error("Unhandled exception",
                     error=str(exc),
                     url=str(request.url),
                     exc_info=True)

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_SERVER_ERROR",
                    "message": "An internal server error occurred",
                    "timestamp": datetime.now().isoformat()
                }
            }
        )

    return app


def _endpoint_label(request: Request) -> str:
    # Route template keeps token addresses out of metric labels
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


if __name__ == "__main__":
    import uvicorn

    settings = APISettings()

    uvicorn.run(
        "token_health_api.app.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        workers=settings.workers if not settings.debug else 1,
        reload=settings.debug,
        access_log=settings.access_log,
        log_level=settings.log_level.lower()
    )
