"""
FastAPI application entry point.

Configures the application with routes, middleware, and settings.
"""
import logging
import os
import traceback

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

# Initialize Sentry for error tracking (must be done early)
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from ledgerlens import __version__

sentry_dsn = os.getenv("SENTRY_DSN")
if sentry_dsn:
    sentry_sdk.init(
        dsn=sentry_dsn,
        environment=os.getenv("ENVIRONMENT", "development"),
        release=os.getenv("APP_VERSION", __version__),
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1")),
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            LoggingIntegration(level=None, event_level="ERROR"),
        ],
        # Report lines carry company financials; keep request bodies out
        send_default_pii=False,
        max_request_body_size="never",
    )


from ledgerlens.api.routes import monitoring, normalize
from ledgerlens.config import get_settings
from ledgerlens.exceptions import LedgerLensError
from ledgerlens.middleware.logging import (
    CorrelationIdMiddleware,
    RequestLoggingMiddleware,
    add_correlation_id_processor,
    redact_sensitive_processor,
)

settings = get_settings()

logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        add_correlation_id_processor,  # Add correlation ID to all logs
        redact_sensitive_processor,     # Redact CNPJ/CPF and credentials
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(ensure_ascii=False),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

app = FastAPI(
    title="LedgerLens API",
    description="""
## Accounting Report Normalization API

LedgerLens turns text lines extracted from accounting reports into a
normalized ledger of accounts.

### Key Features

- **Line Tokenizer**: Splits delimited or free-text rows into code, name and amounts
- **Hierarchy**: Detects subtotal (synthetic) accounts from account codes
- **Totals**: Debits, credits and balance check over analytical accounts only
- **Inversions**: Flags balances on the wrong side of the account's nature

### Document Types Supported

| Type | Description |
|------|-------------|
| Balancete | Trial balance |
| Balanço Patrimonial | Balance sheet |
| DRE | Income statement |
| Outro | Any other ledger listing |
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Normalization", "description": "Ledger normalization of extracted lines"},
        {"name": "Monitoring", "description": "Health checks"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID"],
)

# Add logging middleware (order matters: correlation ID first)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)

# Add GZip compression for responses > 1KB
app.add_middleware(GZipMiddleware, minimum_size=1000)

# Include API routes
app.include_router(normalize.router, prefix="/api/v1", tags=["Normalization"])

# Monitoring routes (no prefix for easy access)
app.include_router(monitoring.router, tags=["Monitoring"])


@app.exception_handler(LedgerLensError)
async def ledgerlens_exception_handler(request: Request, exc: LedgerLensError):
    """Handle all LedgerLens custom exceptions."""
    log = logger.error if exc.http_status >= 500 else logger.warning
    log(
        "ledgerlens_error",
        error_code=exc.error_code,
        message=exc.message,
        details=exc.details,
        path=str(request.url.path),
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions with consistent format."""
    sentry_sdk.capture_exception(exc)

    logger.error(
        "unhandled_error",
        error_type=type(exc).__name__,
        message=str(exc),
        path=str(request.url.path),
        traceback=traceback.format_exc(),
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": True,
            "error_code": "LL-999",
            "message": "An unexpected error occurred. Please try again.",
            "details": {"error_type": type(exc).__name__} if settings.debug else {},
        },
    )


@app.on_event("startup")
async def startup_event() -> None:
    """Initialize application on startup."""
    logger.info("Starting LedgerLens API", debug=settings.debug, version=__version__)

    if sentry_dsn:
        logger.info("Sentry error tracking enabled", environment=os.getenv("ENVIRONMENT", "development"))
    else:
        logger.warning("Sentry error tracking not configured (SENTRY_DSN not set)")


@app.on_event("shutdown")
async def shutdown_event() -> None:
    """Cleanup on application shutdown."""
    logger.info("Shutting down LedgerLens API")
