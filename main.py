#!/usr/bin/env python3
"""
GitHub Webhook Gatekeeper
Main application entry point
"""

import logging

import uvicorn
from fastapi import FastAPI
import structlog

from src.api.webhooks import router as webhook_router
from src.api.health import router as health_router
from src.services.shared_services import close_services
from config.settings import settings

logging.basicConfig(format="%(message)s", level=settings.LOG_LEVEL.upper())

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Create FastAPI application
app = FastAPI(
    title="GitHub Webhook Gatekeeper",
    description="Authenticates, authorizes and dispatches GitHub webhook deliveries",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
)

# Include routers
app.include_router(health_router, prefix="/health", tags=["health"])
app.include_router(webhook_router, prefix="/webhook", tags=["webhooks"])


@app.get("/", tags=["root"])
async def root():
    """Service description endpoint"""
    return {
        "name": "GitHub Webhook Gatekeeper",
        "version": "1.0.0",
        "status": "running",
        "webhook": "/webhook",
        "health": "/health",
    }


@app.on_event("startup")
async def startup_event():
    """Initialize application on startup"""
    logger.info(
        "Starting GitHub Webhook Gatekeeper",
        host=settings.HOST,
        port=settings.PORT,
        allowed_owners=sorted(settings.allowed_owners_set),
        ip_validation=settings.WEBHOOK_IP_VALIDATION,
        ip_fail_open=settings.WEBHOOK_IP_FAIL_OPEN,
        trust_proxy=settings.TRUST_PROXY,
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Clean up on shutdown"""
    logger.info("Shutting down GitHub Webhook Gatekeeper")
    await close_services()


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=False,
        log_level=settings.LOG_LEVEL.lower(),
    )
