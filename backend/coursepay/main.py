# backend/coursepay/main.py
"""
FastAPI application for course payment settlement.
"""

from contextlib import asynccontextmanager
import logging
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Response

from .core.config import is_running_tests, settings
from .database import get_db_pool_status
from .errors import register_error_handlers
from .integrations.chapa_client import ChapaClient
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import payments as payments_v1
from .routes.v1 import webhooks_chapa as webhooks_chapa_v1
from .routes.v1 import withdrawals as withdrawals_v1
from .services.notification_service import NotificationService

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

API_TITLE = "CoursePay API"
API_VERSION = "1.0.0"


def build_gateway_client() -> Optional[ChapaClient]:
    """Construct the processor client from settings, or None when no key is configured."""
    secret = settings.chapa_secret_key.get_secret_value()
    if not secret:
        logger.warning("CHAPA_SECRET_KEY is not set; payment initiation and verification disabled")
        return None
    return ChapaClient(
        secret_key=secret,
        base_url=settings.chapa_base_url,
        currency=settings.payment_currency,
        timeout=settings.chapa_timeout_seconds,
        payout_timeout=settings.chapa_payout_timeout_seconds,
    )


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build shared clients on startup."""
    logger.info(f"{API_TITLE} starting up...")
    logger.info(f"Environment: {settings.environment}")
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")

    app.state.gateway_client = build_gateway_client()
    app.state.notification_service = NotificationService()

    if settings.webhook_secret is None:
        logger.warning(
            "CHAPA_WEBHOOK_SECRET is not set; webhooks will be accepted without signature "
            "verification (degraded security mode)"
        )
    if settings.simulate_payouts:
        if settings.is_production:
            logger.warning("SIMULATE_PAYOUTS is on in production; withdrawals will not move money")
        else:
            logger.info("Payout simulation enabled; withdrawals will not move real money")

    yield

    logger.info(f"{API_TITLE} shutting down...")


app = FastAPI(
    title=API_TITLE,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)
register_error_handlers(app)

app.include_router(payments_v1.router)
app.include_router(webhooks_chapa_v1.router)
app.include_router(withdrawals_v1.router)


@app.get("/health", include_in_schema=False)
def health_check() -> Dict[str, Any]:
    return {
        "status": "healthy",
        "environment": settings.environment,
        "database_pool": get_db_pool_status(),
    }


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
