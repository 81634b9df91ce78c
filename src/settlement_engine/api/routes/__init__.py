"""API routes."""

from settlement_engine.api.routes.health import router as health_router
from settlement_engine.api.routes.ticket_payment import router as ticket_payment_router

__all__ = ["health_router", "ticket_payment_router"]
