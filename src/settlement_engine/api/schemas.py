"""Pydantic schemas for API responses."""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Error response body."""

    success: bool = False
    error: str


class TicketPaymentResponse(BaseModel):
    """Result of a ticket-payment action.

    processed/errors are only present for process-queue.
    """

    success: bool
    processed: int | None = None
    errors: int | None = None


class RetryPendingTransfersResponse(BaseModel):
    """Result of a pending-funds retry run."""

    success: bool
    processed: int
    completed: int
    still_pending: int
    errors: int
