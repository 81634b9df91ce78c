"""Ticket payment endpoints.

POST /ticket-payment?action=process-queue   drain the ticket payment queue (default)
POST /ticket-payment?action=batch-transfer  run the bank-transfer batch
POST /retry-pending-transfers               retry pending_funds transfers
"""

import logging

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from settlement_engine.api.dependencies import Engine
from settlement_engine.api.schemas import (
    ErrorResponse,
    RetryPendingTransfersResponse,
    TicketPaymentResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ticket-payment"])

BATCH_TRANSFER = "batch-transfer"
PROCESS_QUEUE = "process-queue"


@router.post(
    "/ticket-payment",
    response_model=TicketPaymentResponse,
    response_model_exclude_none=True,
    responses={500: {"model": ErrorResponse}},
)
async def ticket_payment(
    engine: Engine,
    action: str = Query(default=PROCESS_QUEUE),
) -> TicketPaymentResponse:
    """Run a settlement action. Unknown actions process the queue."""
    if action == BATCH_TRANSFER:
        result = await engine.run_batch_transfer()
        logger.info(
            "Batch transfer finished: %d item(s), submitted=%s",
            result.items_added,
            result.submitted,
        )
        return TicketPaymentResponse(success=True)

    processed = await engine.process_queue()
    return TicketPaymentResponse(
        success=True, processed=processed.processed, errors=processed.errors
    )


@router.api_route(
    "/ticket-payment",
    methods=["GET", "HEAD", "PUT", "PATCH", "DELETE", "OPTIONS"],
    include_in_schema=False,
)
async def ticket_payment_method_not_allowed() -> JSONResponse:
    """Only POST is accepted."""
    return JSONResponse(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        content={"success": False, "error": "Method not allowed. Use POST."},
        headers={"Allow": "POST"},
    )


@router.post(
    "/retry-pending-transfers",
    response_model=RetryPendingTransfersResponse,
    responses={500: {"model": ErrorResponse}},
)
async def retry_pending_transfers(engine: Engine) -> RetryPendingTransfersResponse:
    """Retry transfers deferred for pending funds."""
    result = await engine.retry_pending_transfers()
    return RetryPendingTransfersResponse(
        success=True,
        processed=result.processed,
        completed=result.completed,
        still_pending=result.still_pending,
        errors=result.errors,
    )
