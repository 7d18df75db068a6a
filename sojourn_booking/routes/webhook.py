"""Payment gateway webhook receiver route."""

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from starlette.concurrency import run_in_threadpool

from sojourn_booking.cache import DeliveryCache
from sojourn_booking.config import WEBHOOK_DEDUPE_TTL_SECONDS
from sojourn_booking.dependencies import get_db_engine
from sojourn_booking.errors import BookingError, InvalidInput, PaymentVerificationFailed
from sojourn_booking.gateway.client import EVENT_ID_HEADER, SIGNATURE_HEADER
from sojourn_booking.services.payments import handle_webhook

router = APIRouter()
logger = structlog.get_logger(__name__)

# Redeliveries of an event already handled within the TTL are acknowledged without work
delivery_cache = DeliveryCache(ttl_seconds=WEBHOOK_DEDUPE_TTL_SECONDS)


@router.post("/payments/webhook")
async def payment_webhook(request: Request, engine: Engine = Depends(get_db_engine)) -> JSONResponse:
    """
    Receive payment gateway events.

    The signature covers the raw body, so the body is read as bytes and passed on
    untouched. Any 2xx tells the gateway to stop retrying; errors that retrying
    could fix return 5xx.

    Returns:
        JSONResponse: {"status": <outcome>} or {"error": ...}
    """
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    event_id = request.headers.get(EVENT_ID_HEADER)

    if event_id and delivery_cache.seen(event_id):
        logger.info("webhook_duplicate_delivery", event_id=event_id)
        return JSONResponse(content={"status": "duplicate"})

    try:
        outcome = await run_in_threadpool(handle_webhook, engine, raw_body, signature)
    except PaymentVerificationFailed:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED, content={"error": "Invalid signature"}
        )
    except InvalidInput as e:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(e)})
    except BookingError as e:
        logger.warning("webhook_processing_failed", event_id=event_id, error=str(e))
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"error": str(e)})
    except Exception as e:
        logger.exception("webhook_processing_error", event_id=event_id, error=str(e))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    if event_id:
        delivery_cache.remember(event_id)
    return JSONResponse(content={"status": outcome})
